"""
Routes/endpoints for the Files API

HTTP   URI                          Action
----   ---                          ------
GET    /api/v1/files                List file metadata
GET    /api/v1/files/[id]?stat=true Retrieve the metadata of a file
GET    /api/v1/files/[id]           Download the content of a file
DELETE /api/v1/files/[id]           Delete a file
"""

import mimetypes
from datetime import timezone
from email.utils import format_datetime
from urllib.parse import quote
from fastapi import APIRouter, HTTPException, Query, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from core.deps import FileStoreDep
from core.exceptions import NotFoundError
from core.orders import parse_order, split_fields
from api.xfs.models import FILE_COLUMNS, FileListing

router = APIRouter(prefix="/files", tags=["File Endpoints"])


def _check_order(order: str) -> None:
    """Only allow sorting by file columns, the order string ends up in SQL"""
    for token in split_fields(order):
        if parse_order(token).column not in FILE_COLUMNS:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Cannot order by '{token}'",
            )


@router.get(
    "",
    response_model=FileListing,
    status_code=status.HTTP_200_OK,
    tags=["File Endpoints"],
)
def list_files(
    store: FileStoreDep,
    prefix: str | None = Query(None, description="Only files whose id starts with this"),
    tag: str | None = Query(None, description="Only files with this tag"),
    order: str = Query("", description="Comma separated columns, '-' for descending"),
    offset: int = Query(0, ge=0, description="Number of files to skip"),
    limit: int | None = Query(None, ge=1, description="Maximum number of files"),
) -> FileListing:
    """
    List stored files, without their content.
    """
    _check_order(order)
    return FileListing(
        data=store.list_files(
            prefix=prefix, tag=tag, order=order, offset=offset, limit=limit
        ),
        total_items=store.count_files(prefix=prefix, tag=tag),
        offset=offset,
        limit=limit,
    )


@router.get(
    "/{file_id:path}",
    status_code=status.HTTP_200_OK,
    tags=["File Endpoints"],
)
def get_file(
    store: FileStoreDep,
    file_id: str,
    stat: bool = Query(False, description="Return the metadata instead of the content"),
) -> Response:
    """
    Download the content of a file, or with ?stat=true its metadata.
    """
    try:
        f = store.open(file_id)
    except NotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"File '{file_id}' not found",
        ) from exc

    with f:
        info = f.stat()
        if stat:
            return JSONResponse(content=jsonable_encoder(info))
        data = f.read()

    modified = info.mod_time
    if modified.tzinfo is None:
        modified = modified.replace(tzinfo=timezone.utc)

    media_type = mimetypes.guess_type(info.name)[0] or "application/octet-stream"
    return Response(
        content=data,
        media_type=media_type,
        headers={
            "Last-Modified": format_datetime(modified.astimezone(timezone.utc), usegmt=True),
            "Content-Disposition": f"inline; filename*=UTF-8''{quote(info.name)}",
        },
    )


@router.delete(
    "/{file_id:path}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["File Endpoints"],
)
def delete_file(store: FileStoreDep, file_id: str) -> None:
    """
    Delete a file. Deleting a missing file is not an error.
    """
    store.delete_file(file_id)
