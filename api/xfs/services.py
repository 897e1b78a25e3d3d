"""
Services for the file store

DBFileStore keeps files in a single database table and exposes them
through filesystem like operations. FSFile wraps the metadata of one
file and reads its content on demand.
"""

import io
import os
import re
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterator, Protocol

import sqlalchemy as sa
from sqlalchemy.engine import CursorResult
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session

from api.xfs.models import FileMetadata, FileWithPayload, files_table
from core.exceptions import BackendError, ConflictError, NotFoundError
from core.logger import logger
from core.orders import apply_orders

# Columns returned by metadata only reads, everything but the content
METADATA_COLUMNS = ("id", "name", "ext", "tag", "time", "size")


def file_ext(name: str) -> str:
    """
    Lower-cased extension of a file name, from its last dot on.
    Dot files keep their whole name: ".bashrc" has the extension ".bashrc".
    """
    i = name.rfind(".")
    return name[i:].lower() if i >= 0 else ""


class XFS(Protocol):
    """The operations a file store offers to generic file serving code."""

    def open(self, id: str) -> "FSFile":
        ...

    def find_file(self, id: str) -> FileMetadata:
        ...

    def save_file(
        self,
        id: str,
        filename: str,
        filetime: datetime,
        data: bytes,
        tag: str | None = None,
    ) -> FileWithPayload:
        ...

    def read_file(self, id: str) -> bytes:
        ...

    def copy_file(self, src: str, dst: str, tag: str | None = None) -> None:
        ...

    def move_file(self, src: str, dst: str, tag: str | None = None) -> None:
        ...

    def delete_file(self, id: str) -> None:
        ...

    def delete_files(self, *ids: str) -> int:
        ...

    def delete_prefix(self, prefix: str) -> int:
        ...

    def delete_tagged(self, tag: str) -> int:
        ...

    def delete_before(self, before: datetime) -> int:
        ...

    def delete_prefix_before(self, prefix: str, before: datetime) -> int:
        ...

    def delete_tagged_before(self, tag: str, before: datetime) -> int:
        ...

    def delete_where(self, where: str, *args: Any, **params: Any) -> int:
        ...

    def delete_all(self) -> int:
        ...

    def truncate(self) -> None:
        ...


class FSFile:
    """
    A read-only, file-like handle on a stored file.

    The metadata is loaded when the file is opened; the content is only
    fetched from the store on the first read.
    """

    def __init__(self, xfs: XFS, file: FileMetadata):
        self.xfs = xfs
        self.file = file
        self.closed = False
        self._buffer: io.BytesIO | None = None

    def __repr__(self) -> str:
        return f"FSFile(id={self.file.id!r}, size={self.file.size})"

    def __enter__(self) -> "FSFile":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def name(self) -> str:
        return self.file.name

    def stat(self) -> FileMetadata:
        return self.file

    def _content(self) -> io.BytesIO:
        if self.closed:
            raise ValueError("I/O operation on closed file")
        if self._buffer is None:
            self._buffer = io.BytesIO(self.xfs.read_file(self.file.id))
        return self._buffer

    def read(self, size: int = -1) -> bytes:
        return self._content().read(size)

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        return self._content().seek(offset, whence)

    def tell(self) -> int:
        if self.closed:
            raise ValueError("I/O operation on closed file")
        if self._buffer is None:
            return 0
        return self._buffer.tell()

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def iter_chunks(self, chunk_size: int = 64 * 1024) -> Iterator[bytes]:
        """Yield the remaining content in chunks of at most chunk_size bytes"""
        while True:
            chunk = self.read(chunk_size)
            if not chunk:
                return
            yield chunk

    def close(self) -> None:
        self.closed = True
        self._buffer = None


class DBFileStore:
    """
    File store backed by one database table.

    Every operation issues its statements through the given session and
    commits them, unless it runs inside transaction(), in which case the
    transaction decides.
    """

    def __init__(self, session: Session, table: str = "files", default_order: str = "id"):
        """
        Args:
            session: Session used for all statements
            table: Name of the files table
            default_order: Order applied by list_files() after the caller's order
        """
        self.session = session
        self.table = files_table(table)
        self.default_order = default_order
        self._in_transaction = False

    def __repr__(self) -> str:
        return f"DBFileStore(table={self.table.name!r})"

    def create_table(self) -> None:
        """Create the files table if it does not exist"""
        logger.info("Creating files table %s", self.table.name)
        with self._unit_of_work("create table"):
            self.table.create(self.session.connection(), checkfirst=True)

    @contextmanager
    def transaction(self) -> Iterator["DBFileStore"]:
        """
        Run several operations as one transaction.
        Commits on exit, rolls back on exception.
        Nested calls join the outer transaction.
        """
        if self._in_transaction:
            yield self
            return

        self._in_transaction = True
        try:
            yield self
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        finally:
            self._in_transaction = False

    @contextmanager
    def _unit_of_work(self, action: str, write: bool = True, conflict: type[BackendError] = BackendError):
        try:
            yield
            if write and not self._in_transaction:
                self.session.commit()
        except IntegrityError as exc:
            self._rollback()
            logger.error("Failed to %s in %s: %s", action, self.table.name, exc)
            raise conflict(f"Failed to {action}: {exc}") from exc
        except SQLAlchemyError as exc:
            self._rollback()
            logger.error("Failed to %s in %s: %s", action, self.table.name, exc)
            raise BackendError(f"Failed to {action}: {exc}") from exc

    def _rollback(self) -> None:
        if not self._in_transaction:
            self.session.rollback()

    def _execute(self, statement, params: dict[str, Any] | None = None) -> CursorResult:
        return self.session.connection().execute(statement, params)

    def _metadata_columns(self) -> list[sa.Column]:
        return [self.table.c[name] for name in METADATA_COLUMNS]

    def _has_prefix(self, prefix: str):
        return self.table.c.id.startswith(prefix, autoescape=True)

    def open(self, id: str) -> FSFile:
        """Open a file for reading, NotFoundError if it does not exist"""
        return FSFile(self, self.find_file(id))

    def find_file(self, id: str) -> FileMetadata:
        """Get the metadata of a file without loading its content"""
        statement = sa.select(*self._metadata_columns()).where(self.table.c.id == id)
        with self._unit_of_work("find file", write=False):
            row = self._execute(statement).first()

        if row is None:
            raise NotFoundError(f"File '{id}' not found")
        return FileMetadata.model_validate(dict(row._mapping))

    def save_file(
        self,
        id: str,
        filename: str,
        filetime: datetime,
        data: bytes,
        tag: str | None = None,
    ) -> FileWithPayload:
        """
        Create or fully replace the file with the given id.
        The name and extension are taken from the base name of filename.
        """
        name = os.path.basename(filename)
        file = FileWithPayload(
            id=id,
            name=name,
            ext=file_ext(name),
            tag=tag or "",
            size=len(data),
            time=filetime,
            data=data,
        )

        values = file.model_dump(exclude={"id"})
        with self._unit_of_work("save file"):
            r = self._execute(
                sa.update(self.table).where(self.table.c.id == id).values(**values)
            )
            if r.rowcount == 0:
                self._execute(sa.insert(self.table).values(id=id, **values))

        logger.debug("Saved file %s (%d bytes) in %s", id, file.size, self.table.name)
        return file

    def read_file(self, id: str) -> bytes:
        """Get the content of a file"""
        statement = sa.select(self.table.c.data).where(self.table.c.id == id)
        with self._unit_of_work("read file", write=False):
            row = self._execute(statement).first()

        if row is None:
            raise NotFoundError(f"File '{id}' not found")
        return row.data or b""

    def copy_file(self, src: str, dst: str, tag: str | None = None) -> None:
        """
        Copy src to dst, replacing dst if it exists.
        The copy keeps the tag of src unless tag is given.
        """
        if src == dst:
            self.find_file(src)
            if tag is not None:
                self.move_file(src, dst, tag)
            return

        t = self.table
        source = t.alias("src")
        columns = ["id", "name", "ext", "tag", "time", "size", "data"]
        copied = sa.select(
            sa.literal(dst, sa.String),
            t.c.name,
            t.c.ext,
            sa.literal(tag, sa.String) if tag is not None else t.c.tag,
            t.c.time,
            t.c.size,
            t.c.data,
        ).where(t.c.id == src)

        with self._unit_of_work("copy file"):
            # only drop dst when there is a src to replace it with
            self._execute(
                sa.delete(t).where(t.c.id == dst, sa.exists().where(source.c.id == src))
            )
            r = self._execute(sa.insert(t).from_select(columns, copied))

        if r.rowcount == 0:
            raise NotFoundError(f"File '{src}' not found")

    def move_file(self, src: str, dst: str, tag: str | None = None) -> None:
        """
        Change the id of a file from src to dst, and its tag if given.
        ConflictError if dst already exists.
        """
        values: dict[str, Any] = {"id": dst}
        if tag is not None:
            values["tag"] = tag

        with self._unit_of_work("move file", conflict=ConflictError):
            r = self._execute(
                sa.update(self.table).where(self.table.c.id == src).values(**values)
            )

        if r.rowcount == 0:
            raise NotFoundError(f"File '{src}' not found")

    def _delete(self, action: str, *where) -> int:
        with self._unit_of_work(action):
            r = self._execute(sa.delete(self.table).where(*where))

        logger.debug("Deleted %d file(s) from %s (%s)", r.rowcount, self.table.name, action)
        return r.rowcount

    def delete_file(self, id: str) -> None:
        """Delete a file, no-op if it does not exist"""
        self._delete("delete file", self.table.c.id == id)

    def delete_files(self, *ids: str) -> int:
        return self._delete("delete files", self.table.c.id.in_(ids))

    def delete_prefix(self, prefix: str) -> int:
        """Delete files whose id starts with prefix"""
        return self._delete("delete prefix", self._has_prefix(prefix))

    def delete_tagged(self, tag: str) -> int:
        return self._delete("delete tagged", self.table.c.tag == tag)

    def delete_before(self, before: datetime) -> int:
        """Delete files whose time is earlier than before"""
        return self._delete("delete before", self.table.c.time < before)

    def delete_prefix_before(self, prefix: str, before: datetime) -> int:
        return self._delete(
            "delete prefix before", self._has_prefix(prefix), self.table.c.time < before
        )

    def delete_tagged_before(self, tag: str, before: datetime) -> int:
        return self._delete(
            "delete tagged before", self.table.c.tag == tag, self.table.c.time < before
        )

    def delete_where(self, where: str, *args: Any, **params: Any) -> int:
        """
        Delete files matching a raw SQL condition.

        "?" placeholders are bound to args in order, ":name" placeholders
        to params. List and tuple values expand, e.g. "id IN ?".
        The condition is used as is and must come from a trusted source.
        """
        names: list[str] = []

        def positional(match: re.Match[str]) -> str:
            names.append(f"arg{len(names)}")
            return f":{names[-1]}"

        if args:
            where = re.sub(r"\?", positional, where)
            params.update(zip(names, args))

        with self._unit_of_work("delete where"):
            condition = sa.text(where).bindparams(
                *[
                    sa.bindparam(name, expanding=True)
                    for name, value in params.items()
                    if isinstance(value, (list, tuple))
                ]
            )
            r = self._execute(sa.delete(self.table).where(condition), params)

        logger.debug("Deleted %d file(s) from %s where %s", r.rowcount, self.table.name, where)
        return r.rowcount

    def delete_all(self) -> int:
        """Delete all files with a plain DELETE statement"""
        with self._unit_of_work("delete all"):
            r = self._execute(sa.delete(self.table))

        logger.warning("Deleted all %d file(s) from %s", r.rowcount, self.table.name)
        return r.rowcount

    def truncate(self) -> None:
        """
        Empty the table with TRUNCATE TABLE.
        This cannot be rolled back on most databases.
        SQLite has no TRUNCATE, a DELETE is issued there instead.
        """
        logger.warning("Truncating files table %s", self.table.name)
        with self._unit_of_work("truncate"):
            dialect = self.session.connection().dialect
            if dialect.name == "sqlite":
                self._execute(sa.delete(self.table))
            else:
                table = dialect.identifier_preparer.format_table(self.table)
                self._execute(sa.text(f"TRUNCATE TABLE {table}"))

    def _filtered(self, statement, prefix: str | None, tag: str | None):
        if prefix:
            statement = statement.where(self._has_prefix(prefix))
        if tag is not None:
            statement = statement.where(self.table.c.tag == tag)
        return statement

    def list_files(
        self,
        prefix: str | None = None,
        tag: str | None = None,
        order: str = "",
        offset: int = 0,
        limit: int | None = None,
    ) -> list[FileMetadata]:
        """
        List file metadata, optionally filtered by id prefix and tag.
        order is a comma separated list of columns, "-" prefixed for
        descending order, followed by the store's default order.
        """
        statement = self._filtered(sa.select(*self._metadata_columns()), prefix, tag)
        statement = apply_orders(statement, order, self.default_order)
        statement = statement.offset(offset).limit(limit)

        with self._unit_of_work("list files", write=False):
            rows = self._execute(statement).all()
        return [FileMetadata.model_validate(dict(row._mapping)) for row in rows]

    def count_files(self, prefix: str | None = None, tag: str | None = None) -> int:
        statement = self._filtered(
            sa.select(sa.func.count()).select_from(self.table), prefix, tag
        )
        with self._unit_of_work("count files", write=False):
            return self._execute(statement).scalar_one()
