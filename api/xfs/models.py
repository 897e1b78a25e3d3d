"""
Models for the file store
"""

import stat
from datetime import datetime
from typing import List
from sqlmodel import SQLModel
from pydantic import ConfigDict
import sqlalchemy as sa


# Columns a caller may sort or filter file listings by
FILE_COLUMNS = ("id", "name", "ext", "tag", "size", "time")


def files_table(name: str, metadata: sa.MetaData | None = None) -> sa.Table:
    """
    Build the definition of a files table.

    The table name is chosen by the caller so that several stores
    can live side by side in one database.
    """
    if metadata is None:
        metadata = sa.MetaData()

    return sa.Table(
        name,
        metadata,
        sa.Column("id", sa.String(1024), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("ext", sa.String(64), nullable=False, default=""),
        sa.Column("tag", sa.String(255), nullable=False, default=""),
        sa.Column("time", sa.DateTime(), nullable=False, index=True),
        sa.Column("size", sa.BigInteger(), nullable=False, default=0),
        sa.Column("data", sa.LargeBinary(), nullable=True),
    )


class FileMetadata(SQLModel):
    """
    Metadata of a stored file, without its content.
    Also serves as the stat result of an opened file.
    """
    id: str
    name: str
    ext: str = ""
    tag: str = ""
    size: int = 0
    time: datetime

    model_config = ConfigDict(from_attributes=True)

    @property
    def mod_time(self) -> datetime:
        return self.time

    @property
    def is_dir(self) -> bool:
        return False

    @property
    def mode(self) -> int:
        return stat.S_IFREG | 0o444


class FileWithPayload(FileMetadata):
    """A stored file including its content"""
    data: bytes = b""


class FileListing(SQLModel):
    """Paginated file listing"""
    data: List[FileMetadata]
    total_items: int
    offset: int
    limit: int | None
