"""
Define functions/aliases for dependency injection
"""
from collections.abc import Generator
from typing import Annotated, TypeAlias
from sqlmodel import Session
from fastapi import Depends

from api.xfs.services import DBFileStore
from core.config import get_settings
from core.db import get_engine

# Define db dependency
def get_db() -> Generator[Session, None, None]:
  with Session(get_engine()) as session:
    yield session

SessionDep: TypeAlias = Annotated[Session, Depends(get_db)]

def get_file_store(session: SessionDep) -> DBFileStore:
  settings = get_settings()
  return DBFileStore(
    session,
    table=settings.XFS_TABLE,
    default_order=settings.XFS_DEFAULT_ORDER,
  )

FileStoreDep: TypeAlias = Annotated[DBFileStore, Depends(get_file_store)]
