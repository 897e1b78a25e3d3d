"""
Initialize the database.
Creates the files table if it does not exist yet.
"""
from sqlmodel import Session
from core.config import get_settings
from core.db import get_engine
from core.logger import logger
from api.xfs.services import DBFileStore


def create_files_table(table: str | None = None):
  """
  Create the files table, defaults to the configured XFS_TABLE
  """
  with Session(get_engine()) as session:
    DBFileStore(session, table=table or get_settings().XFS_TABLE).create_table()


def main():
  logger.info("Create tables...")
  create_files_table()


if __name__ == "__main__":
  main()
