import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, create_engine
from sqlmodel.pool import StaticPool
from api.xfs.services import DBFileStore
from core.config import get_settings
from core.deps import get_db
from main import app


@pytest.fixture(name="engine")
def engine_fixture():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    yield engine
    engine.dispose()


@pytest.fixture(name="session")
def session_fixture(engine):
    with Session(engine) as session:
        DBFileStore(session, table=get_settings().XFS_TABLE).create_table()
        yield session


@pytest.fixture(name="store")
def store_fixture(session: Session) -> DBFileStore:
    """File store bound to the configured files table"""
    return DBFileStore(session, table=get_settings().XFS_TABLE)


@pytest.fixture(name="client")
def client_fixture(session: Session):
    def get_db_override():
        return session

    app.dependency_overrides[get_db] = get_db_override

    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()
