"""
Database configuration
"""
from sqlmodel import create_engine, Session
from sqlmodel.pool import StaticPool
from core.config import get_settings

# Create engine lazily to allow test configuration to be applied
_engine = None

def get_engine():
    """
    Get or create the database engine.
    This lazy initialization allows test settings to be applied properly.
    """
    global _engine
    if _engine is None:
        uri = str(get_settings().SQLALCHEMY_DATABASE_URI)
        if uri in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise each thread sees its own empty database
            _engine = create_engine(
                uri, echo=False, connect_args={"check_same_thread": False}, poolclass=StaticPool
            )
        else:
            _engine = create_engine(uri, echo=False)
    return _engine

def reset_engine():
    """
    Reset the engine to None.
    This is useful for tests that need to switch between different settings.
    """
    global _engine
    if _engine is not None:
        _engine.dispose()
    _engine = None

# Yield session
def get_session():
    with Session(get_engine()) as session:
        yield session
