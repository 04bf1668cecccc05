import logging
import threading
from typing import Generator, Optional
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker, Session

from clubs_backend.settings import settings

logger = logging.getLogger(__name__)

_database_options = {
    "pool_pre_ping": True,
    "pool_size": 10,
    "max_overflow": 5,
    "pool_timeout": 30,
    "pool_recycle": 300
}

_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None
_lock = threading.Lock()

def get_engine() -> Engine:
    global _engine, _SessionLocal

    if _engine is None:
        with _lock:
            if _engine is None:
                url = settings.database_url()
                options = _database_options if url.startswith("postgresql") else {}
                _engine = create_engine(url, **options)
                _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_engine)
    return _engine

def get_session_factory() -> sessionmaker:
    get_engine()
    return _SessionLocal

def open_session() -> Session:
    return get_session_factory()()

def get_db() -> Generator[Session, None, None]:

    db = open_session()

    try:
        yield db
    except OperationalError as e:
        logger.error(f"Database connection failed: {e}")
        db.rollback()
        raise
    finally:
        db.close()
