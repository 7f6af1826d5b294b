from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

import config
from errors import StorageFailure
from logging_setup import get_logger

logger = get_logger(__name__)


def make_engine(url: str):
    connect_args = {}
    if url.startswith("sqlite"):
        # FastAPI fuehrt sync-Endpoints im Threadpool aus
        connect_args["check_same_thread"] = False
    return create_engine(url, connect_args=connect_args)


engine = make_engine(config.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind=None) -> None:
    # Importe registrieren die Tabellen an Base.metadata
    from models import Base
    import task_models  # noqa: F401
    import blob_store  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)


@contextmanager
def storage_errors(db: Session, action: str):
    """Roll back and re-raise driver errors as StorageFailure."""
    try:
        yield
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Storage error during %s: %s", action, exc)
        raise StorageFailure(f"Storage error during {action}") from exc
