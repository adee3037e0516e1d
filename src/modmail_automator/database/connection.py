"""
Database connection management for the modmail autoresponder

Holds the de-duplication records for handled messages and rules backups.
"""
import os
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .models import Base

DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///modmail_automator.db')

def create_db_engine(url: Optional[str] = None) -> Engine:
    """Create an engine for the given URL, or DATABASE_URL"""
    url = url or DATABASE_URL
    connect_args = {}
    if url.startswith('sqlite'):
        # Delayed actions run from the host scheduler, possibly on another thread
        connect_args['check_same_thread'] = False
    return create_engine(url, connect_args=connect_args)

engine = create_db_engine()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def init_db(bind: Optional[Engine] = None) -> None:
    """Create any missing tables"""
    Base.metadata.create_all(bind=bind or engine)

def get_db_session() -> Session:
    """Get a new database session, closed by the caller"""
    return SessionLocal()

@contextmanager
def session_scope(factory=None) -> Iterator[Session]:
    """Session that commits on success and rolls back on error"""
    db = (factory or SessionLocal)()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
