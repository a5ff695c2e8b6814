from collections.abc import Generator

from sqlalchemy.orm import sessionmaker

from dispatch_migration.db.session import SourceSession, TargetSession


def get_source_db() -> Generator:
    db = SourceSession()
    try:
        yield db
    finally:
        db.close()


def get_target_db() -> Generator:
    db = TargetSession()
    try:
        yield db
    finally:
        db.close()


def get_session_factories() -> tuple[sessionmaker, sessionmaker]:
    """Factories for work that outlives the request (background runs)."""
    return SourceSession, TargetSession
