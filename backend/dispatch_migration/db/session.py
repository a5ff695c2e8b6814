from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from dispatch_migration.core.config import settings

source_engine = create_engine(
    settings.source_database_url,
    echo=settings.echo_sql,
    pool_pre_ping=True,
    pool_size=2,
    max_overflow=0,
)
target_engine = create_engine(
    settings.target_database_url,
    echo=settings.echo_sql,
    pool_pre_ping=True,
    pool_size=2,
    max_overflow=0,
)

SourceSession = sessionmaker(bind=source_engine, autoflush=False, expire_on_commit=False)
TargetSession = sessionmaker(bind=target_engine, autoflush=False, expire_on_commit=False)
