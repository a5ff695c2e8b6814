from dispatch_migration.db.base import Base
from dispatch_migration.db.session import target_engine
from dispatch_migration.models import *  # noqa: F403


def init_db() -> None:
    Base.metadata.create_all(bind=target_engine)


if __name__ == "__main__":
    init_db()
