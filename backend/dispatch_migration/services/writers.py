from __future__ import annotations

from typing import Any

from pydantic_core import to_jsonable_python
from sqlalchemy import inspect, insert
from sqlalchemy.orm import Session

from dispatch_migration.db.base import Base
from dispatch_migration.services.supabase import SupabaseRestClient


class SqlWriter:
    """Bulk ORM inserts through the target session; the caller commits."""

    name = "sql"
    atomic = True

    def __init__(self, session: Session):
        self.session = session

    def insert(self, model: type[Base], rows: list[dict[str, Any]]) -> int:
        if not rows:
            return 0
        self.session.execute(insert(model), rows)
        return len(rows)


def column_names(model: type[Base]) -> dict[str, str]:
    return {attr.key: attr.columns[0].name for attr in inspect(model).column_attrs}


class RestWriter:
    """Writes through PostgREST. Each call is its own transaction."""

    name = "rest"
    atomic = False

    def __init__(self, client: SupabaseRestClient):
        self.client = client

    def insert(self, model: type[Base], rows: list[dict[str, Any]]) -> int:
        if not rows:
            return 0
        names = column_names(model)
        payload = [
            {names.get(key, key): to_jsonable_python(value) for key, value in row.items()}
            for row in rows
        ]
        return self.client.insert(model.__tablename__, payload)
