"""Thin PostgREST client for the Supabase target."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

import httpx
import structlog

from dispatch_migration.core.errors import RestClientError

logger = structlog.get_logger(__name__)


def _parse_total(content_range: str | None) -> int:
    # "0-24/3573" or "*/0"
    if not content_range or "/" not in content_range:
        return 0
    total = content_range.rsplit("/", 1)[1]
    return int(total) if total.isdigit() else 0


class SupabaseRestClient:
    def __init__(
        self,
        base_url: str,
        service_key: str,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self._client = httpx.Client(
            base_url=f"{base_url.rstrip('/')}/rest/v1",
            headers={
                "apikey": service_key,
                "Authorization": f"Bearer {service_key}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    def __enter__(self) -> "SupabaseRestClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, table: str, **kwargs) -> httpx.Response:
        try:
            resp = self._client.request(method, f"/{table}", **kwargs)
        except httpx.HTTPError as exc:
            raise RestClientError(None, str(exc), table) from exc
        if not resp.is_success:
            raise RestClientError(resp.status_code, resp.text, table)
        return resp

    def insert(self, table: str, rows: list[dict[str, Any]]) -> int:
        if not rows:
            return 0
        self._request(
            "POST",
            table,
            json=rows,
            headers={"Prefer": "return=minimal"},
        )
        logger.debug("rest_insert", table=table, rows=len(rows))
        return len(rows)

    def count(self, table: str, filters: dict[str, str] | None = None) -> int:
        resp = self._request(
            "GET",
            table,
            params={"select": "*", **(filters or {})},
            headers={"Prefer": "count=exact", "Range-Unit": "items", "Range": "0-0"},
        )
        return _parse_total(resp.headers.get("Content-Range"))

    def select(
        self,
        table: str,
        columns: str = "*",
        filters: dict[str, str] | None = None,
        page_size: int = 1000,
    ) -> Iterator[dict[str, Any]]:
        offset = 0
        while True:
            resp = self._request(
                "GET",
                table,
                params={"select": columns, **(filters or {})},
                headers={
                    "Range-Unit": "items",
                    "Range": f"{offset}-{offset + page_size - 1}",
                },
            )
            rows = resp.json()
            yield from rows
            if len(rows) < page_size:
                return
            offset += page_size
