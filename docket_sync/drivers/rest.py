"""
Remote record store accessed through a PostgREST-style HTTP API.
"""

from __future__ import annotations

import datetime
from typing import Any

from ..core.exceptions import RemoteError
from ..core.model import SyncDeletion
from ..core.store import RemoteStore
from ..core.tables import Table
from .http import HttpClient

__all__ = [
    "RestRemoteStore",
]

DELETIONS_TABLE = "sync_deletions"

SCHEMA_SENTINEL = Table.PROFILES
"""
Table queried to check whether the remote schema is initialized.
"""


class RestRemoteStore(HttpClient, RemoteStore):
    """
    Implements {obj}`RemoteStore` on top of PostgREST: one endpoint per table
    under `/rest/v1`.
    """

    page_size: int = 1000
    """
    Rows fetched per request; tables are fetched in pages of this size.
    """

    def check_schema(self):
        self.request(
            "GET",
            self._path(str(SCHEMA_SENTINEL)),
            table=str(SCHEMA_SENTINEL),
            params={"select": "id", "limit": "1"},
        )

    def select_all(self, table: Table) -> list[dict[str, Any]]:
        rows: list[dict[str, Any]] = []
        offset = 0

        while True:
            page = self._json_list(
                self.request(
                    "GET",
                    self._path(str(table)),
                    table=str(table),
                    params={
                        "select": "*",
                        "order": table.primary_key,
                        "limit": str(self.page_size),
                        "offset": str(offset),
                    },
                ),
                str(table),
            )

            rows += page
            offset += len(page)

            if len(page) < self.page_size:
                return rows

    def upsert(
        self,
        table: Table,
        rows: list[dict[str, Any]],
        *,
        on_conflict: str | None = None,
    ) -> list[dict[str, Any]]:
        if not rows:
            return []

        params = {"on_conflict": on_conflict} if on_conflict else None

        response = self.request(
            "POST",
            self._path(str(table)),
            table=str(table),
            params=params,
            json=rows,
            headers={
                "Prefer": "resolution=merge-duplicates,return=representation"
            },
        )

        return self._json_list(response, str(table))

    def delete_by_key(self, table: Table, keys: list[str | int]):
        if not keys:
            return

        self.request(
            "DELETE",
            self._path(str(table)),
            table=str(table),
            params={table.primary_key: f"in.({_quote_list(keys)})"},
        )

    def insert_deletions(self, entries: list[SyncDeletion]):
        if not entries:
            return

        self.request(
            "POST",
            self._path(DELETIONS_TABLE),
            table=DELETIONS_TABLE,
            json=[
                entry.model_dump(mode="json", exclude_none=True)
                for entry in entries
            ],
            headers={"Prefer": "return=minimal"},
        )

    def select_deletions_since(
        self, since: datetime.datetime
    ) -> list[dict[str, Any]]:
        response = self.request(
            "GET",
            self._path(DELETIONS_TABLE),
            table=DELETIONS_TABLE,
            params={"select": "*", "deleted_at": f"gte.{since.isoformat()}"},
        )

        return self._json_list(response, DELETIONS_TABLE)

    def _path(self, table: str) -> str:
        return f"/rest/v1/{table}"

    def _json_list(self, response, table: str) -> list[dict[str, Any]]:
        try:
            body = response.json()
        except ValueError as e:
            raise RemoteError(f"Invalid JSON response: {e}", table=table) from e

        if not isinstance(body, list):
            raise RemoteError(
                f"Expected list of rows, got {type(body).__name__}", table=table
            )

        return body


def _quote_list(keys: list[str | int]) -> str:
    """
    Format keys for an `in.(...)` filter, quoting each one.
    """

    def quote(key: str | int) -> str:
        escaped = str(key).replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'

    return ",".join(quote(key) for key in keys)
