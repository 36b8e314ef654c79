"""
In-memory stand-ins for the remote stores and the HTTP transport.
"""

from __future__ import annotations

import datetime
import json
import threading
from typing import Any

import requests

from docket_sync import (
    BlobStore,
    RemoteError,
    RemoteStore,
    SyncDeletion,
    Table,
    timestamp_ms,
)

__all__ = [
    "OWNER_ID",
    "BASE",
    "at",
    "iso",
    "FakeRemoteStore",
    "FakeBlobStore",
    "FakeSession",
    "make_response",
]

OWNER_ID = "owner-1"

BASE = datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc)


def at(ms: int = 0) -> datetime.datetime:
    """
    Get timestamp offset from a fixed base time.
    """
    return BASE + datetime.timedelta(milliseconds=ms)


def iso(ms: int = 0) -> str:
    return at(ms).isoformat()


class FakeRemoteStore(RemoteStore):
    """
    Remote store keeping rows in memory and recording every call.

    Failures are scripted through `failures`, keyed by operation and
    optionally table, e.g. `"delete:cases"` or `"check_schema"`.
    """

    rows: dict[Table, list[dict[str, Any]]]
    deletions: list[dict[str, Any]]
    calls: list[tuple[str, str | None]]
    conflict_keys: dict[str, str | None]
    failures: dict[str, Exception]

    def __init__(
        self,
        rows: dict[Table, list[dict[str, Any]]] | None = None,
        deletions: list[dict[str, Any]] | None = None,
    ):
        self.rows = {table: [] for table in Table}
        self.rows.update(rows or {})
        self.deletions = list(deletions or [])
        self.calls = []
        self.conflict_keys = {}
        self.failures = {}
        self._lock = threading.Lock()

    def check_schema(self):
        self._record("check_schema")

    def select_all(self, table: Table) -> list[dict[str, Any]]:
        self._record("select", table)
        return [dict(row) for row in self.rows[table]]

    def upsert(
        self,
        table: Table,
        rows: list[dict[str, Any]],
        *,
        on_conflict: str | None = None,
    ) -> list[dict[str, Any]]:
        self._record("upsert", table)
        self.conflict_keys[str(table)] = on_conflict

        # server adds a column of its own
        echoed = [dict(row, server_rev=1) for row in rows]

        stored = {str(row[table.primary_key]): row for row in self.rows[table]}
        for row in echoed:
            stored[str(row[table.primary_key])] = row
        self.rows[table] = list(stored.values())

        return [dict(row) for row in echoed]

    def delete_by_key(self, table: Table, keys: list[str | int]):
        self._record("delete", table)

        deleted = {str(k) for k in keys}
        self.rows[table] = [
            row
            for row in self.rows[table]
            if str(row[table.primary_key]) not in deleted
        ]

    def insert_deletions(self, entries: list[SyncDeletion]):
        self._record("insert_deletions")
        self.deletions += [entry.model_dump(mode="json") for entry in entries]

    def select_deletions_since(
        self, since: datetime.datetime
    ) -> list[dict[str, Any]]:
        self._record("select_deletions")
        return [
            dict(entry)
            for entry in self.deletions
            if timestamp_ms(entry.get("deleted_at")) >= timestamp_ms(since)
        ]

    def ops(self, op: str) -> list[str | None]:
        """
        Get tables of recorded calls of the given operation, in order.
        """
        return [table for name, table in self.calls if name == op]

    def _record(self, op: str, table: Table | None = None):
        with self._lock:
            self.calls.append((op, str(table) if table else None))

        failure = self.failures.get(f"{op}:{table}") if table else None
        failure = failure or self.failures.get(op)

        if failure is not None:
            raise failure


class FakeBlobStore(BlobStore):
    """
    File storage keeping blobs in memory.
    """

    files: dict[str, bytes]
    removed: list[str]
    fail: bool

    def __init__(self, files: dict[str, bytes] | None = None):
        self.files = dict(files or {})
        self.removed = []
        self.fail = False

    def remove(self, paths: list[str]):
        self._check()
        for path in paths:
            self.files.pop(path, None)
            self.removed.append(path)

    def upload(self, path: str, data: bytes, *, overwrite: bool = False):
        self._check()
        if path in self.files and not overwrite:
            raise RemoteError(f"File exists: {path}")
        self.files[path] = data

    def download(self, path: str) -> bytes:
        self._check()
        if path not in self.files:
            raise RemoteError(f"Object not found: {path}")
        return self.files[path]

    def _check(self):
        if self.fail:
            raise RemoteError("Storage unavailable")


def make_response(
    status_code: int = 200,
    body: Any = None,
    *,
    content: bytes | None = None,
    reason: str = "",
) -> requests.Response:
    """
    Build a response as returned by the transport.
    """
    response = requests.Response()
    response.status_code = status_code
    response.reason = reason
    response._content = (
        content
        if content is not None
        else json.dumps(body).encode() if body is not None else b""
    )
    return response


class FakeSession(requests.Session):
    """
    Session returning queued responses and recording requests.
    """

    responses: list[requests.Response | Exception]
    sent: list[dict[str, Any]]

    def __init__(self, *responses: requests.Response | Exception):
        super().__init__()
        self.responses = list(responses)
        self.sent = []

    def request(self, method, url, **kwargs):  # type: ignore[override]
        self.sent.append({"method": method, "url": url, **kwargs})

        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response
