"""
Interfaces to the external stores the sync engine depends on.
"""

from __future__ import annotations

import datetime
from abc import ABC, abstractmethod
from typing import Any

from .model import SyncDeletion
from .tables import Table

__all__ = [
    "RemoteStore",
    "BlobStore",
    "LocalStore",
]

Row = dict[str, Any]


class RemoteStore(ABC):
    """
    Implements interface to the shared remote record store: one record table
    per {obj}`Table` plus the append-only deletion log.

    Implementations raise {obj}`SchemaError` for missing tables or columns,
    {obj}`NetworkError` for transport failures and {obj}`RemoteError` (or
    {obj}`ConstraintError`) for rejected requests.
    """

    @abstractmethod
    def check_schema(self):
        """
        Verify the remote schema is reachable and initialized.
        """
        ...

    @abstractmethod
    def select_all(self, table: Table) -> list[Row]:
        """
        Retrieve all rows of table visible to the current user.
        """
        ...

    @abstractmethod
    def upsert(
        self, table: Table, rows: list[Row], *, on_conflict: str | None = None
    ) -> list[Row]:
        """
        Insert or update rows by primary key (or by `on_conflict` columns),
        returning rows as stored by the server.
        """
        ...

    @abstractmethod
    def delete_by_key(self, table: Table, keys: list[str | int]):
        """
        Delete rows by primary key.
        """
        ...

    @abstractmethod
    def insert_deletions(self, entries: list[SyncDeletion]):
        """
        Append entries to the deletion log.
        """
        ...

    @abstractmethod
    def select_deletions_since(self, since: datetime.datetime) -> list[Row]:
        """
        Retrieve deletion log entries with `deleted_at` at or after `since`.
        """
        ...


class BlobStore(ABC):
    """
    Implements interface to remote file storage for document contents.
    """

    @abstractmethod
    def remove(self, paths: list[str]):
        ...

    @abstractmethod
    def upload(self, path: str, data: bytes, *, overwrite: bool = False):
        ...

    @abstractmethod
    def download(self, path: str) -> bytes:
        ...


class LocalStore(ABC):
    """
    Implements interface to device-local persistence: one blob per owner for
    the nested graph, one for the pending deletions and one for locally
    suppressed documents, plus per-document metadata and file contents.

    Loaders return `None` if nothing was stored yet.
    """

    @abstractmethod
    def load_data(self, owner_id: str) -> Any | None:
        ...

    @abstractmethod
    def save_data(self, owner_id: str, data: dict[str, Any]):
        ...

    @abstractmethod
    def load_deleted_ids(self, owner_id: str) -> Any | None:
        ...

    @abstractmethod
    def save_deleted_ids(self, owner_id: str, deleted_ids: dict[str, Any]):
        ...

    @abstractmethod
    def load_suppressed(self, owner_id: str) -> list[str] | None:
        """
        Load ids of documents deleted on this device only.
        """
        ...

    @abstractmethod
    def save_suppressed(self, owner_id: str, document_ids: list[str]):
        ...

    @abstractmethod
    def get_document_meta(self, document_id: str) -> dict[str, Any] | None:
        ...

    @abstractmethod
    def put_document_meta(self, document_id: str, meta: dict[str, Any]):
        ...

    @abstractmethod
    def get_document_file(self, document_id: str) -> bytes | None:
        ...

    @abstractmethod
    def put_document_file(self, document_id: str, data: bytes):
        ...

    @abstractmethod
    def delete_document(self, document_id: str):
        """
        Remove document's metadata and file contents, if any.
        """
        ...
