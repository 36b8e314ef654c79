"""
Orchestration of a sync round between local data and the remote store.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from logging import Logger
from typing import Callable, Generator

from .deletions import apply_deletions
from .documents import carry_residency
from .exceptions import (
    ConfigurationError,
    ConstraintError,
    NetworkError,
    SchemaError,
    SyncError,
)
from .flat import FlatData, flatten, reconstruct
from .merge import merge_all, merge_for_refresh
from .messages import Locale, Message, translate
from .model import (
    AppData,
    BaseRecord,
    CaseDocument,
    DeletedIds,
    SyncDeletion,
    parse_records,
    utcnow,
)
from .orphans import prune_orphans
from .store import BlobStore, RemoteStore
from .tables import (
    DELETE_ORDER,
    DELETION_RETENTION,
    UPSERT_ORDER,
    UPSERT_PARALLEL,
    Table,
)

__all__ = [
    "SyncStatus",
    "StatusCallback",
    "SyncResult",
    "Synchronizer",
]

# tables whose rows keep their own user_id rather than the owner's
_OWN_USER_ID = {Table.PROFILES, Table.SITE_FINANCES}

# primary collections checked to detect a fresh device
_PRIMARY_TABLES = [
    Table.CLIENTS,
    Table.ADMIN_TASKS,
    Table.APPOINTMENTS,
    Table.ACCOUNTING_ENTRIES,
    Table.INVOICES,
    Table.CASE_DOCUMENTS,
]


class SyncStatus(Enum):
    """
    State of the synchronizer.
    """

    LOADING = "loading"
    """Not yet synced since startup"""

    SYNCING = "syncing"
    """Sync or refresh in progress"""

    SYNCED = "synced"
    """Last sync or refresh succeeded"""

    ERROR = "error"
    """Last sync or refresh failed; may be retried"""

    UNCONFIGURED = "unconfigured"
    """No remote store configured"""

    UNINITIALIZED = "uninitialized"
    """Remote schema missing or mismatched"""


StatusCallback = Callable[[SyncStatus, str | None], None]


@dataclass
class SyncResult:
    """
    Outcome of a successful sync or refresh.
    """

    data: AppData
    """Merged nested graph to keep locally"""

    synced_deletions: DeletedIds = field(default_factory=DeletedIds)
    """Pending deletions which were applied remotely"""

    upserted: int = 0
    """Number of records pushed"""

    deleted: int = 0
    """Number of records deleted remotely"""

    pushed: bool = False
    """Whether local edits were reconciled with the remote store"""

    fast_path: bool = False
    """Whether the remote snapshot was adopted wholesale"""


class Synchronizer:
    """
    Runs sync rounds against a remote store. At most one sync or refresh is
    in flight at a time; concurrent attempts are refused.

    Status changes are reported through `on_status` with a localized
    message.
    """

    remote: RemoteStore | None
    """Remote record store, `None` if not configured"""

    blobs: BlobStore | None
    """Remote file storage"""

    owner_id: str | None
    """Effective owner, `None` if not authenticated"""

    locale: Locale

    status: SyncStatus
    message: str | None
    """Message accompanying current status"""

    last_error: Exception | None
    """Exception which caused the last failure"""

    _on_status: StatusCallback | None
    _lock: threading.Lock
    _max_workers: int | None
    _logger: Logger

    def __init__(
        self,
        remote: RemoteStore | None,
        blobs: BlobStore | None = None,
        *,
        owner_id: str | None = None,
        locale: Locale = "en",
        on_status: StatusCallback | None = None,
        max_workers: int | None = None,
        logger: Logger | None = None,
    ):
        self.remote = remote
        self.blobs = blobs
        self.owner_id = owner_id
        self.locale = locale
        self.status = SyncStatus.LOADING
        self.message = None
        self.last_error = None

        self._on_status = on_status
        self._lock = threading.Lock()
        self._max_workers = max_workers
        self._logger = logger or logging.getLogger()

    def sync(
        self,
        data: AppData,
        deleted_ids: DeletedIds,
        *,
        suppressed: set[str] | None = None,
        online: bool = True,
        auth_loading: bool = False,
    ) -> SyncResult | None:
        """
        Run a full sync: fetch, merge, delete, push. Returns `None` if the
        sync was refused or failed, in which case local data must be kept
        as it was.
        """
        if auth_loading:
            return None

        with self._guard() as acquired:
            if not acquired:
                self._logger.debug("Sync already in progress")
                return None

            if not online:
                self._set_status(SyncStatus.ERROR, self._t(Message.OFFLINE))
                return None

            if not self.owner_id:
                self._set_status(
                    SyncStatus.ERROR, self._t(Message.NOT_AUTHENTICATED)
                )
                return None

            self._set_status(SyncStatus.SYNCING, self._t(Message.CHECKING_SERVER))

            if not self._check_schema():
                return None

            try:
                result = self._sync(data, deleted_ids, suppressed or set())
            except Exception as e:
                self._fail(e)
                return None

            self._set_status(SyncStatus.SYNCED)
            return result

    def refresh(
        self,
        data: AppData,
        deleted_ids: DeletedIds,
        *,
        suppressed: set[str] | None = None,
        online: bool = True,
        auth_loading: bool = False,
    ) -> SyncResult | None:
        """
        Pull remote changes without pushing or deleting anything. Silently
        skipped if a sync is in progress or the remote store isn't reachable.
        """
        if auth_loading or not online or not self.owner_id:
            return None

        if self.remote is None:
            self._logger.debug("Remote store not configured, skipping refresh")
            return None

        with self._guard() as acquired:
            if not acquired:
                self._logger.debug("Sync in progress, skipping refresh")
                return None

            self._set_status(SyncStatus.SYNCING, self._t(Message.REFRESHING))

            try:
                remote, tombstones = self._fetch(self.remote)

                local = apply_deletions(
                    flatten(data), tombstones, logger=self._logger
                )
                merged = merge_for_refresh(
                    local, remote, deleted_ids, suppressed
                )
                result = SyncResult(
                    data=reconstruct(merged, logger=self._logger)
                )
            except Exception as e:
                self.last_error = e
                self._logger.error(f"Refresh failed: {e}")
                self._set_status(
                    SyncStatus.ERROR,
                    self._t(Message.REFRESH_FAILED, detail=self._describe(e)),
                )
                return None

            self._set_status(SyncStatus.SYNCED)
            return result

    @contextmanager
    def _guard(self) -> Generator[bool, None, None]:
        """
        Acquire the single-flight guard without blocking, yielding whether
        it was acquired.
        """
        if self.status is SyncStatus.SYNCING or not self._lock.acquire(
            blocking=False
        ):
            yield False
            return

        try:
            yield True
        finally:
            self._lock.release()

    def _check_schema(self) -> bool:
        if self.remote is None:
            self.last_error = ConfigurationError("Remote store not configured")
            self._set_status(
                SyncStatus.UNCONFIGURED, self._t(Message.UNCONFIGURED)
            )
            return False

        try:
            self.remote.check_schema()
        except SchemaError as e:
            self.last_error = e
            self._set_status(
                SyncStatus.UNINITIALIZED,
                self._t(Message.UNINITIALIZED, detail=e.message),
            )
            return False
        except Exception as e:
            self.last_error = e
            self._logger.warning(f"Schema check failed: {e}")
            self._set_status(
                SyncStatus.ERROR,
                self._t(Message.CONNECTION_FAILED, detail=self._describe(e)),
            )
            return False

        return True

    def _sync(
        self, data: AppData, deleted_ids: DeletedIds, suppressed: set[str]
    ) -> SyncResult:
        remote_store = self.remote
        assert remote_store is not None

        self._set_status(SyncStatus.SYNCING, self._t(Message.FETCHING))
        remote, tombstones = self._fetch(remote_store)

        if suppressed:
            remote[Table.CASE_DOCUMENTS] = [
                doc
                for doc in remote[Table.CASE_DOCUMENTS]
                if doc.key not in suppressed
            ]

        local = apply_deletions(flatten(data), tombstones, logger=self._logger)

        if self._is_fresh(local) and not remote.is_empty and deleted_ids.is_empty:
            self._logger.info(
                f"No local data, adopting remote snapshot: {remote.summary}"
            )
            return SyncResult(
                data=reconstruct(remote, logger=self._logger),
                pushed=True,
                fast_path=True,
            )

        result = prune_orphans(
            merge_all(local, remote, deleted_ids, logger=self._logger),
            remote,
            logger=self._logger,
        )

        synced = DeletedIds()

        if paths := [str(p) for p in deleted_ids.document_paths]:
            self._remove_files(paths, synced)

        deleted = self._delete(remote_store, deleted_ids, synced)

        self._set_status(SyncStatus.SYNCING, self._t(Message.UPLOADING))
        self._logger.debug(f"Pushing upserts: {result.upserts.summary}")

        echoes = self._push(remote_store, result.upserts)
        merged = self._reconcile(result.merged, echoes)

        return SyncResult(
            data=reconstruct(merged, logger=self._logger),
            synced_deletions=synced,
            upserted=echoes.count,
            deleted=deleted,
            pushed=True,
        )

    def _fetch(
        self, remote_store: RemoteStore
    ) -> tuple[FlatData, list[SyncDeletion]]:
        """
        Fetch all tables and recent deletion log entries concurrently.
        """
        since = utcnow() - DELETION_RETENTION
        remote = FlatData()

        with ThreadPoolExecutor(max_workers=self._max_workers) as executor:
            deletions_future = executor.submit(
                remote_store.select_deletions_since, since
            )
            futures = {
                table: executor.submit(remote_store.select_all, table)
                for table in Table
            }

            for table, future in futures.items():
                with _for_table(table):
                    rows = future.result()

                remote[table] = parse_records(
                    table.record_cls,
                    rows,
                    logger=self._logger,
                    context=f"remote {table}",
                )

            tombstones = parse_records(
                SyncDeletion,
                deletions_future.result(),
                logger=self._logger,
                context="deletion log",
            )

        self._logger.debug(
            f"Fetched {remote.summary} and {len(tombstones)} deletion(s)"
        )

        return remote, tombstones

    def _remove_files(self, paths: list[str], synced: DeletedIds):
        """
        Remove files of deleted documents. Failure is tolerated; the paths
        are retried on the next sync.
        """
        if self.blobs is None:
            self._logger.warning(
                f"No file storage configured, keeping {len(paths)} file deletion(s) pending"
            )
            return

        self._set_status(SyncStatus.SYNCING, self._t(Message.DELETING_FILES))

        try:
            self.blobs.remove(paths)
        except SyncError as e:
            self._logger.warning(f"Failed to remove document files: {e}")
            return

        synced.add("documentPaths", *paths)

    def _delete(
        self, remote_store: RemoteStore, deleted_ids: DeletedIds, synced: DeletedIds
    ) -> int:
        """
        Delete pending records remotely, children before parents, logging
        each deletion to the deletion log.
        """
        pending = [
            (table, keys)
            for table in DELETE_ORDER
            if (keys := deleted_ids.get(table.deletion_key))
        ]

        if not pending:
            return 0

        self._set_status(SyncStatus.SYNCING, self._t(Message.DELETING))

        count = 0
        for table, keys in pending:
            if table.tombstoned:
                self._log_deletions(remote_store, table, keys)

            with _for_table(table):
                remote_store.delete_by_key(table, list(keys))

            synced.add(table.deletion_key, *keys)
            count += len(keys)

            self._logger.debug(f"Deleted {len(keys)} record(s) from {table}")

        return count

    def _log_deletions(
        self, remote_store: RemoteStore, table: Table, keys: list[str | int]
    ):
        now = utcnow()
        entries = [
            SyncDeletion(
                table_name=str(table),
                record_id=key,
                user_id=self.owner_id,
                deleted_at=now,
            )
            for key in keys
        ]

        try:
            remote_store.insert_deletions(entries)
        except SyncError as e:
            self._logger.warning(f"Could not log deletions from {table}: {e}")

    def _push(self, remote_store: RemoteStore, upserts: FlatData) -> FlatData:
        """
        Push upserts: hierarchical tables in order, then independent tables
        concurrently. Returns records as echoed by the server.
        """
        echoes = FlatData()

        for table in UPSERT_ORDER:
            echoes[table] = self._upsert(remote_store, table, upserts[table])

        with ThreadPoolExecutor(max_workers=self._max_workers) as executor:
            futures = {
                table: executor.submit(
                    self._upsert, remote_store, table, upserts[table]
                )
                for table in UPSERT_PARALLEL
            }

            for table, future in futures.items():
                echoes[table] = future.result()

        return echoes

    def _upsert(
        self, remote_store: RemoteStore, table: Table, records: list[BaseRecord]
    ) -> list[BaseRecord]:
        rows = [
            self._to_row(table, record)
            for record in records
            if not (isinstance(record, CaseDocument) and record.is_local_only)
        ]

        if not rows:
            return []

        on_conflict = "user_id,name" if table is Table.ASSISTANTS else None

        with _for_table(table):
            echoed = remote_store.upsert(table, rows, on_conflict=on_conflict)

        self._logger.debug(f"Upserted {len(rows)} record(s) to {table}")

        return parse_records(
            table.record_cls,
            echoed,
            logger=self._logger,
            context=f"upsert echo of {table}",
        )

    def _to_row(self, table: Table, record: BaseRecord) -> dict:
        row = record.to_row()
        if table not in _OWN_USER_ID:
            row["user_id"] = self.owner_id
        return row

    def _reconcile(self, merged: FlatData, echoes: FlatData) -> FlatData:
        """
        Replace merged records with their server echo, if any.
        """
        result = merged.copy()

        for table in Table:
            echo = {record.key: record for record in echoes[table]}
            if not echo:
                continue

            records: list[BaseRecord] = []
            for record in merged[table]:
                echoed = echo.get(record.key)

                if echoed is None:
                    records.append(record)
                elif isinstance(echoed, CaseDocument):
                    assert isinstance(record, CaseDocument)
                    records.append(carry_residency(echoed, record))
                else:
                    records.append(echoed)

            result[table] = records

        return result

    def _is_fresh(self, local: FlatData) -> bool:
        return all(not local[table] for table in _PRIMARY_TABLES)

    def _fail(self, e: Exception):
        """
        Classify exception which aborted a sync and report it.
        """
        self.last_error = e
        detail = self._describe(e)
        raw = e.message if isinstance(e, SyncError) else str(e)

        if not isinstance(e, ConstraintError) and (
            isinstance(e, SchemaError)
            or ("column" in raw and "does not exist" in raw)
            or "relation" in raw
        ):
            self._logger.error(f"Schema mismatch during sync: {e}")
            self._set_status(
                SyncStatus.UNINITIALIZED,
                self._t(Message.SCHEMA_MISMATCH, detail=detail),
            )
            return

        if isinstance(e, NetworkError):
            self._logger.warning(f"Network failure during sync: {e}")
        else:
            self._logger.error(f"Sync failed: {e}", exc_info=e)

        if table := getattr(e, "table", None):
            detail = self._t(Message.TABLE_PREFIX, table=table, detail=detail)

        self._set_status(
            SyncStatus.ERROR, self._t(Message.SYNC_FAILED, detail=detail)
        )

    def _describe(self, e: Exception) -> str:
        """
        Get human-readable description of exception without table prefix.
        """
        raw = e.message if isinstance(e, SyncError) else str(e)

        if isinstance(e, NetworkError) or "failed to fetch" in raw.lower():
            return self._t(Message.NETWORK)

        return raw or self._t(Message.UNEXPECTED)

    def _set_status(self, status: SyncStatus, message: str | None = None):
        self.status = status
        self.message = message

        self._logger.debug(
            f"Sync status: {status.value}{f' ({message})' if message else ''}"
        )

        if self._on_status is not None:
            self._on_status(status, message)

    def _t(self, message: Message, **kwargs: str) -> str:
        return translate(message, self.locale, **kwargs)


@contextmanager
def _for_table(table: Table) -> Generator[None, None, None]:
    """
    Attach table name to errors raised within the context.
    """
    try:
        yield
    except SyncError as e:
        if e.table is not None:
            raise
        raise type(e)(e.message, table=str(table)) from e
