"""
Per-table reconciliation of local and remote flat snapshots.
"""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass, field
from logging import Logger

from .documents import carry_residency, mark_local_only
from .flat import FlatData
from .model import (
    BaseRecord,
    CaseDocument,
    DeletedIds,
    DocumentState,
    timestamp_ms,
    utcnow,
)
from .tables import DOCUMENT_EXPIRY, Table

__all__ = [
    "MergeResult",
    "merge_table",
    "merge_all",
    "merge_for_refresh",
]


@dataclass
class MergeResult:
    """
    Outcome of merging all tables.
    """

    upserts: FlatData = field(default_factory=FlatData)
    """Local records to push to the remote store"""

    merged: FlatData = field(default_factory=FlatData)
    """Authoritative records to keep locally"""


def merge_table(
    table: Table,
    local: list[BaseRecord],
    remote: list[BaseRecord],
    deleted: DeletedIds,
    *,
    logger: Logger | None = None,
) -> tuple[list[BaseRecord], list[BaseRecord]]:
    """
    Merge local and remote records of one table under last-write-wins,
    returning `(upserts, merged)`.

    Records pending local deletion, or whose structural parent is pending
    local deletion, are never pushed nor kept. Remote wins ties.
    """
    logger = logger or logging.getLogger()

    pending = deleted.key_set(table.deletion_key)
    parent_pending: set[str] = set()
    parent_field = table.parent_field

    if (parent := table.parent) is not None:
        parent_pending = deleted.key_set(parent.deletion_key)

    local_keys = {record.key for record in local}
    remote_map = {record.key: record for record in remote}

    upserts: list[BaseRecord] = []
    merged: dict[str, BaseRecord] = {}

    for record in local:
        key = record.key

        if key in pending:
            continue

        if parent_field is not None:
            parent_key = getattr(record, parent_field, None)
            if parent_key is not None and str(parent_key) in parent_pending:
                logger.debug(
                    f"Dropping {table} record {key}: parent pending deletion"
                )
                continue

        if isinstance(record, CaseDocument) and record.is_local_only:
            # never pushed back once detached from the remote store
            merged[key] = record
            continue

        remote_record = remote_map.get(key)

        if remote_record is None:
            if (
                isinstance(record, CaseDocument)
                and record.local_state is DocumentState.SYNCED
            ):
                # removed remotely without a local intent
                reason = "expired" if _is_expired(record) else "removed"
                logger.debug(
                    f"Document {key} {reason} remotely, keeping as local-only"
                )
                merged[key] = mark_local_only(record)
            else:
                upserts.append(record)
                merged[key] = record

        elif record.updated_ms > remote_record.updated_ms:
            upserts.append(record)
            merged[key] = record

        else:
            merged[key] = _adopt(remote_record, record)

    for key, remote_record in remote_map.items():
        if key not in local_keys and key not in pending:
            merged[key] = remote_record

    return upserts, list(merged.values())


def merge_all(
    local: FlatData,
    remote: FlatData,
    deleted: DeletedIds,
    *,
    logger: Logger | None = None,
) -> MergeResult:
    """
    Merge every table.
    """
    result = MergeResult()

    for table in Table:
        upserts, merged = merge_table(
            table, local[table], remote[table], deleted, logger=logger
        )
        result.upserts[table] = upserts
        result.merged[table] = merged

    return result


def merge_for_refresh(
    local: FlatData,
    remote: FlatData,
    deleted: DeletedIds,
    suppressed: set[str] | None = None,
) -> FlatData:
    """
    Simpler merge for read-only pulls: nothing is pushed, remote records
    pending local deletion (or suppressed documents) are ignored, and a remote
    record replaces a local one only if strictly newer. Assistants end up as
    the union of local and remote names.
    """
    suppressed = suppressed or set()
    result = FlatData()

    for table in Table:
        ignored = deleted.key_set(table.deletion_key)
        if table is Table.CASE_DOCUMENTS:
            ignored |= suppressed

        merged: dict[str, BaseRecord] = {
            record.key: record for record in local[table]
        }

        for remote_record in remote[table]:
            key = remote_record.key
            if key in ignored:
                continue

            local_record = merged.get(key)

            if local_record is None:
                merged[key] = remote_record
            elif remote_record.updated_ms > local_record.updated_ms:
                merged[key] = _adopt(remote_record, local_record)

        result[table] = merged.values()

    return result


def _adopt(remote: BaseRecord, local: BaseRecord) -> BaseRecord:
    """
    Get remote version of record to keep in place of the local one.
    """
    if isinstance(remote, CaseDocument):
        assert isinstance(local, CaseDocument)
        return carry_residency(remote, local)
    return remote


def _is_expired(document: CaseDocument) -> bool:
    """
    Whether the document is old enough to have been removed by the remote
    janitor.
    """
    if document.added_at is None:
        return False

    age_ms = timestamp_ms(utcnow()) - timestamp_ms(document.added_at)
    return age_ms >= DOCUMENT_EXPIRY // datetime.timedelta(milliseconds=1)
