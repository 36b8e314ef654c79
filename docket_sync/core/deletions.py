"""
Application of the remote deletion log to a local flat snapshot.
"""

from __future__ import annotations

import logging
from logging import Logger
from typing import Iterable

from .documents import mark_local_only
from .flat import FlatData
from .model import BaseRecord, CaseDocument, DocumentState, SyncDeletion
from .model.base import timestamp_ms
from .tables import CLOCK_SKEW_BUFFER_MS, Table

__all__ = [
    "apply_deletions",
    "is_deleted",
]

# parent-less tables filtered by tombstone only
_STANDALONE = [
    Table.ADMIN_TASKS,
    Table.APPOINTMENTS,
    Table.ASSISTANTS,
    Table.SITE_FINANCES,
]


def is_deleted(record: BaseRecord, deleted_ms: int | None) -> bool:
    """
    Check whether a record is superseded by a tombstone at the given time.
    A record edited after the deletion plus the clock-skew buffer survives.
    """
    if deleted_ms is None:
        return False
    return record.updated_ms <= deleted_ms + CLOCK_SKEW_BUFFER_MS


def apply_deletions(
    flat: FlatData,
    tombstones: Iterable[SyncDeletion],
    *,
    logger: Logger | None = None,
) -> FlatData:
    """
    Remove records deleted elsewhere from a local flat snapshot, cascading
    to dependents of removed parents.

    Tombstoned documents whose file is resident on this device are kept as
    local-only instead of removed. Profiles are never filtered.
    """
    logger = logger or logging.getLogger()

    index: dict[str, int] = {}
    for tombstone in tombstones:
        deleted_ms = timestamp_ms(tombstone.deleted_at)
        index[tombstone.lookup_key] = max(
            deleted_ms, index.get(tombstone.lookup_key, deleted_ms)
        )

    if not index:
        return flat

    def purge(table: Table) -> list[BaseRecord]:
        survivors = [
            record
            for record in flat[table]
            if not is_deleted(record, index.get(f"{table}:{record.key}"))
        ]

        if removed := len(flat[table]) - len(survivors):
            logger.debug(f"Purged {removed} tombstoned record(s) from {table}")

        return survivors

    def under(
        records: list[BaseRecord],
        parent_field: str,
        parent_keys: set[str],
        *,
        optional: bool = False,
    ) -> list[BaseRecord]:
        # optional: only filter records which reference a parent at all
        def keep(record: BaseRecord) -> bool:
            parent_key = getattr(record, parent_field, None)
            if parent_key is None:
                return optional
            return str(parent_key) in parent_keys

        return [record for record in records if keep(record)]

    def keys(records: list[BaseRecord]) -> set[str]:
        return {record.key for record in records}

    result = flat.copy()

    clients = purge(Table.CLIENTS)
    client_keys = keys(clients)

    cases = under(purge(Table.CASES), "client_id", client_keys)
    case_keys = keys(cases)

    stages = under(purge(Table.STAGES), "case_id", case_keys)
    stage_keys = keys(stages)

    sessions = under(purge(Table.SESSIONS), "stage_id", stage_keys)

    invoices = under(purge(Table.INVOICES), "client_id", client_keys)
    invoice_keys = keys(invoices)

    invoice_items = under(
        purge(Table.INVOICE_ITEMS), "invoice_id", invoice_keys
    )

    accounting_entries = under(
        purge(Table.ACCOUNTING_ENTRIES), "client_id", client_keys, optional=True
    )

    documents: list[BaseRecord] = []
    for doc in flat[Table.CASE_DOCUMENTS]:
        assert isinstance(doc, CaseDocument)

        if is_deleted(doc, index.get(f"{Table.CASE_DOCUMENTS}:{doc.key}")):
            if doc.local_state is DocumentState.SYNCED or doc.is_local_only:
                logger.debug(f"Keeping tombstoned document {doc.id} as local-only")
                doc = mark_local_only(doc)
            else:
                logger.debug(f"Dropping tombstoned document {doc.id}")
                continue

        documents.append(doc)

    result[Table.CLIENTS] = clients
    result[Table.CASES] = cases
    result[Table.STAGES] = stages
    result[Table.SESSIONS] = sessions
    result[Table.INVOICES] = invoices
    result[Table.INVOICE_ITEMS] = invoice_items
    result[Table.ACCOUNTING_ENTRIES] = accounting_entries
    result[Table.CASE_DOCUMENTS] = under(documents, "case_id", case_keys)

    for table in _STANDALONE:
        result[table] = purge(table)

    return result
