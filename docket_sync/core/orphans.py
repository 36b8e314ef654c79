"""
Referential-integrity pass over merge output.
"""

from __future__ import annotations

import logging
from logging import Logger

from .flat import FlatData
from .merge import MergeResult
from .model import BaseRecord
from .tables import Table

__all__ = [
    "prune_orphans",
]

# children in dependency order: each parent is filtered before its children
_CHILD_TABLES = [
    Table.CASES,
    Table.STAGES,
    Table.SESSIONS,
    Table.INVOICE_ITEMS,
    Table.CASE_DOCUMENTS,
]


def prune_orphans(
    result: MergeResult,
    remote: FlatData,
    *,
    logger: Logger | None = None,
) -> MergeResult:
    """
    Drop child records whose parent exists neither remotely nor among the
    outgoing upserts, from both the upserts and the merged records.

    A parent is valid if it's in the remote snapshot or about to be created
    by this sync. Idempotent.
    """
    logger = logger or logging.getLogger()

    upserts = result.upserts.copy()
    merged = result.merged.copy()

    for table in _CHILD_TABLES:
        parent = table.parent
        parent_field = table.parent_field
        assert parent is not None and parent_field is not None

        valid = remote.keys(parent) | upserts.keys(parent)

        def is_valid(record: BaseRecord) -> bool:
            parent_key = getattr(record, parent_field, None)
            return parent_key is not None and str(parent_key) in valid

        upserts[table] = filter(is_valid, upserts[table])

        for record in merged[table]:
            if not is_valid(record):
                logger.warning(
                    f"Pruning orphaned {table} record {record.key}: {parent} {getattr(record, parent_field, None)} not found"
                )

        merged[table] = filter(is_valid, merged[table])

    return MergeResult(upserts=upserts, merged=merged)
