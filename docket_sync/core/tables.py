"""
Translation table between flat table names, deletion-set keys and nested
graph fields, along with the structural relationships between tables.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from enum import Enum

from .model import records
from .model.base import BaseRecord

__all__ = [
    "Table",
    "TableInfo",
    "CLOCK_SKEW_BUFFER_MS",
    "DELETION_RETENTION",
    "DOCUMENT_EXPIRY",
    "DELETE_ORDER",
    "UPSERT_ORDER",
    "UPSERT_PARALLEL",
]

CLOCK_SKEW_BUFFER_MS = 2000
"""
Buffer applied wherever a deletion timestamp is compared against a record's
`updated_at`.
"""

DELETION_RETENTION = datetime.timedelta(days=30)
"""
Window of the deletion log consumed by a sync.
"""

DOCUMENT_EXPIRY = datetime.timedelta(hours=48)
"""
Age after which the remote janitor removes documents without a tombstone.
"""


@dataclass(frozen=True, kw_only=True)
class TableInfo:
    """
    Static description of a table.
    """

    deletion_key: str
    """Key of this table's ids in the pending-deletion set"""

    nested_field: str | None
    """Field of the nested graph holding this table, or `None` if nested under a parent"""

    record_cls: type[BaseRecord]
    """Flat record model"""

    primary_key: str = "id"
    """Primary key column"""

    parent: str | None = None
    """Flat name of the structural parent table, if any"""

    parent_field: str | None = None
    """Field of a record holding its parent's key"""

    tombstoned: bool = True
    """Whether deletions are written to the deletion log"""


class Table(Enum):
    """
    Flat tables of the remote store. The value is the remote table name.
    """

    CLIENTS = "clients"
    CASES = "cases"
    STAGES = "stages"
    SESSIONS = "sessions"
    ADMIN_TASKS = "admin_tasks"
    APPOINTMENTS = "appointments"
    ACCOUNTING_ENTRIES = "accounting_entries"
    INVOICES = "invoices"
    INVOICE_ITEMS = "invoice_items"
    ASSISTANTS = "assistants"
    CASE_DOCUMENTS = "case_documents"
    PROFILES = "profiles"
    SITE_FINANCES = "site_finances"

    def __str__(self) -> str:
        return self.value

    @property
    def info(self) -> TableInfo:
        return _TABLE_INFO[self]

    @property
    def deletion_key(self) -> str:
        return self.info.deletion_key

    @property
    def nested_field(self) -> str | None:
        return self.info.nested_field

    @property
    def record_cls(self) -> type[BaseRecord]:
        return self.info.record_cls

    @property
    def primary_key(self) -> str:
        return self.info.primary_key

    @property
    def parent(self) -> Table | None:
        parent = self.info.parent
        return Table(parent) if parent is not None else None

    @property
    def parent_field(self) -> str | None:
        return self.info.parent_field

    @property
    def tombstoned(self) -> bool:
        return self.info.tombstoned

    @classmethod
    def from_deletion_key(cls, deletion_key: str) -> Table:
        """
        Lookup table by its key in the pending-deletion set.
        """
        for table in cls:
            if table.deletion_key == deletion_key:
                return table
        raise KeyError(f"Unknown deletion key: {deletion_key}")


_TABLE_INFO: dict[Table, TableInfo] = {
    Table.CLIENTS: TableInfo(
        deletion_key="clients",
        nested_field="clients",
        record_cls=records.ClientRecord,
    ),
    Table.CASES: TableInfo(
        deletion_key="cases",
        nested_field=None,
        record_cls=records.CaseRecord,
        parent="clients",
        parent_field="client_id",
    ),
    Table.STAGES: TableInfo(
        deletion_key="stages",
        nested_field=None,
        record_cls=records.StageRecord,
        parent="cases",
        parent_field="case_id",
    ),
    Table.SESSIONS: TableInfo(
        deletion_key="sessions",
        nested_field=None,
        record_cls=records.SessionRecord,
        parent="stages",
        parent_field="stage_id",
    ),
    Table.ADMIN_TASKS: TableInfo(
        deletion_key="adminTasks",
        nested_field="adminTasks",
        record_cls=records.AdminTask,
    ),
    Table.APPOINTMENTS: TableInfo(
        deletion_key="appointments",
        nested_field="appointments",
        record_cls=records.Appointment,
    ),
    Table.ACCOUNTING_ENTRIES: TableInfo(
        deletion_key="accountingEntries",
        nested_field="accountingEntries",
        record_cls=records.AccountingEntry,
    ),
    Table.INVOICES: TableInfo(
        deletion_key="invoices",
        nested_field="invoices",
        record_cls=records.InvoiceRecord,
    ),
    Table.INVOICE_ITEMS: TableInfo(
        deletion_key="invoiceItems",
        nested_field=None,
        record_cls=records.InvoiceItemRecord,
        parent="invoices",
        parent_field="invoice_id",
    ),
    Table.ASSISTANTS: TableInfo(
        deletion_key="assistants",
        nested_field="assistants",
        record_cls=records.Assistant,
        primary_key="name",
    ),
    Table.CASE_DOCUMENTS: TableInfo(
        deletion_key="documents",
        nested_field="documents",
        record_cls=records.CaseDocument,
        parent="cases",
        parent_field="case_id",
    ),
    Table.PROFILES: TableInfo(
        deletion_key="profiles",
        nested_field="profiles",
        record_cls=records.Profile,
        tombstoned=False,
    ),
    Table.SITE_FINANCES: TableInfo(
        deletion_key="siteFinances",
        nested_field="siteFinances",
        record_cls=records.SiteFinancialEntry,
    ),
}

DELETE_ORDER: list[Table] = [
    Table.CASE_DOCUMENTS,
    Table.INVOICE_ITEMS,
    Table.SESSIONS,
    Table.STAGES,
    Table.CASES,
    Table.INVOICES,
    Table.ADMIN_TASKS,
    Table.APPOINTMENTS,
    Table.ACCOUNTING_ENTRIES,
    Table.ASSISTANTS,
    Table.CLIENTS,
    Table.SITE_FINANCES,
    Table.PROFILES,
]
"""
Order of remote deletes: children before parents.
"""

UPSERT_ORDER: list[Table] = [
    Table.PROFILES,
    Table.ASSISTANTS,
    Table.CLIENTS,
    Table.CASES,
    Table.STAGES,
    Table.SESSIONS,
    Table.INVOICES,
    Table.INVOICE_ITEMS,
    Table.CASE_DOCUMENTS,
]
"""
Tables pushed sequentially: parents before children.
"""

UPSERT_PARALLEL: list[Table] = [
    Table.ADMIN_TASKS,
    Table.APPOINTMENTS,
    Table.ACCOUNTING_ENTRIES,
    Table.SITE_FINANCES,
]
"""
Tables with no dependents, pushed concurrently after `UPSERT_ORDER`.
"""
