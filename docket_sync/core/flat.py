"""
Conversion between the nested data graph and per-table flat records.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from logging import Logger
from typing import Any, Iterable

from .model import (
    AppData,
    Assistant,
    BaseRecord,
    Case,
    CaseRecord,
    Client,
    ClientRecord,
    Invoice,
    InvoiceItem,
    InvoiceItemRecord,
    InvoiceRecord,
    Session,
    SessionRecord,
    Stage,
    StageRecord,
)
from .tables import Table

__all__ = [
    "FlatData",
    "flatten",
    "reconstruct",
]


@dataclass
class FlatData:
    """
    One ordered sequence of records per table. Absent tables read as empty.
    """

    tables: dict[Table, list[BaseRecord]] = field(default_factory=dict)

    def __getitem__(self, table: Table) -> list[BaseRecord]:
        return self.tables.get(table, [])

    def __setitem__(self, table: Table, records: Iterable[BaseRecord]):
        self.tables[table] = list(records)

    def __str__(self):
        return f"FlatData({self.summary})"

    def keys(self, table: Table) -> set[str]:
        """
        Primary keys of the given table's records.
        """
        return {record.key for record in self[table]}

    def copy(self) -> FlatData:
        """
        Shallow copy: lists are copied, records are shared.
        """
        return FlatData({table: list(recs) for table, recs in self.tables.items()})

    @property
    def is_empty(self) -> bool:
        return not any(self.tables.values())

    @property
    def count(self) -> int:
        return sum(len(records) for records in self.tables.values())

    @property
    def summary(self) -> str:
        """
        Brief summary of non-empty tables and their record counts.
        """
        counts = [
            f"{table}={len(self[table])}" for table in Table if self[table]
        ]
        return ", ".join(counts) if counts else "empty"


def flatten(data: AppData) -> FlatData:
    """
    Walk the nested graph once, producing one sequence per table. Each child
    record gains its parent's key.
    """

    clients: list[BaseRecord] = []
    cases: list[BaseRecord] = []
    stages: list[BaseRecord] = []
    sessions: list[BaseRecord] = []

    for client in data.clients:
        clients.append(_to_flat(ClientRecord, client, "cases"))

        for case in client.cases:
            cases.append(
                _to_flat(CaseRecord, case, "stages", client_id=client.id)
            )

            for stage in case.stages:
                stages.append(
                    _to_flat(StageRecord, stage, "sessions", case_id=case.id)
                )

                for session in stage.sessions:
                    sessions.append(
                        _to_flat(SessionRecord, session, stage_id=stage.id)
                    )

    invoices: list[BaseRecord] = []
    invoice_items: list[BaseRecord] = []

    for invoice in data.invoices:
        invoices.append(_to_flat(InvoiceRecord, invoice, "items"))

        for item in invoice.items:
            invoice_items.append(
                _to_flat(InvoiceItemRecord, item, invoice_id=invoice.id)
            )

    return FlatData(
        {
            Table.CLIENTS: clients,
            Table.CASES: cases,
            Table.STAGES: stages,
            Table.SESSIONS: sessions,
            Table.ADMIN_TASKS: list(data.admin_tasks),
            Table.APPOINTMENTS: list(data.appointments),
            Table.ACCOUNTING_ENTRIES: list(data.accounting_entries),
            Table.INVOICES: invoices,
            Table.INVOICE_ITEMS: invoice_items,
            Table.ASSISTANTS: [Assistant(name=n) for n in data.assistants],
            Table.CASE_DOCUMENTS: list(data.documents),
            Table.PROFILES: list(data.profiles),
            Table.SITE_FINANCES: list(data.site_finances),
        }
    )


def reconstruct(flat: FlatData, *, logger: Logger | None = None) -> AppData:
    """
    Rebuild the nested graph: group each child table by its parent's key
    and attach each group to its parent. Children with no parent key are
    dropped; parents with no children get an empty list.
    """
    logger = logger or logging.getLogger()

    sessions = _group(flat[Table.SESSIONS], Table.SESSIONS, Session, logger)
    stages = _group(
        flat[Table.STAGES], Table.STAGES, Stage, logger, ("sessions", sessions)
    )
    cases = _group(
        flat[Table.CASES], Table.CASES, Case, logger, ("stages", stages)
    )
    items = _group(
        flat[Table.INVOICE_ITEMS], Table.INVOICE_ITEMS, InvoiceItem, logger
    )

    return AppData(
        clients=[
            _to_nested(Client, record, None, ("cases", cases))
            for record in flat[Table.CLIENTS]
        ],
        admin_tasks=flat[Table.ADMIN_TASKS],
        appointments=flat[Table.APPOINTMENTS],
        accounting_entries=flat[Table.ACCOUNTING_ENTRIES],
        invoices=[
            _to_nested(Invoice, record, None, ("items", items))
            for record in flat[Table.INVOICES]
        ],
        assistants=[record.key for record in flat[Table.ASSISTANTS]],
        documents=flat[Table.CASE_DOCUMENTS],
        profiles=flat[Table.PROFILES],
        site_finances=flat[Table.SITE_FINANCES],
    )


def _to_flat[RecordT: BaseRecord](
    cls: type[RecordT],
    record: BaseRecord,
    children_field: str | None = None,
    **parent: Any,
) -> RecordT:
    """
    Convert nested record to flat form, dropping children and adding parent
    key if applicable.
    """
    exclude = {children_field} if children_field else None
    return cls.model_validate({**record.model_dump(exclude=exclude), **parent})


def _to_nested[RecordT: BaseRecord](
    cls: type[RecordT],
    record: BaseRecord,
    parent_field: str | None,
    children: tuple[str, dict[str, list[BaseRecord]]] | None = None,
) -> RecordT:
    """
    Convert flat record to nested form, dropping parent key and attaching
    children if applicable.
    """
    exclude = {parent_field} if parent_field else None
    values = record.model_dump(exclude=exclude)

    if children is not None:
        children_field, children_map = children
        values[children_field] = children_map.get(record.key, [])

    return cls.model_validate(values)


def _group(
    records: list[BaseRecord],
    table: Table,
    nested_cls: type[BaseRecord],
    logger: Logger,
    children: tuple[str, dict[str, list[BaseRecord]]] | None = None,
) -> dict[str, list[BaseRecord]]:
    """
    Group records by their parent's key, converting them to nested form.
    """
    parent_field = table.parent_field
    assert parent_field is not None

    groups: dict[str, list[BaseRecord]] = defaultdict(list)

    for record in records:
        parent_key = getattr(record, parent_field, None)

        if parent_key is None:
            logger.debug(
                f"Dropping {table} record without {parent_field}: {record.key}"
            )
            continue

        groups[str(parent_key)].append(
            _to_nested(nested_cls, record, parent_field, children)
        )

    return groups
