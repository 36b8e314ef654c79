"""
Nested data graph, pending-deletion set and deletion log entries.
"""

from __future__ import annotations

import datetime
import logging
from logging import Logger
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .base import BaseRecord, parse_records
from .records import (
    AccountingEntry,
    AdminTask,
    Appointment,
    Case,
    CaseDocument,
    Client,
    Invoice,
    InvoiceItem,
    Profile,
    Session,
    SiteFinancialEntry,
    Stage,
)

__all__ = [
    "AppData",
    "DeletedIds",
    "SyncDeletion",
]

Keys = list[str | int]
"""
Record keys; integer keys are compared by their string form.
"""


class _CamelModel(BaseModel):
    """
    Model persisted with camelCase keys, accepting either form on input.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AppData(_CamelModel):
    """
    Nested data graph as kept in local storage.
    """

    clients: list[Client] = Field(default_factory=list)
    admin_tasks: list[AdminTask] = Field(default_factory=list)
    appointments: list[Appointment] = Field(default_factory=list)
    accounting_entries: list[AccountingEntry] = Field(default_factory=list)
    invoices: list[Invoice] = Field(default_factory=list)
    assistants: list[str] = Field(default_factory=list)
    documents: list[CaseDocument] = Field(default_factory=list)
    profiles: list[Profile] = Field(default_factory=list)
    site_finances: list[SiteFinancialEntry] = Field(default_factory=list)

    @classmethod
    def from_raw(cls, raw: Any, *, logger: Logger | None = None) -> AppData:
        """
        Leniently load a persisted graph: malformed records are dropped and
        logged rather than failing the whole load.
        """
        logger = logger or logging.getLogger()

        if not isinstance(raw, dict):
            if raw is not None:
                logger.warning(f"Discarding malformed local data: {raw!r}")
            return cls()

        def get(field: str) -> Any:
            alias = to_camel(field)
            return raw.get(alias, raw.get(field))

        def nested(
            record_cls: type[BaseRecord],
            items: Any,
            children: tuple[str, Callable[[Any], list]] | None = None,
        ) -> list:
            if not isinstance(items, list):
                return []

            if children is not None:
                field, load_children = children
                items = [
                    {**item, field: load_children(item.get(field))}
                    if isinstance(item, dict)
                    else item
                    for item in items
                ]

            return parse_records(
                record_cls, items, logger=logger, context="local data"
            )

        def sessions(items: Any) -> list:
            return nested(Session, items)

        def stages(items: Any) -> list:
            return nested(Stage, items, ("sessions", sessions))

        def cases(items: Any) -> list:
            return nested(Case, items, ("stages", stages))

        def invoice_items(items: Any) -> list:
            return nested(InvoiceItem, items)

        assistants = get("assistants")
        assistant_names = (
            [a for a in assistants if isinstance(a, str) and a.strip()]
            if isinstance(assistants, list)
            else []
        )

        return cls(
            clients=nested(Client, get("clients"), ("cases", cases)),
            admin_tasks=nested(AdminTask, get("admin_tasks")),
            appointments=nested(Appointment, get("appointments")),
            accounting_entries=nested(
                AccountingEntry, get("accounting_entries")
            ),
            invoices=nested(Invoice, get("invoices"), ("items", invoice_items)),
            assistants=list(dict.fromkeys(assistant_names)),
            documents=nested(CaseDocument, get("documents")),
            profiles=nested(Profile, get("profiles")),
            site_finances=nested(SiteFinancialEntry, get("site_finances")),
        )

    def dump(self) -> dict[str, Any]:
        """
        Dump for persistence.
        """
        return self.model_dump(mode="json", by_alias=True)


class DeletedIds(_CamelModel):
    """
    Pending local deletions not yet applied to the remote store, keyed by
    deletion-set key.
    """

    clients: Keys = Field(default_factory=list)
    cases: Keys = Field(default_factory=list)
    stages: Keys = Field(default_factory=list)
    sessions: Keys = Field(default_factory=list)
    admin_tasks: Keys = Field(default_factory=list)
    appointments: Keys = Field(default_factory=list)
    accounting_entries: Keys = Field(default_factory=list)
    invoices: Keys = Field(default_factory=list)
    invoice_items: Keys = Field(default_factory=list)
    assistants: Keys = Field(default_factory=list)
    documents: Keys = Field(default_factory=list)
    document_paths: Keys = Field(default_factory=list)
    """Storage paths of deleted documents' files"""
    profiles: Keys = Field(default_factory=list)
    site_finances: Keys = Field(default_factory=list)

    @classmethod
    def _field_name(cls, deletion_key: str) -> str:
        for name, info in cls.model_fields.items():
            if info.alias == deletion_key or name == deletion_key:
                return name
        raise KeyError(f"Unknown deletion key: {deletion_key}")

    def get(self, deletion_key: str) -> Keys:
        """
        Get pending ids by deletion-set key, e.g. `adminTasks`.
        """
        return getattr(self, self._field_name(deletion_key))

    def key_set(self, deletion_key: str) -> set[str]:
        """
        Get pending ids by deletion-set key as a set of strings.
        """
        return {str(i) for i in self.get(deletion_key)}

    def add(self, deletion_key: str, *keys: str | int):
        """
        Append ids for the given deletion-set key, skipping duplicates.
        """
        pending = self.get(deletion_key)
        existing = {str(i) for i in pending}
        for key in keys:
            if str(key) not in existing:
                existing.add(str(key))
                pending.append(key)

    def remove(self, synced: DeletedIds):
        """
        Remove ids which were applied to the remote store.
        """
        for name in type(self).model_fields:
            applied = {str(i) for i in getattr(synced, name)}
            if applied:
                setattr(
                    self,
                    name,
                    [i for i in getattr(self, name) if str(i) not in applied],
                )

    @property
    def is_empty(self) -> bool:
        return not any(getattr(self, name) for name in type(self).model_fields)

    def dump(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class SyncDeletion(BaseModel):
    """
    Entry of the append-only deletion log (tombstone).
    """

    model_config = ConfigDict(extra="allow")

    table_name: str
    record_id: str | int
    user_id: str | None = None
    deleted_at: datetime.datetime | None = None

    @property
    def lookup_key(self) -> str:
        return f"{self.table_name}:{str(self.record_id)}"
