"""
Record models, one per table.

Hierarchical tables have two forms: a flat record carrying its parent's key
(e.g. {obj}`CaseRecord`) and a nested record carrying its children
(e.g. {obj}`Case`). Both derive from the same set of fields.
"""

from __future__ import annotations

import datetime
from enum import Enum
from typing import Any, ClassVar, Literal

from pydantic import Field

from .base import BaseRecord

__all__ = [
    "ClientRecord",
    "Client",
    "CaseRecord",
    "Case",
    "StageRecord",
    "Stage",
    "SessionRecord",
    "Session",
    "AdminTask",
    "Appointment",
    "AccountingEntry",
    "InvoiceRecord",
    "Invoice",
    "InvoiceItemRecord",
    "InvoiceItem",
    "Assistant",
    "DocumentState",
    "CaseDocument",
    "Profile",
    "SiteFinancialEntry",
]

Importance = Literal["normal", "important", "urgent"]


class ClientRecord(BaseRecord):
    id: str
    name: str = ""
    contact_info: str = ""
    user_id: str | None = None


class Client(ClientRecord):
    cases: list[Case] = Field(default_factory=list)


class _CaseFields(BaseRecord):
    id: str
    subject: str = ""
    client_name: str = ""
    opponent_name: str = ""
    fee_agreement: str = ""
    status: Literal["active", "closed", "on_hold"] = "active"
    user_id: str | None = None


class CaseRecord(_CaseFields):
    client_id: str | None = None


class Case(_CaseFields):
    stages: list[Stage] = Field(default_factory=list)


class _StageFields(BaseRecord):
    id: str
    court: str = ""
    case_number: str = ""
    first_session_date: datetime.datetime | None = None
    decision_date: datetime.datetime | None = None
    decision_number: str | None = None
    decision_summary: str | None = None
    decision_notes: str | None = None
    user_id: str | None = None


class StageRecord(_StageFields):
    case_id: str | None = None


class Stage(_StageFields):
    sessions: list[Session] = Field(default_factory=list)


class _SessionFields(BaseRecord):
    id: str
    court: str = ""
    case_number: str = ""
    date: datetime.datetime | None = None
    client_name: str = ""
    opponent_name: str = ""
    postponement_reason: str | None = None
    next_postponement_reason: str | None = None
    is_postponed: bool = False
    next_session_date: datetime.datetime | None = None
    assignee: str | None = None
    user_id: str | None = None


class SessionRecord(_SessionFields):
    stage_id: str | None = None


class Session(_SessionFields):
    """
    A court session, nested under a {obj}`Stage`.
    """


class AdminTask(BaseRecord):
    id: str
    task: str = ""
    due_date: datetime.datetime | None = None
    completed: bool = False
    importance: Importance = "normal"
    assignee: str | None = None
    location: str | None = None
    order_index: int | None = None


class Appointment(BaseRecord):
    id: str
    title: str = ""
    time: str = ""
    date: datetime.datetime | None = None
    importance: Importance = "normal"
    completed: bool = False
    notified: bool | None = None
    reminder_time_in_minutes: int | None = None
    assignee: str | None = None


class AccountingEntry(BaseRecord):
    """
    Soft-references a client and case by id; not cascaded structurally.
    """

    id: str
    type: Literal["income", "expense"] = "income"
    amount: float = 0.0
    date: datetime.datetime | None = None
    description: str = ""
    client_id: str | None = None
    case_id: str | None = None
    client_name: str = ""


class _InvoiceFields(BaseRecord):
    id: str
    client_id: str | None = None
    client_name: str = ""
    case_id: str | None = None
    case_subject: str | None = None
    issue_date: datetime.datetime | None = None
    due_date: datetime.datetime | None = None
    tax_rate: float = 0.0
    discount: float = 0.0
    status: Literal["draft", "sent", "paid", "overdue"] = "draft"
    notes: str | None = None


class InvoiceRecord(_InvoiceFields):
    pass


class Invoice(_InvoiceFields):
    items: list[InvoiceItem] = Field(default_factory=list)


class _InvoiceItemFields(BaseRecord):
    id: str
    description: str = ""
    amount: float = 0.0


class InvoiceItemRecord(_InvoiceItemFields):
    invoice_id: str | None = None


class InvoiceItem(_InvoiceItemFields):
    pass


class Assistant(BaseRecord):
    """
    Assistant keyed by name. In the nested graph, assistants are plain names.
    """

    primary_key: ClassVar[str] = "name"

    name: str

    def to_row(self) -> dict[str, Any]:
        # not timestamped remotely
        return self.model_dump(mode="json", exclude={"updated_at"})


class DocumentState(Enum):
    """
    Residency of a document's file on this device.
    """

    SYNCED = "synced"
    """File is stored locally and remotely"""

    PENDING_UPLOAD = "pending_upload"
    """File is stored locally, awaiting upload"""

    PENDING_DOWNLOAD = "pending_download"
    """File is only stored remotely, awaiting download"""

    DOWNLOADING = "downloading"
    """Download in progress"""

    ERROR = "error"
    """Last transfer failed; retried on next queue pass"""


class CaseDocument(BaseRecord):
    """
    Metadata of a file attached to a case.
    """

    local_fields: ClassVar[frozenset[str]] = frozenset(
        {"local_state", "is_local_only"}
    )

    id: str
    case_id: str | None = None
    user_id: str | None = None
    name: str = ""
    type: str = "application/octet-stream"
    size: int = 0
    added_at: datetime.datetime | None = None
    storage_path: str = ""
    local_state: DocumentState = DocumentState.PENDING_DOWNLOAD
    is_local_only: bool = False


class Profile(BaseRecord):
    id: str
    full_name: str = ""
    mobile_number: str = ""
    is_approved: bool = False
    is_active: bool = False
    subscription_start_date: datetime.datetime | None = None
    subscription_end_date: datetime.datetime | None = None
    role: Literal["user", "admin"] = "user"
    lawyer_id: str | None = None
    permissions: dict[str, Any] | None = None
    created_at: datetime.datetime | None = None


class SiteFinancialEntry(BaseRecord):
    id: int
    user_id: str | None = None
    type: Literal["income", "expense"] = "income"
    payment_date: str = ""
    amount: float = 0.0
    description: str | None = None
    payment_method: str | None = None
    category: str | None = None
    profile_full_name: str | None = None


Client.model_rebuild()
Case.model_rebuild()
Stage.model_rebuild()
Invoice.model_rebuild()
