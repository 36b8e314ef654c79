"""
Local unit of work: the nested graph, pending deletions and locally
suppressed documents of one owner, persisted through a {obj}`LocalStore`.
"""

from __future__ import annotations

import logging
import uuid
from logging import Logger
from pathlib import PurePosixPath
from typing import TYPE_CHECKING

from .exceptions import LogicError, _assert_logic
from .flat import FlatData, flatten, reconstruct
from .model import (
    AppData,
    BaseRecord,
    CaseDocument,
    DeletedIds,
    DocumentState,
    parse_record,
    utcnow,
)
from .store import LocalStore
from .tables import Table

if TYPE_CHECKING:
    from .sync import Synchronizer, SyncResult

__all__ = [
    "Workspace",
]


class Workspace:
    """
    Local data of the effective owner.

    Edits are applied to the nested graph immediately and persisted; they
    reach the remote store on the next sync. Deleting a record removes it
    and its descendants from the local view and records the intent in
    {obj}`Workspace.deleted_ids`.
    """

    local: LocalStore
    """Backing store"""

    owner_id: str
    """Effective owner under whose namespace data is stored"""

    data: AppData
    """Nested graph"""

    deleted_ids: DeletedIds
    """Deletions not yet applied remotely"""

    suppressed: set[str]
    """Ids of documents deleted on this device only"""

    is_dirty: bool
    """Whether there are local edits since the last successful sync"""

    _logger: Logger

    def __init__(
        self,
        local: LocalStore,
        owner_id: str,
        *,
        data: AppData | None = None,
        deleted_ids: DeletedIds | None = None,
        suppressed: set[str] | None = None,
        logger: Logger | None = None,
    ):
        self.local = local
        self.owner_id = owner_id
        self.data = data or AppData()
        self.deleted_ids = deleted_ids or DeletedIds()
        self.suppressed = suppressed or set()
        self.is_dirty = False
        self._logger = logger or logging.getLogger()

    @classmethod
    def load(
        cls, local: LocalStore, owner_id: str, *, logger: Logger | None = None
    ) -> Workspace:
        """
        Load and repair owner's data: malformed records are dropped and
        residency of documents is taken from the per-document metadata.
        """
        logger = logger or logging.getLogger()

        data = AppData.from_raw(local.load_data(owner_id), logger=logger)

        deleted_ids = DeletedIds()
        if (raw_deleted := local.load_deleted_ids(owner_id)) is not None:
            try:
                deleted_ids = parse_record(DeletedIds, raw_deleted)
            except LogicError as e:
                logger.warning(f"Discarding malformed pending deletions: {e}")

        suppressed = {str(i) for i in local.load_suppressed(owner_id) or []}

        workspace = cls(
            local,
            owner_id,
            data=data,
            deleted_ids=deleted_ids,
            suppressed=suppressed,
            logger=logger,
        )
        workspace._overlay_documents()

        return workspace

    def save(self):
        """
        Persist graph, pending deletions and suppressed documents.
        """
        self.local.save_data(self.owner_id, self.data.dump())
        self.local.save_deleted_ids(self.owner_id, self.deleted_ids.dump())
        self.local.save_suppressed(self.owner_id, sorted(self.suppressed))

    def flat(self) -> FlatData:
        return flatten(self.data)

    def get(self, table: Table, key: str | int) -> BaseRecord | None:
        """
        Get record by table and primary key.
        """
        for record in flatten(self.data)[table]:
            if record.key == str(key):
                return record
        return None

    def put(self, table: Table, record: BaseRecord) -> BaseRecord:
        """
        Create or replace a record, stamping `updated_at`.

        Child records must carry their parent's key, e.g. `client_id` for a
        case.
        """
        _assert_logic(
            isinstance(record, table.record_cls),
            f"Expected {table.record_cls.__name__} for {table}, got {type(record).__name__}",
        )

        flat = self.flat()

        if (parent := table.parent) is not None:
            assert table.parent_field is not None
            parent_key = getattr(record, table.parent_field, None)

            _assert_logic(
                parent_key is not None,
                f"{table} record {record.key} has no {table.parent_field}",
            )
            _assert_logic(
                str(parent_key) in flat.keys(parent),
                f"{table} record {record.key} references unknown {parent} record {parent_key}",
            )

        record = record.model_copy(update={"updated_at": utcnow()})

        records = flat[table]

        for i, existing in enumerate(records):
            if existing.key == record.key:
                records[i] = record
                break
        else:
            records.append(record)

        flat[table] = records
        self.data = reconstruct(flat, logger=self._logger)

        self.is_dirty = True
        self.save()

        return record

    def delete(self, table: Table, key: str | int) -> bool:
        """
        Delete a record along with its descendants from the local view and
        queue its deletion for the next sync. Documents of deleted cases are
        queued along with their files.

        Returns `False` if no such record exists.
        """
        key = str(key)
        flat = self.flat()

        if key not in flat.keys(table):
            return False

        removed = self._remove_cascade(flat, table, {key})
        self.data = reconstruct(flat, logger=self._logger)

        self.deleted_ids.add(table.deletion_key, key)

        for document in removed.get(Table.CASE_DOCUMENTS, []):
            assert isinstance(document, CaseDocument)

            self.deleted_ids.add(Table.CASE_DOCUMENTS.deletion_key, document.id)
            if document.storage_path:
                self.deleted_ids.add("documentPaths", document.storage_path)

            self.local.delete_document(document.id)

        self._logger.debug(
            f"Deleted {table} record {key} and {sum(len(r) for r in removed.values()) - 1} descendant(s)"
        )

        self.is_dirty = True
        self.save()

        return True

    def get_document(self, document_id: str) -> CaseDocument | None:
        for doc in self.data.documents:
            if doc.id == document_id:
                return doc
        return None

    def add_document(
        self,
        case_id: str,
        name: str,
        content: bytes,
        *,
        type: str = "application/octet-stream",
    ) -> CaseDocument:
        """
        Store a new file locally and queue it for upload.
        """
        _assert_logic(
            case_id in self.flat().keys(Table.CASES), f"No such case: {case_id}"
        )

        document_id = f"doc-{uuid.uuid4().hex}"
        extension = PurePosixPath(name).suffix
        now = utcnow()

        doc = CaseDocument(
            id=document_id,
            case_id=case_id,
            user_id=self.owner_id,
            name=name,
            type=type,
            size=len(content),
            added_at=now,
            updated_at=now,
            storage_path=f"{self.owner_id}/{case_id}/{document_id}{extension}",
            local_state=DocumentState.PENDING_UPLOAD,
        )

        self.local.put_document_file(doc.id, content)
        self.local.put_document_meta(doc.id, doc.model_dump(mode="json"))

        self.data.documents.append(doc)

        self.is_dirty = True
        self.save()

        return doc

    def update_document(self, document: CaseDocument):
        """
        Replace document's residency state without marking an edit.
        """
        self.data.documents = [
            document if doc.id == document.id else doc
            for doc in self.data.documents
        ]

        self.local.put_document_meta(document.id, document.model_dump(mode="json"))
        self.local.save_data(self.owner_id, self.data.dump())

    def delete_document(self, document_id: str) -> bool:
        """
        Delete a document on this device only: it's removed locally and
        suppressed from later pulls, while other devices keep their copy.
        """
        if self.get_document(document_id) is None:
            return False

        self.data.documents = [
            doc for doc in self.data.documents if doc.id != document_id
        ]

        self.local.delete_document(document_id)
        self.suppressed.add(document_id)
        self.save()

        return True

    def sync(self, synchronizer: Synchronizer) -> SyncResult | None:
        """
        Run a full sync and commit its result, if successful.
        """
        result = synchronizer.sync(
            self.data, self.deleted_ids, suppressed=self.suppressed
        )

        if result is not None:
            self.commit(result)

        return result

    def refresh(self, synchronizer: Synchronizer) -> SyncResult | None:
        """
        Run a read-only pull and commit its result, if successful.
        """
        result = synchronizer.refresh(
            self.data, self.deleted_ids, suppressed=self.suppressed
        )

        if result is not None:
            self.commit(result)

        return result

    def commit(self, result: SyncResult):
        """
        Adopt the outcome of a successful sync: replace the graph and drop
        the deletions which were applied remotely.
        """
        self.data = result.data
        self.deleted_ids.remove(result.synced_deletions)

        for doc in self.data.documents:
            self.local.put_document_meta(doc.id, doc.model_dump(mode="json"))

        if result.pushed:
            self.is_dirty = False

        self.save()

    def _overlay_documents(self):
        documents: list[CaseDocument] = []

        for doc in self.data.documents:
            if (meta := self.local.get_document_meta(doc.id)) is not None:
                try:
                    stored = parse_record(CaseDocument, meta)
                except LogicError as e:
                    self._logger.warning(
                        f"Ignoring malformed metadata of document {doc.id}: {e}"
                    )
                else:
                    doc = doc.model_copy(
                        update={
                            "local_state": stored.local_state,
                            "is_local_only": stored.is_local_only
                            or doc.is_local_only,
                        }
                    )

            documents.append(doc)

        self.data.documents = documents

    def _remove_cascade(
        self, flat: FlatData, table: Table, keys: set[str]
    ) -> dict[Table, list[BaseRecord]]:
        """
        Remove records and their descendants from flat data, returning the
        removed records per table.
        """
        removed: dict[Table, list[BaseRecord]] = {}

        kept = [r for r in flat[table] if r.key not in keys]
        removed[table] = [r for r in flat[table] if r.key in keys]
        flat[table] = kept

        for child in Table:
            if child.parent is not table:
                continue

            parent_field = child.parent_field
            assert parent_field is not None

            child_keys = {
                r.key
                for r in flat[child]
                if str(getattr(r, parent_field, None)) in keys
            }

            if child_keys:
                for t, records in self._remove_cascade(
                    flat, child, child_keys
                ).items():
                    removed.setdefault(t, []).extend(records)

        return removed
