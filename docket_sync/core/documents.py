"""
Lifecycle of a document's file with respect to local and remote residency,
and the queues which move files between the two.
"""

from __future__ import annotations

import logging
from logging import Logger
from typing import TYPE_CHECKING

from .exceptions import SyncError, _assert_logic
from .model import CaseDocument, DocumentState
from .store import BlobStore

if TYPE_CHECKING:
    from .workspace import Workspace

__all__ = [
    "TRANSITIONS",
    "transition",
    "mark_local_only",
    "carry_residency",
    "DocumentQueue",
]

TRANSITIONS: dict[DocumentState, frozenset[DocumentState]] = {
    DocumentState.PENDING_UPLOAD: frozenset({DocumentState.SYNCED}),
    DocumentState.PENDING_DOWNLOAD: frozenset({DocumentState.DOWNLOADING}),
    DocumentState.DOWNLOADING: frozenset(
        {DocumentState.SYNCED, DocumentState.ERROR}
    ),
    DocumentState.ERROR: frozenset(
        {DocumentState.PENDING_UPLOAD, DocumentState.PENDING_DOWNLOAD}
    ),
    DocumentState.SYNCED: frozenset(),
}
"""
Allowed residency transitions. Becoming local-only is allowed from any state
and is tracked separately by `is_local_only`.
"""


def transition(document: CaseDocument, state: DocumentState) -> CaseDocument:
    """
    Get a copy of document in the new state, raising {obj}`LogicError` if the
    transition isn't allowed.
    """
    _assert_logic(
        not document.is_local_only,
        f"Document {document.id} is local-only, no remote transitions allowed",
    )
    _assert_logic(
        state in TRANSITIONS[document.local_state],
        f"Document {document.id}: invalid transition {document.local_state.value} -> {state.value}",
    )
    return document.model_copy(update={"local_state": state})


def mark_local_only(document: CaseDocument) -> CaseDocument:
    """
    Get a copy of document which is kept on this device only and no longer
    tracked remotely.
    """
    if document.is_local_only:
        return document
    return document.model_copy(update={"is_local_only": True})


def carry_residency(
    remote: CaseDocument, local: CaseDocument | None
) -> CaseDocument:
    """
    Get remote version of a document with the residency fields of the local
    version, if any.
    """
    if local is None:
        return remote

    return remote.model_copy(
        update={
            "local_state": local.local_state,
            "is_local_only": local.is_local_only,
        }
    )


class DocumentQueue:
    """
    Moves document files between the local and remote stores, polling the
    residency state of each document in the workspace.

    A failed upload stays pending to be retried on the next pass; a failed
    download transitions to {obj}`DocumentState.ERROR` until requeued.
    """

    workspace: Workspace
    blobs: BlobStore
    _logger: Logger

    def __init__(
        self,
        workspace: Workspace,
        blobs: BlobStore,
        *,
        logger: Logger | None = None,
    ):
        self.workspace = workspace
        self.blobs = blobs
        self._logger = logger or logging.getLogger()

    def pending(self, state: DocumentState) -> list[CaseDocument]:
        """
        Get documents in the given state which are still tracked remotely.
        """
        return [
            doc
            for doc in self.workspace.data.documents
            if doc.local_state is state and not doc.is_local_only
        ]

    def process_uploads(self) -> int:
        """
        Upload files of documents pending upload, returning the number
        uploaded.
        """
        documents = self.pending(DocumentState.PENDING_UPLOAD)
        count = 0

        if documents:
            self._logger.info(f"Processing {len(documents)} file upload(s)")

        for doc in documents:
            data = self.workspace.local.get_document_file(doc.id)

            if data is None:
                self._logger.warning(
                    f"File contents missing for {doc.id}, skipping upload"
                )
                continue

            try:
                self.blobs.upload(doc.storage_path, data, overwrite=True)
            except SyncError as e:
                self._logger.error(f"Upload failed for '{doc.name}': {e}")
                continue

            self.workspace.update_document(
                transition(doc, DocumentState.SYNCED)
            )
            count += 1

        return count

    def process_downloads(self) -> int:
        """
        Download files of documents pending download, returning the number
        downloaded.
        """
        documents = self.pending(DocumentState.PENDING_DOWNLOAD)
        count = 0

        if documents:
            self._logger.info(f"Downloading {len(documents)} file(s)")

        for doc in documents:
            if self._download(doc) is not None:
                count += 1

        return count

    def requeue_failed(self) -> int:
        """
        Move documents in error state back to the queue they came from:
        pending upload if the file is stored locally, else pending download.
        """
        documents = self.pending(DocumentState.ERROR)

        for doc in documents:
            has_file = self.workspace.local.get_document_file(doc.id) is not None
            state = (
                DocumentState.PENDING_UPLOAD
                if has_file
                else DocumentState.PENDING_DOWNLOAD
            )
            self.workspace.update_document(transition(doc, state))

        return len(documents)

    def get_file(self, document_id: str) -> bytes | None:
        """
        Get file contents of document, downloading them on demand if pending
        download. Returns `None` if not available.
        """
        doc = self.workspace.get_document(document_id)

        if doc is None:
            return None

        data = self.workspace.local.get_document_file(document_id)
        if data is not None:
            return data

        if doc.is_local_only or doc.local_state is not DocumentState.PENDING_DOWNLOAD:
            return None

        return self._download(doc)

    def _download(self, doc: CaseDocument) -> bytes | None:
        doc = transition(doc, DocumentState.DOWNLOADING)
        self.workspace.update_document(doc)

        try:
            data = self.blobs.download(doc.storage_path)
        except SyncError as e:
            self._logger.error(f"Download failed for '{doc.name}': {e}")
            self.workspace.update_document(transition(doc, DocumentState.ERROR))
            return None

        self.workspace.local.put_document_file(doc.id, data)
        self.workspace.update_document(transition(doc, DocumentState.SYNCED))

        return data
