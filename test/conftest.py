import logging
from pathlib import Path

from pytest import fixture

from docket_sync import (
    FileLocalStore,
    SyncStatus,
    Synchronizer,
    Workspace,
)

from fakes import OWNER_ID, FakeBlobStore, FakeRemoteStore

logging.basicConfig(level=logging.WARNING)


@fixture(autouse=True)
def newline(request):
    """
    Print a newline and underline test name.
    """
    print("\n" + "-" * len(request.node.nodeid))


@fixture
def logger() -> logging.Logger:
    return logging.getLogger("docket-sync-test")


@fixture
def remote() -> FakeRemoteStore:
    return FakeRemoteStore()


@fixture
def blobs() -> FakeBlobStore:
    return FakeBlobStore()


@fixture
def statuses() -> list[tuple[SyncStatus, str | None]]:
    """
    Status changes reported by the synchronizer fixture.
    """
    return []


@fixture
def synchronizer(
    remote: FakeRemoteStore,
    blobs: FakeBlobStore,
    statuses: list[tuple[SyncStatus, str | None]],
    logger: logging.Logger,
) -> Synchronizer:
    return Synchronizer(
        remote,
        blobs,
        owner_id=OWNER_ID,
        on_status=lambda status, message: statuses.append((status, message)),
        logger=logger,
    )


@fixture
def local_store(tmp_path: Path, logger: logging.Logger) -> FileLocalStore:
    return FileLocalStore(tmp_path / "local", logger=logger)


@fixture
def workspace(
    local_store: FileLocalStore, logger: logging.Logger
) -> Workspace:
    return Workspace.load(local_store, OWNER_ID, logger=logger)
