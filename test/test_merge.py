import logging

from pytest import LogCaptureFixture

from docket_sync import (
    DOCUMENT_EXPIRY,
    Assistant,
    CaseDocument,
    CaseRecord,
    ClientRecord,
    DeletedIds,
    DocumentState,
    FlatData,
    Table,
    merge_all,
    merge_for_refresh,
    merge_table,
    utcnow,
)

from fakes import at


def keys(records) -> list[str]:
    return [record.key for record in records]


def test_last_write_wins():
    local = [
        ClientRecord(id="newer", name="local", updated_at=at(2000)),
        ClientRecord(id="older", name="local", updated_at=at(1000)),
        ClientRecord(id="tie", name="local", updated_at=at(1000)),
        ClientRecord(id="local-only", updated_at=at(0)),
    ]
    remote = [
        ClientRecord(id="newer", name="remote", updated_at=at(1000)),
        ClientRecord(id="older", name="remote", updated_at=at(2000)),
        ClientRecord(id="tie", name="remote", updated_at=at(1000)),
        ClientRecord(id="remote-only", updated_at=at(0)),
    ]

    upserts, merged = merge_table(Table.CLIENTS, local, remote, DeletedIds())

    assert keys(upserts) == ["newer", "local-only"]

    by_key = {record.key: record for record in merged}
    assert set(by_key) == {"newer", "older", "tie", "local-only", "remote-only"}
    assert by_key["newer"].name == "local"
    assert by_key["older"].name == "remote"

    # remote wins ties
    assert by_key["tie"].name == "remote"


def test_missing_timestamp():
    upserts, merged = merge_table(
        Table.CLIENTS,
        [ClientRecord(id="c1", name="local")],
        [ClientRecord(id="c1", name="remote")],
        DeletedIds(),
    )

    assert upserts == []
    assert merged[0].name == "remote"


def test_no_resurrection():
    deleted = DeletedIds()
    deleted.add("clients", "c1")
    deleted.add("cases", "k9")

    local = FlatData()
    local[Table.CASES] = [
        CaseRecord(id="k1", client_id="c1", updated_at=at(5000)),
        CaseRecord(id="k2", client_id="c2", updated_at=at(5000)),
    ]

    remote = FlatData()
    remote[Table.CLIENTS] = [
        ClientRecord(id="c1", updated_at=at(0)),
        ClientRecord(id="c2", updated_at=at(0)),
    ]
    remote[Table.CASES] = [
        CaseRecord(id="k9", client_id="c2", updated_at=at(9000)),
    ]

    result = merge_all(local, remote, deleted)

    # pending deletion isn't pulled back
    assert result.merged.keys(Table.CLIENTS) == {"c2"}
    assert result.merged.keys(Table.CASES) == {"k2"}

    # children of pending deletions are neither pushed nor kept
    assert keys(result.upserts[Table.CASES]) == ["k2"]
    assert result.upserts[Table.CLIENTS] == []


def test_pending_deletion_with_newer_local():
    deleted = DeletedIds()
    deleted.add("clients", "c1")

    upserts, merged = merge_table(
        Table.CLIENTS,
        [ClientRecord(id="c1", updated_at=at(9000))],
        [],
        deleted,
    )

    assert upserts == []
    assert merged == []


def test_vanished_document():
    """
    A synced document missing remotely becomes local-only rather than being
    pushed back.
    """
    d1 = CaseDocument(id="d1", case_id="k1", local_state=DocumentState.SYNCED)
    d2 = CaseDocument(
        id="d2", case_id="k1", local_state=DocumentState.PENDING_UPLOAD
    )

    upserts, merged = merge_table(
        Table.CASE_DOCUMENTS, [d1, d2], [], DeletedIds()
    )

    assert keys(upserts) == ["d2"]

    by_key = {record.key: record for record in merged}
    assert by_key["d1"].is_local_only
    assert not by_key["d2"].is_local_only


def test_vanished_document_reason(caplog: LogCaptureFixture):
    """
    Documents older than the expiry are reported as expired rather than
    removed.
    """
    old = CaseDocument(
        id="d1", case_id="k1", added_at=at(0), local_state=DocumentState.SYNCED
    )
    recent = CaseDocument(
        id="d2",
        case_id="k1",
        added_at=utcnow() - DOCUMENT_EXPIRY / 2,
        local_state=DocumentState.SYNCED,
    )

    with caplog.at_level(logging.DEBUG):
        _, merged = merge_table(
            Table.CASE_DOCUMENTS, [old, recent], [], DeletedIds()
        )

    assert all(record.is_local_only for record in merged)
    assert "Document d1 expired remotely" in caplog.text
    assert "Document d2 removed remotely" in caplog.text


def test_local_only_document():
    local = CaseDocument(
        id="d1",
        case_id="k1",
        name="local",
        local_state=DocumentState.SYNCED,
        is_local_only=True,
        updated_at=at(0),
    )
    remote = CaseDocument(id="d1", case_id="k1", name="remote", updated_at=at(5000))

    upserts, merged = merge_table(
        Table.CASE_DOCUMENTS, [local], [remote], DeletedIds()
    )

    assert upserts == []
    assert merged == [local]


def test_document_residency():
    """
    Remote version of a document keeps this device's residency state.
    """
    local = CaseDocument(
        id="d1", case_id="k1", name="old", local_state=DocumentState.SYNCED
    )
    remote = CaseDocument(id="d1", case_id="k1", name="new", updated_at=at(5000))

    _, merged = merge_table(Table.CASE_DOCUMENTS, [local], [remote], DeletedIds())

    assert merged[0].name == "new"
    assert merged[0].local_state is DocumentState.SYNCED


def test_idempotent():
    deleted = DeletedIds()
    deleted.add("assistants", "carol")

    local = FlatData()
    local[Table.CLIENTS] = [ClientRecord(id="c1", updated_at=at(5000))]
    local[Table.ASSISTANTS] = [Assistant(name="alice"), Assistant(name="carol")]

    remote = FlatData()
    remote[Table.CLIENTS] = [ClientRecord(id="c1", updated_at=at(1000))]
    remote[Table.ASSISTANTS] = [Assistant(name="bob"), Assistant(name="carol")]

    first = merge_all(local, remote, deleted)
    second = merge_all(local, remote, deleted)

    for table in Table:
        assert first.merged[table] == second.merged[table]
        assert first.upserts[table] == second.upserts[table]

    assert first.merged.keys(Table.ASSISTANTS) == {"alice", "bob"}
    assert keys(first.upserts[Table.ASSISTANTS]) == ["alice"]


def test_merge_for_refresh():
    deleted = DeletedIds()
    deleted.add("clients", "c3")

    local = FlatData()
    local[Table.CLIENTS] = [
        ClientRecord(id="c1", name="local", updated_at=at(1000)),
        ClientRecord(id="c2", name="local", updated_at=at(1000)),
    ]
    local[Table.CASE_DOCUMENTS] = [
        CaseDocument(id="d1", name="old", local_state=DocumentState.SYNCED)
    ]

    remote = FlatData()
    remote[Table.CLIENTS] = [
        ClientRecord(id="c1", name="remote", updated_at=at(2000)),
        ClientRecord(id="c2", name="remote", updated_at=at(1000)),
        ClientRecord(id="c3", name="remote", updated_at=at(0)),
        ClientRecord(id="c4", name="remote", updated_at=at(0)),
    ]
    remote[Table.CASE_DOCUMENTS] = [
        CaseDocument(id="d1", name="new", updated_at=at(1000)),
        CaseDocument(id="d2"),
    ]

    merged = merge_for_refresh(local, remote, deleted, {"d2"})

    clients = {record.key: record for record in merged[Table.CLIENTS]}
    assert set(clients) == {"c1", "c2", "c4"}
    assert clients["c1"].name == "remote"

    # local wins ties when only pulling
    assert clients["c2"].name == "local"

    documents = merged[Table.CASE_DOCUMENTS]
    assert keys(documents) == ["d1"]
    assert documents[0].name == "new"
    assert documents[0].local_state is DocumentState.SYNCED
