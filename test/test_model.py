import datetime
import logging

from pytest import LogCaptureFixture, raises

from docket_sync import (
    AppData,
    Assistant,
    CaseDocument,
    ClientRecord,
    DeletedIds,
    DocumentState,
    LogicError,
    SyncDeletion,
    parse_record,
    timestamp_ms,
)

from fakes import BASE, at, iso


def test_from_raw(caplog: LogCaptureFixture):
    raw = {
        "clients": [
            {
                "id": "c1",
                "name": "Client 1",
                "cases": [
                    {"subject": "missing id"},
                    {"id": "k1", "stages": [{"id": "s1", "sessions": []}]},
                ],
            },
            "not a client",
        ],
        "adminTasks": [{"id": "t1", "task": "File appeal"}],
        "assistants": ["alice", "", "alice", 5, "bob"],
        "documents": [{"id": "d1", "case_id": "k1"}],
    }

    with caplog.at_level(logging.WARNING):
        data = AppData.from_raw(raw)

    assert len(data.clients) == 1
    assert [case.id for case in data.clients[0].cases] == ["k1"]
    assert data.clients[0].cases[0].stages[0].id == "s1"
    assert data.admin_tasks[0].task == "File appeal"
    assert data.assistants == ["alice", "bob"]
    assert data.documents[0].local_state is DocumentState.PENDING_DOWNLOAD

    # one malformed case, one malformed client
    assert caplog.text.count("Skipping malformed record") == 2


def test_from_raw_malformed(caplog: LogCaptureFixture):
    assert AppData.from_raw(None) == AppData()

    with caplog.at_level(logging.WARNING):
        assert AppData.from_raw(["clients"]) == AppData()

    assert "Discarding malformed local data" in caplog.text


def test_dump():
    data = AppData(
        admin_tasks=[{"id": "t1", "updated_at": at(0)}],
        site_finances=[{"id": 7, "amount": 10}],
    )
    dump = data.dump()

    assert timestamp_ms(dump["adminTasks"][0]["updated_at"]) == timestamp_ms(BASE)
    assert dump["siteFinances"][0]["id"] == 7
    assert "admin_tasks" not in dump

    # either key form is accepted on load
    assert AppData.from_raw(dump) == data
    assert AppData.from_raw({"admin_tasks": dump["adminTasks"]}).admin_tasks == (
        data.admin_tasks
    )


def test_record():
    record = ClientRecord.model_validate(
        {"id": "c1", "created_at": "2024-01-01", "updated_at": iso(5)}
    )

    assert record.key == "c1"
    assert record.updated_ms == timestamp_ms(BASE) + 5

    # server columns survive a round trip
    assert record.to_row()["created_at"] == "2024-01-01"


def test_to_row():
    doc = CaseDocument(
        id="d1",
        case_id="k1",
        local_state=DocumentState.SYNCED,
        is_local_only=True,
    )
    row = doc.to_row()

    assert row["id"] == "d1"
    assert "local_state" not in row
    assert "is_local_only" not in row

    assert Assistant(name="alice").to_row() == {"name": "alice"}


def test_timestamp_ms():
    assert timestamp_ms(None) == 0
    assert timestamp_ms("garbage") == 0
    assert timestamp_ms(datetime.datetime(1970, 1, 1, 0, 0, 1)) == 1000
    assert timestamp_ms("1970-01-01T00:00:01.500+00:00") == 1500
    assert timestamp_ms("1970-01-01T02:00:00+02:00") == 0


def test_parse_record():
    with raises(LogicError):
        parse_record(ClientRecord, "c1")

    with raises(LogicError):
        parse_record(ClientRecord, {"name": "no id"})

    record = ClientRecord(id="c1")
    assert parse_record(ClientRecord, record) is record


def test_deleted_ids():
    deleted = parse_record(
        DeletedIds, {"adminTasks": ["t1"], "documentPaths": ["p/1"]}
    )

    assert deleted.admin_tasks == ["t1"]
    assert deleted.get("documentPaths") == ["p/1"]
    assert not deleted.is_empty

    deleted.add("siteFinances", 5)
    deleted.add("siteFinances", "5", 6)
    assert deleted.site_finances == [5, 6]
    assert deleted.key_set("siteFinances") == {"5", "6"}

    synced = DeletedIds()
    synced.add("adminTasks", "t1")
    synced.add("siteFinances", "5")
    deleted.remove(synced)

    assert deleted.admin_tasks == []
    assert deleted.site_finances == [6]

    dump = deleted.dump()
    assert dump["documentPaths"] == ["p/1"]
    assert dump["siteFinances"] == [6]

    deleted.remove(deleted.model_copy(deep=True))
    assert deleted.is_empty


def test_lookup_key():
    assert SyncDeletion(table_name="site_finances", record_id=7).lookup_key == (
        "site_finances:7"
    )
    assert SyncDeletion(table_name="clients", record_id="c1").lookup_key == (
        "clients:c1"
    )
