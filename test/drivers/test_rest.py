import datetime

from pytest import raises

from docket_sync import (
    RemoteError,
    RestRemoteStore,
    SyncDeletion,
    Table,
)

from fakes import FakeSession, at, make_response

URL = "https://example.test"


def create_store(*responses) -> tuple[RestRemoteStore, FakeSession]:
    session = FakeSession(*responses)
    return RestRemoteStore(URL, "anon-key", session=session), session


def test_check_schema():
    store, session = create_store(make_response(200, []))

    store.check_schema()

    assert session.sent[0]["url"] == f"{URL}/rest/v1/profiles"
    assert session.sent[0]["params"] == {"select": "id", "limit": "1"}


def test_select_all():
    store, session = create_store(
        make_response(200, [{"id": "c1"}, {"id": "c2"}]),
        make_response(200, [{"id": "c3"}]),
    )
    store.page_size = 2

    rows = store.select_all(Table.CLIENTS)

    assert [row["id"] for row in rows] == ["c1", "c2", "c3"]
    assert [sent["params"]["offset"] for sent in session.sent] == ["0", "2"]
    assert session.sent[0]["params"] == {
        "select": "*",
        "order": "id",
        "limit": "2",
        "offset": "0",
    }


def test_select_all_keyed_by_name():
    store, session = create_store(make_response(200, [{"name": "alice"}]))

    assert store.select_all(Table.ASSISTANTS) == [{"name": "alice"}]
    assert session.sent[0]["url"] == f"{URL}/rest/v1/assistants"
    assert session.sent[0]["params"]["order"] == "name"


def test_select_all_invalid():
    store, _ = create_store(make_response(200, {"id": "c1"}))

    with raises(RemoteError) as e:
        store.select_all(Table.CLIENTS)

    assert e.value.table == "clients"


def test_upsert():
    rows = [{"name": "alice", "user_id": "owner-1"}]
    store, session = create_store(make_response(201, [dict(rows[0], id=1)]))

    echoed = store.upsert(Table.ASSISTANTS, rows, on_conflict="user_id,name")

    assert echoed == [{"name": "alice", "user_id": "owner-1", "id": 1}]

    sent = session.sent[0]
    assert sent["method"] == "POST"
    assert sent["json"] == rows
    assert sent["params"] == {"on_conflict": "user_id,name"}
    assert sent["headers"]["Prefer"] == (
        "resolution=merge-duplicates,return=representation"
    )

    # nothing sent for no rows
    assert store.upsert(Table.CLIENTS, []) == []
    assert len(session.sent) == 1


def test_delete_by_key():
    store, session = create_store(make_response(204))

    store.delete_by_key(Table.SITE_FINANCES, [1, 'quoted "name"'])
    store.delete_by_key(Table.SITE_FINANCES, [])

    assert len(session.sent) == 1
    assert session.sent[0]["method"] == "DELETE"
    assert session.sent[0]["url"] == f"{URL}/rest/v1/site_finances"
    assert session.sent[0]["params"] == {"id": 'in.("1","quoted \\"name\\"")'}


def test_deletions():
    store, session = create_store(
        make_response(201),
        make_response(
            200,
            [
                {
                    "table_name": "clients",
                    "record_id": "c1",
                    "deleted_at": "2024-01-01T00:00:00+00:00",
                }
            ],
        ),
    )

    store.insert_deletions(
        [SyncDeletion(table_name="clients", record_id="c1", deleted_at=at(0))]
    )

    sent = session.sent[0]
    assert sent["url"] == f"{URL}/rest/v1/sync_deletions"
    assert sent["headers"]["Prefer"] == "return=minimal"
    assert sent["json"][0]["table_name"] == "clients"
    assert "user_id" not in sent["json"][0]

    since = datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc)
    entries = store.select_deletions_since(since)

    assert entries[0]["record_id"] == "c1"
    assert session.sent[1]["params"] == {
        "select": "*",
        "deleted_at": "gte.2024-01-01T00:00:00+00:00",
    }
