from pytest import raises

from docket_sync import (
    DELETE_ORDER,
    UPSERT_ORDER,
    UPSERT_PARALLEL,
    DeletedIds,
    Table,
)


def test_deletion_keys():
    assert Table.ADMIN_TASKS.deletion_key == "adminTasks"
    assert Table.INVOICE_ITEMS.deletion_key == "invoiceItems"
    assert Table.CASE_DOCUMENTS.deletion_key == "documents"
    assert Table.SITE_FINANCES.deletion_key == "siteFinances"

    keys = [table.deletion_key for table in Table]
    assert len(set(keys)) == len(keys)

    for table in Table:
        assert Table.from_deletion_key(table.deletion_key) is table

        # every table has a pending-deletion list
        assert DeletedIds().get(table.deletion_key) == []

    with raises(KeyError):
        Table.from_deletion_key("admin_tasks")


def test_structure():
    assert Table.CASES.parent is Table.CLIENTS
    assert Table.STAGES.parent is Table.CASES
    assert Table.SESSIONS.parent is Table.STAGES
    assert Table.INVOICE_ITEMS.parent is Table.INVOICES
    assert Table.CASE_DOCUMENTS.parent is Table.CASES
    assert Table.CLIENTS.parent is None
    assert Table.ACCOUNTING_ENTRIES.parent is None

    assert Table.ASSISTANTS.primary_key == "name"
    assert not Table.PROFILES.tombstoned
    assert all(table.tombstoned for table in Table if table is not Table.PROFILES)


def test_orders():
    assert sorted(DELETE_ORDER, key=str) == sorted(Table, key=str)
    assert sorted(UPSERT_ORDER + UPSERT_PARALLEL, key=str) == sorted(
        Table, key=str
    )

    # parents created before and deleted after their children
    for table in Table:
        if (parent := table.parent) is None:
            continue

        assert UPSERT_ORDER.index(parent) < UPSERT_ORDER.index(table)
        assert DELETE_ORDER.index(parent) > DELETE_ORDER.index(table)

    # independent tables have no children
    for table in UPSERT_PARALLEL:
        assert not any(t.parent is table for t in Table)
