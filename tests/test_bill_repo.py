from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from conftest import make_bill
from models.bill import ReminderPreference, SyncStatus
from repositories.bill_repo import BillRepository


@pytest.fixture
def conn(monkeypatch):
    conn = MagicMock()

    @contextmanager
    def fake_pooled_connection():
        yield conn

    monkeypatch.setattr("repositories.bill_repo.pooled_connection", fake_pooled_connection)
    return conn


@pytest.fixture
def cursor(conn):
    return conn.cursor.return_value.__enter__.return_value


def row(**overrides):
    values = {
        "id": "b1", "name": "Rent", "amount": Decimal("800.00"), "currency_code": "EUR",
        "due_date": datetime(2024, 12, 24), "repeat": "monthly", "paid": False,
        "reminder_preference": "both", "reminder_hour": 9, "reminder_minute": 0,
        "sync_status": "updated", "version": 4,
        "last_modified": datetime(2024, 12, 1, tzinfo=timezone.utc),
        "updated_at": datetime(2024, 12, 1, tzinfo=timezone.utc),
    }
    values.update(overrides)
    return tuple(values.values())


def test_unbound_store_refuses_queries(conn):
    repo = BillRepository()
    assert not repo.is_bound
    with pytest.raises(RuntimeError):
        repo.get_all()
    with pytest.raises(ValueError):
        repo.initialize("")


def test_reads_are_scoped_to_bound_user(conn, cursor):
    cursor.fetchall.return_value = [row()]
    repo = BillRepository("42")

    bills = repo.get_dirty()

    sql, params = cursor.execute.call_args.args
    assert "user_id = %s" in sql
    assert params == ("42", "clean")
    assert bills[0].id == "b1"


def test_row_mapping_normalizes_stored_values(conn, cursor):
    cursor.fetchall.return_value = [row(currency_code="EUR", reminder_preference="both")]
    bill = BillRepository("42").get("b1")

    assert bill.currency_code == "EUR"
    assert bill.reminder_preference is ReminderPreference.ONE_DAY_BEFORE
    assert bill.sync_status is SyncStatus.UPDATED
    assert bill.version == 4


def test_get_missing_returns_none(conn, cursor):
    cursor.fetchall.return_value = []
    assert BillRepository("42").get("nope") is None


def test_insert_commits(conn, cursor):
    bill = make_bill()
    BillRepository("42").insert(bill)

    params = cursor.execute.call_args.args[1]
    assert params[0] == "42"
    assert params[1] == bill.id
    conn.commit.assert_called_once()


def test_update_of_missing_bill_raises(conn, cursor):
    cursor.rowcount = 0
    with pytest.raises(LookupError):
        BillRepository("42").update(make_bill())


def test_write_failure_rolls_back_and_reraises(conn, cursor):
    cursor.execute.side_effect = RuntimeError("connection reset")

    with pytest.raises(RuntimeError):
        BillRepository("42").insert(make_bill())

    conn.rollback.assert_called_once()
    conn.commit.assert_not_called()


def test_delete_reports_whether_a_row_went_away(conn, cursor):
    cursor.rowcount = 1
    assert BillRepository("42").delete("b1")
    cursor.rowcount = 0
    assert not BillRepository("42").delete("b1")


def test_clear_drops_bills_and_checkpoint(conn, cursor):
    BillRepository("42").clear()

    statements = [c.args[0] for c in cursor.execute.call_args_list]
    assert any("FROM bills" in s for s in statements)
    assert any("FROM sync_checkpoints" in s for s in statements)
    conn.commit.assert_called_once()


def test_list_users(conn, cursor):
    cursor.fetchall.return_value = [("42",), ("7",)]
    assert BillRepository.list_users() == ["42", "7"]


def test_schema_keys_bills_by_user_and_id(monkeypatch, conn):
    import db.init_db as init_db

    @contextmanager
    def fake_pooled_connection():
        yield conn

    monkeypatch.setattr(init_db, "pooled_connection", fake_pooled_connection)
    init_db.create_tables()

    executed = conn.cursor.return_value.__enter__.return_value.execute.call_args.args[0]
    assert "PRIMARY KEY (user_id, id)" in executed
    assert "id                  TEXT PRIMARY KEY" not in executed
    conn.commit.assert_called_once()
