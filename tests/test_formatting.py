from datetime import datetime, time
from decimal import Decimal

import pytest

from conftest import make_bill
from handlers.bill_handler import _parse_add, _parse_edit
from models.bill import ReminderPreference, RepeatMode, SyncStatus
from utils.chunking import chunked
from utils.formatting import (
    format_bill,
    format_totals,
    parse_due_date,
    parse_reminder,
    parse_repeat,
    parse_time,
)


def test_parse_add_minimal():
    fields = _parse_add("Rent | 1,200 | 2024-12-24")
    assert fields == {"name": "Rent", "amount": Decimal("1200.00"), "due_date": datetime(2024, 12, 24)}


def test_parse_add_full():
    fields = _parse_add("Rent | 800 | 2024-12-24 18:00 | monthly | day_before | 08:30 | eur")

    assert fields["due_date"] == datetime(2024, 12, 24, 18, 0)
    assert fields["repeat"] is RepeatMode.MONTHLY
    assert fields["reminder_preference"] is ReminderPreference.ONE_DAY_BEFORE
    assert (fields["reminder_hour"], fields["reminder_minute"]) == (8, 30)
    assert fields["currency_code"] == "EUR"


@pytest.mark.parametrize("text", ["Rent | 800", "Rent | abc | 2024-12-24", "Rent | 800 | 24/12/2024", " | 800 | 2024-12-24"])
def test_parse_add_rejects_bad_input(text):
    with pytest.raises(ValueError):
        _parse_add(text)


def test_parse_edit_pairs():
    changes = _parse_edit(["amount=950", "name=Flat_rent", "reminder=same_day", "time=07:05"])
    assert changes == {
        "amount": Decimal("950.00"),
        "name": "Flat rent",
        "reminder_preference": ReminderPreference.SAME_DAY,
        "reminder_hour": 7,
        "reminder_minute": 5,
    }
    with pytest.raises(ValueError):
        _parse_edit(["colour=red"])
    with pytest.raises(ValueError):
        _parse_edit(["amount"])


def test_parsers():
    assert parse_repeat("Once") is RepeatMode.ONE_TIME
    assert parse_reminder("off") is ReminderPreference.NONE
    assert parse_time("9:05") == time(9, 5)
    assert parse_due_date("2024-02-29") == datetime(2024, 2, 29)
    with pytest.raises(ValueError):
        parse_time("24:00")
    with pytest.raises(ValueError):
        parse_repeat("weekly")


def test_format_bill_marks_pending_sync():
    bill = make_bill(name="Rent", amount="1234.5", currency_code="EUR")
    text = format_bill(bill, index=3)
    assert text.startswith("3. ")
    assert "1,234.50 EUR" in text
    assert "pending" in text
    assert bill.id[:8] in text

    bill.sync_status = SyncStatus.CLEAN
    assert "pending" not in format_bill(bill)


def test_format_totals():
    assert "Nothing outstanding" in format_totals({})
    assert format_totals({"USD": Decimal("5"), "EUR": Decimal("10")}).splitlines()[0] == "💰 10.00 EUR"


def test_chunked():
    assert chunked(list(range(5)), 2) == [[0, 1], [2, 3], [4]]
    assert chunked([], 400) == []
    with pytest.raises(ValueError):
        chunked([1], 0)
