from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from conftest import make_bill
from models.bill import (
    Bill,
    MAX_NAME_LENGTH,
    BillStatus,
    ReminderPreference,
    RepeatMode,
    SyncStatus,
    parse_reminder_preference,
    parse_sync_status,
)


def test_new_bill_starts_created_at_version_one():
    bill = make_bill(amount="12.5")
    assert bill.sync_status is SyncStatus.CREATED
    assert bill.version == 1
    assert bill.amount == Decimal("12.50")
    assert bill.id


def test_transitions_bump_version_monotonically():
    bill = make_bill(sync_status=SyncStatus.CLEAN)
    versions = [bill.version]

    bill.mark_as_updated()
    versions.append(bill.version)
    bill.mark_as_created()
    versions.append(bill.version)
    bill.mark_as_deleted()
    versions.append(bill.version)

    assert versions == [1, 2, 3, 4]


def test_mark_as_clean_leaves_version_and_timestamps():
    bill = make_bill()
    bill.mark_as_updated()
    version, modified = bill.version, bill.last_modified

    bill.mark_as_clean()

    assert bill.sync_status is SyncStatus.CLEAN
    assert bill.version == version
    assert bill.last_modified == modified


def test_edits_to_unuploaded_bill_stay_created():
    bill = make_bill()
    assert bill.apply_changes(amount="250")
    assert bill.sync_status is SyncStatus.CREATED
    assert bill.version == 2


def test_edits_to_clean_bill_become_updated():
    bill = make_bill(sync_status=SyncStatus.CLEAN)
    now = datetime(2024, 12, 1, 8, 0, tzinfo=timezone.utc)

    assert bill.apply_changes(now=now, name="Water")

    assert bill.sync_status is SyncStatus.UPDATED
    assert bill.last_modified == now
    assert bill.updated_at == now


def test_apply_changes_without_difference_is_a_no_op():
    bill = make_bill(amount="100")
    assert not bill.apply_changes(amount="100.00", name="Rent")
    assert bill.version == 1


def test_apply_changes_rejects_unknown_and_invalid_fields():
    bill = make_bill()
    with pytest.raises(ValueError):
        bill.apply_changes(version=9)
    with pytest.raises(ValueError):
        bill.apply_changes(amount="-5")
    with pytest.raises(ValueError):
        bill.apply_changes(reminder_hour=24)
    assert bill.amount == Decimal("100.00")
    assert bill.version == 1


@pytest.mark.parametrize("amount", ["abc", "-1", "NaN"])
def test_invalid_amounts_are_rejected(amount):
    with pytest.raises(ValueError):
        make_bill(amount=amount)


def test_empty_name_and_bad_currency_are_rejected():
    with pytest.raises(ValueError):
        make_bill(name="  ")
    with pytest.raises(ValueError):
        make_bill(name="x" * (MAX_NAME_LENGTH + 1))
    assert make_bill(name="x" * MAX_NAME_LENGTH).name == "x" * MAX_NAME_LENGTH
    with pytest.raises(ValueError):
        make_bill(currency_code="EURO")


def test_status_is_derived_from_paid_and_due_date():
    bill = make_bill(due=datetime(2024, 12, 24, 18, 0))
    assert bill.status(today=date(2024, 12, 24)) is BillStatus.UPCOMING
    assert bill.status(today=date(2024, 12, 25)) is BillStatus.OVERDUE
    bill.paid = True
    assert bill.status(today=date(2024, 12, 25)) is BillStatus.PAID


def test_date_only_due_date_becomes_midnight():
    bill = make_bill(due=date(2024, 12, 24))
    assert bill.due_date == datetime(2024, 12, 24, 0, 0)


def test_next_month_clamps_to_last_day_of_month():
    bill = make_bill(
        due=datetime(2024, 1, 31, 10, 0),
        repeat=RepeatMode.MONTHLY,
        paid=True,
        reminder_preference=ReminderPreference.SAME_DAY,
        reminder_hour=7,
        reminder_minute=45,
    )

    nxt = bill.next_month_bill()

    assert nxt.due_date == datetime(2024, 2, 29, 10, 0)
    assert nxt.id != bill.id
    assert not nxt.paid
    assert nxt.sync_status is SyncStatus.CREATED
    assert nxt.version == 1
    assert (nxt.reminder_hour, nxt.reminder_minute) == (7, 45)
    assert nxt.reminder_preference is ReminderPreference.SAME_DAY


def test_next_month_in_non_leap_year():
    bill = make_bill(due=datetime(2023, 1, 31), repeat=RepeatMode.MONTHLY)
    assert bill.next_month_bill().due_date == datetime(2023, 2, 28)


def test_remote_round_trip_preserves_everything_but_sync_status():
    bill = make_bill(
        name="Internet",
        amount="49.99",
        currency_code="eur",
        repeat=RepeatMode.MONTHLY,
        reminder_preference=ReminderPreference.ONE_DAY_BEFORE,
        reminder_hour=20,
    )
    bill.mark_as_updated()

    restored = Bill.from_remote(bill.id, bill.to_remote())

    assert restored.sync_status is SyncStatus.CLEAN
    restored.sync_status = bill.sync_status
    assert restored == bill


def test_remote_document_does_not_carry_sync_status():
    doc = make_bill().to_remote()
    assert "syncStatus" not in doc and "sync_status" not in doc
    assert doc["amount"] == "100.00"


def test_legacy_remote_documents_are_normalized():
    doc = {
        "name": "Gym",
        "amount": "30",
        "dueDate": "2024-12-24T00:00:00",
        "reminderPreference": "both",
        "updatedAt": "2024-12-01T10:00:00",
    }

    bill = Bill.from_remote("abc", doc)

    assert bill.reminder_preference is ReminderPreference.ONE_DAY_BEFORE
    assert bill.last_modified == datetime(2024, 12, 1, 10, 0, tzinfo=timezone.utc)
    assert bill.version == 1
    assert bill.currency_code == "INR"


def test_preference_and_status_parsers_are_lenient():
    assert parse_reminder_preference("hourly") is ReminderPreference.NONE
    assert parse_reminder_preference(None) is ReminderPreference.NONE
    assert parse_reminder_preference("same_day") is ReminderPreference.SAME_DAY
    assert parse_sync_status("bogus") is SyncStatus.CREATED
    assert parse_sync_status("clean") is SyncStatus.CLEAN
