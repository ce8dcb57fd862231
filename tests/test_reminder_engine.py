from datetime import datetime, timedelta

import pytest

from conftest import make_bill
from models.bill import ReminderPreference
from services.reminder_engine import FALLBACK_DELAY, ReminderEngine, ReminderMode

NOW = datetime(2024, 12, 20, 8, 0)


def engine_at(now, mode=ReminderMode.REAL):
    return ReminderEngine(mode, clock=lambda: now)


def test_one_day_before_fires_previous_day_at_reminder_time():
    engine = engine_at(NOW)
    fire_at = engine.notification_time(
        datetime(2024, 12, 24, 17, 30), ReminderPreference.ONE_DAY_BEFORE, reminder_hour=9, reminder_minute=0,
    )
    assert fire_at == datetime(2024, 12, 23, 9, 0, 0)


def test_same_day_fires_on_due_day_at_custom_time():
    engine = engine_at(NOW)
    fire_at = engine.notification_time(
        datetime(2024, 12, 24), ReminderPreference.SAME_DAY, reminder_hour=18, reminder_minute=30,
    )
    assert fire_at == datetime(2024, 12, 24, 18, 30)


def test_no_preference_means_no_reminder():
    engine = engine_at(NOW)
    assert engine.notification_time(datetime(2024, 12, 24), ReminderPreference.NONE) is None
    assert engine.offset(ReminderPreference.NONE) is None


def test_accelerated_mode_counts_from_reference_time():
    engine = engine_at(datetime(2024, 12, 20, 10, 0, 10), ReminderMode.ACCELERATED)
    reference = datetime(2024, 12, 20, 10, 0)

    one_day = engine.notification_time(datetime(2024, 12, 24), ReminderPreference.ONE_DAY_BEFORE, reference_time=reference)
    same_day = engine.notification_time(datetime(2024, 12, 24), ReminderPreference.SAME_DAY, reference_time=reference)

    assert one_day == datetime(2024, 12, 20, 10, 1)
    assert same_day == datetime(2024, 12, 20, 10, 0, 30)


def test_accelerated_mode_without_reference_uses_now():
    engine = engine_at(NOW, ReminderMode.ACCELERATED)
    fire_at = engine.notification_time(datetime(2024, 12, 24), ReminderPreference.ONE_DAY_BEFORE)
    assert fire_at == NOW + timedelta(minutes=1)


def test_past_reminder_falls_back_to_a_few_seconds_from_now():
    engine = engine_at(NOW)
    fire_at = engine.notification_time(datetime(2024, 12, 20), ReminderPreference.ONE_DAY_BEFORE)
    assert fire_at == NOW + FALLBACK_DELAY
    assert fire_at >= engine.now()


def test_fallback_can_be_disabled_to_get_raw_time():
    engine = engine_at(NOW)
    raw = engine.notification_time(datetime(2024, 12, 20), ReminderPreference.ONE_DAY_BEFORE, use_fallback=False)
    assert raw == datetime(2024, 12, 19, 9, 0)


@pytest.mark.parametrize("delta, expected", [
    (timedelta(days=2, hours=5), "In 2 days"),
    (timedelta(days=1, hours=1), "In 1 day"),
    (timedelta(hours=3, minutes=59), "In 3 hours"),
    (timedelta(minutes=1, seconds=30), "In 1 minute"),
    (timedelta(seconds=5), "In 5 seconds"),
    (timedelta(seconds=1), "In 1 second"),
    (timedelta(0), "Immediately"),
    (timedelta(minutes=-10), "Immediately"),
])
def test_describe_uses_largest_whole_unit(delta, expected):
    engine = engine_at(NOW)
    assert engine.describe(NOW + delta) == expected


def test_schedule_for_bill_uses_its_reminder_time():
    engine = engine_at(NOW)
    bill = make_bill(
        due=datetime(2024, 12, 24),
        reminder_preference=ReminderPreference.ONE_DAY_BEFORE,
        reminder_hour=7,
        reminder_minute=15,
    )

    schedule = engine.schedule_for(bill)

    assert schedule.fire_at == datetime(2024, 12, 23, 7, 15)
    assert schedule.description == "In 2 days"


def test_schedule_for_bill_without_preference_is_none():
    assert engine_at(NOW).schedule_for(make_bill()) is None
