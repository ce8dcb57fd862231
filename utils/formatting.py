"""
utils/formatting.py
-------------------
Display labels and chat-input parsing for bills.

Labels live here rather than on the enums so stored codes never change
when wording does.
"""

import re
from datetime import datetime, time
from decimal import Decimal
from typing import Optional

from models.bill import Bill, BillStatus, ReminderPreference, RepeatMode
from models.sync import SyncState

REPEAT_LABELS = {
    RepeatMode.ONE_TIME: "One-time",
    RepeatMode.MONTHLY: "Monthly",
}

REMINDER_LABELS = {
    ReminderPreference.NONE: "No reminder",
    ReminderPreference.ONE_DAY_BEFORE: "1 day before",
    ReminderPreference.SAME_DAY: "On due day",
}

STATUS_ICONS = {
    BillStatus.UPCOMING: "🧾",
    BillStatus.OVERDUE: "🔴",
    BillStatus.PAID: "✅",
}

SYNC_STATE_LABELS = {
    SyncState.IDLE: "⏸️ Idle",
    SyncState.SYNCING: "🔄 Syncing",
    SyncState.SUCCESS: "✅ Up to date",
    SyncState.FAILED: "⚠️ Failed",
}

_REPEAT_ALIASES = {
    "once": RepeatMode.ONE_TIME, "one-time": RepeatMode.ONE_TIME,
    "one_time": RepeatMode.ONE_TIME, "onetime": RepeatMode.ONE_TIME,
    "monthly": RepeatMode.MONTHLY, "month": RepeatMode.MONTHLY,
}

_REMINDER_ALIASES = {
    "none": ReminderPreference.NONE, "off": ReminderPreference.NONE, "no": ReminderPreference.NONE,
    "one_day_before": ReminderPreference.ONE_DAY_BEFORE, "day_before": ReminderPreference.ONE_DAY_BEFORE,
    "1d": ReminderPreference.ONE_DAY_BEFORE,
    "same_day": ReminderPreference.SAME_DAY, "today": ReminderPreference.SAME_DAY,
}

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})$")


def parse_repeat(text: str) -> RepeatMode:
    try:
        return _REPEAT_ALIASES[text.strip().lower()]
    except KeyError:
        raise ValueError(f"Unknown repeat mode '{text}'. Use once or monthly.") from None


def parse_reminder(text: str) -> ReminderPreference:
    try:
        return _REMINDER_ALIASES[text.strip().lower()]
    except KeyError:
        raise ValueError(f"Unknown reminder '{text}'. Use none, day_before or same_day.") from None


def parse_time(text: str) -> time:
    """Parse HH:MM."""
    match = _TIME_RE.match(text.strip())
    if not match:
        raise ValueError(f"Invalid time '{text}'. Use HH:MM.")
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise ValueError(f"Invalid time '{text}'. Use HH:MM.")
    return time(hour, minute)


def parse_due_date(text: str) -> datetime:
    """Parse YYYY-MM-DD or YYYY-MM-DD HH:MM; a bare date is due at midnight."""
    text = text.strip()
    for fmt in ("%Y-%m-%d %H:%M", "%Y-%m-%d"):
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    raise ValueError(f"Invalid date '{text}'. Use YYYY-MM-DD.")


def format_amount(amount: Decimal, currency: str) -> str:
    return f"{amount:,.2f} {currency}"


def format_bill(bill: Bill, index: Optional[int] = None) -> str:
    """One bill as a short Markdown block."""
    prefix = f"{index}. " if index is not None else ""
    lines = [
        f"{prefix}{STATUS_ICONS[bill.status()]} *{bill.name}* - {format_amount(bill.amount, bill.currency_code)}",
        f"   📅 {bill.due_date:%Y-%m-%d} | 🔁 {REPEAT_LABELS[bill.repeat]} "
        f"| 🔔 {REMINDER_LABELS[bill.reminder_preference]}",
    ]
    if bill.is_dirty:
        lines[-1] += " | ☁️ pending"
    lines.append(f"   🆔 `{bill.id[:8]}`")
    return "\n".join(lines)


def format_totals(totals: dict[str, Decimal]) -> str:
    if not totals:
        return "Nothing outstanding 🎉"
    return "\n".join(f"💰 {format_amount(total, code)}" for code, total in sorted(totals.items()))


def format_timestamp(value: Optional[datetime]) -> str:
    if value is None:
        return "never"
    return value.astimezone().strftime("%Y-%m-%d %H:%M")
