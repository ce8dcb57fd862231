"""
handlers/bill_handler.py
------------------------
Bill commands: add, list, edit, pay and delete.

Structured format for adding:
    /add_bill name | amount | YYYY-MM-DD [HH:MM] | repeat | reminder | HH:MM | CUR
Only the first three parts are required.
"""

from telegram import Update
from telegram.ext import ContextTypes

from handlers.common import command_text, current_session
from models.bill import to_decimal
from security.auth import authorized_only
from security.rate_limiter import rate_limited
from utils.formatting import (
    format_amount,
    format_bill,
    format_totals,
    parse_due_date,
    parse_reminder,
    parse_repeat,
    parse_time,
)
from utils.logger import get_logger

logger = get_logger(__name__)

ADD_USAGE = (
    "📝 *Add a bill:*\n"
    "`/add_bill name | amount | YYYY-MM-DD`\n\n"
    "Optional extra parts, in order:\n"
    "`| once/monthly | none/day_before/same_day | HH:MM | CUR`\n\n"
    "*Example:*\n"
    "`/add_bill Rent | 800 | 2024-12-24 | monthly | day_before | 09:00 | EUR`"
)

EDIT_USAGE = (
    "✏️ *Edit a bill:*\n"
    "`/edit_bill <n> field=value ...`\n\n"
    "Fields: `name`, `amount`, `due`, `repeat`, `reminder`, `time`, `currency`\n\n"
    "*Example:*\n"
    "`/edit_bill 2 amount=950 reminder=same_day`"
)


def _parse_add(text: str) -> dict:
    """Parse the pipe-separated /add_bill arguments into BillService.add_bill kwargs."""
    parts = [p.strip() for p in text.split("|")]
    if len(parts) < 3 or not parts[0]:
        raise ValueError("Name, amount and due date are required.")

    fields = {
        "name": parts[0],
        "amount": to_decimal(parts[1].replace(",", "")),
        "due_date": parse_due_date(parts[2]),
    }
    if len(parts) > 3 and parts[3]:
        fields["repeat"] = parse_repeat(parts[3])
    if len(parts) > 4 and parts[4]:
        fields["reminder_preference"] = parse_reminder(parts[4])
    if len(parts) > 5 and parts[5]:
        at = parse_time(parts[5])
        fields["reminder_hour"], fields["reminder_minute"] = at.hour, at.minute
    if len(parts) > 6 and parts[6]:
        fields["currency_code"] = parts[6].upper()
    return fields


def _parse_edit(pairs: list[str]) -> dict:
    """Turn ``field=value`` tokens into Bill.apply_changes kwargs."""
    changes = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not value:
            raise ValueError(f"Expected field=value, got '{pair}'")
        key = key.strip().lower()
        if key == "name":
            changes["name"] = value.replace("_", " ")
        elif key == "amount":
            changes["amount"] = to_decimal(value)
        elif key == "due":
            changes["due_date"] = parse_due_date(value)
        elif key == "repeat":
            changes["repeat"] = parse_repeat(value)
        elif key == "reminder":
            changes["reminder_preference"] = parse_reminder(value)
        elif key == "time":
            at = parse_time(value)
            changes["reminder_hour"], changes["reminder_minute"] = at.hour, at.minute
        elif key == "currency":
            changes["currency_code"] = value.upper()
        else:
            raise ValueError(f"Unknown field '{key}'")
    return changes


@authorized_only
@rate_limited
async def add_bill_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /add_bill - create a bill from the structured format."""
    text = command_text(update)
    if not text:
        await update.message.reply_text(ADD_USAGE, parse_mode="Markdown")
        return

    try:
        fields = _parse_add(text)
    except ValueError as e:
        await update.message.reply_text(f"❌ {e}\n\n{ADD_USAGE}", parse_mode="Markdown")
        return

    session = current_session(update, context)
    try:
        bill = session.bills.add_bill(**fields)
    except ValueError as e:
        await update.message.reply_text(f"❌ {e}")
        return
    except Exception as e:
        logger.error(f"Error adding bill for {update.effective_user.id}: {e}")
        await update.message.reply_text("❌ Could not save the bill. Please try again.")
        return

    await update.message.reply_text(f"✅ *Bill added!*\n\n{format_bill(bill)}", parse_mode="Markdown")


@authorized_only
@rate_limited
async def bills_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /bills - list bills with outstanding totals."""
    service = current_session(update, context).bills
    bills = service.list_bills()
    if not bills:
        await update.message.reply_text("📭 No bills yet. Add one with /add\\_bill", parse_mode="Markdown")
        return

    blocks = [format_bill(bill, i) for i, bill in enumerate(bills, 1)]
    msg = "🧾 *Your bills:*\n\n" + "\n\n".join(blocks)
    msg += f"\n\n*Outstanding:*\n{format_totals(service.total_outstanding())}"
    await update.message.reply_text(msg, parse_mode="Markdown")


@authorized_only
@rate_limited
async def overdue_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /overdue - list unpaid bills past their due date."""
    overdue = current_session(update, context).bills.overdue_bills()
    if not overdue:
        await update.message.reply_text("🎉 Nothing overdue!")
        return
    blocks = [format_bill(bill) for bill in overdue]
    await update.message.reply_text("🔴 *Overdue:*\n\n" + "\n\n".join(blocks), parse_mode="Markdown")


@authorized_only
@rate_limited
async def paid_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /paid <n> - mark a bill paid (monthly bills roll over)."""
    ref = command_text(update)
    if not ref:
        await update.message.reply_text("⚠️ Usage: /paid <number from /bills>")
        return

    service = current_session(update, context).bills
    try:
        bill = service.find_bill(ref)
        next_bill = service.mark_paid(bill.id)
    except LookupError:
        await update.message.reply_text(f"❌ No bill matches '{ref}'. See /bills")
        return
    except Exception as e:
        logger.error(f"Error marking bill paid for {update.effective_user.id}: {e}")
        await update.message.reply_text("❌ Could not update the bill. Please try again.")
        return

    msg = f"✅ *{bill.name}* marked as paid ({format_amount(bill.amount, bill.currency_code)})"
    if next_bill is not None:
        msg += f"\n🔁 Next one due {next_bill.due_date:%Y-%m-%d}"
    await update.message.reply_text(msg, parse_mode="Markdown")


@authorized_only
@rate_limited
async def edit_bill_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /edit_bill <n> field=value ..."""
    args = context.args or []
    if len(args) < 2:
        await update.message.reply_text(EDIT_USAGE, parse_mode="Markdown")
        return

    service = current_session(update, context).bills
    try:
        bill = service.find_bill(args[0])
        bill = service.update_bill(bill.id, **_parse_edit(args[1:]))
    except LookupError:
        await update.message.reply_text(f"❌ No bill matches '{args[0]}'. See /bills")
        return
    except ValueError as e:
        await update.message.reply_text(f"❌ {e}\n\n{EDIT_USAGE}", parse_mode="Markdown")
        return
    except Exception as e:
        logger.error(f"Error editing bill for {update.effective_user.id}: {e}")
        await update.message.reply_text("❌ Could not update the bill. Please try again.")
        return

    await update.message.reply_text(f"✏️ *Updated:*\n\n{format_bill(bill)}", parse_mode="Markdown")


@authorized_only
@rate_limited
async def delete_bill_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /delete_bill <n>."""
    ref = command_text(update)
    if not ref:
        await update.message.reply_text("⚠️ Usage: /delete\\_bill <number from /bills>", parse_mode="Markdown")
        return

    service = current_session(update, context).bills
    try:
        bill = service.delete_bill(service.find_bill(ref).id)
    except LookupError:
        await update.message.reply_text(f"❌ No bill matches '{ref}'. See /bills")
        return
    except Exception as e:
        logger.error(f"Error deleting bill for {update.effective_user.id}: {e}")
        await update.message.reply_text("❌ Could not delete the bill. Please try again.")
        return

    await update.message.reply_text(f"🗑️ Deleted *{bill.name}*", parse_mode="Markdown")
