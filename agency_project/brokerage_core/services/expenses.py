"""
Agency expenses and the monthly profit summary.

Net profit for a month is the booked margin (Revenue) less that month's
expenses. GST is reported alongside but never counts as profit.
"""
import datetime
import logging

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Sum
from django.utils import timezone

from ..models import Expense, Payment, Revenue
from ..money import ZERO, positive_money, to_money
from .audit_helper import log_action
from .lookup import fetch
from .principal import require_admin
from .rollups import month_key

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("category", "description", "amount", "date")


def _as_date(value):
    if value is None or isinstance(value, datetime.date):
        return value
    try:
        return datetime.date.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid date {value!r}, expected YYYY-MM-DD.")


def record_expense(principal, amount, category, description="", date=None):
    require_admin(principal)
    if not category:
        raise ValidationError("Expense category is required.")
    amount = positive_money(amount, "Expense amount")
    fields = {"category": category, "description": description or "", "amount": amount}
    date = _as_date(date)
    if date is not None:
        fields["date"] = date

    with transaction.atomic():
        expense = Expense.objects.create(created_by_id=principal.id, **fields)
        log_action(
            action="expense.create",
            instance=expense,
            actor=principal,
            changes={"amount": amount, "category": category},
        )
    logger.info("Expense %s recorded: %s %s", expense.pk, category, amount)
    return expense


def update_expense(principal, expense_id, **changes):
    require_admin(principal)
    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Cannot change {', '.join(sorted(unknown))}.")
    if "amount" in changes:
        changes["amount"] = positive_money(changes["amount"], "Expense amount")
    if "date" in changes:
        changes["date"] = _as_date(changes["date"])
    if "category" in changes and not changes["category"]:
        raise ValidationError("Expense category is required.")

    with transaction.atomic():
        expense = fetch(Expense, expense_id, lock=True)
        for name, value in changes.items():
            setattr(expense, name, value)
        expense.save()
        log_action(action="expense.update", instance=expense, actor=principal, changes=changes)
    return expense


def delete_expense(principal, expense_id):
    require_admin(principal)
    with transaction.atomic():
        expense = fetch(Expense, expense_id, lock=True)
        log_action(
            action="expense.delete",
            instance=expense,
            actor=principal,
            changes={"amount": expense.amount},
        )
        expense.delete()


def expenses_for(principal):
    require_admin(principal)
    return Expense.objects.all()


def _month_bounds(month):
    try:
        year, mon = (int(part) for part in month.split("-"))
        start = datetime.date(year, mon, 1)
    except (AttributeError, ValueError):
        raise ValidationError(f"Invalid month {month!r}, expected YYYY-MM.")
    if mon == 12:
        return start, datetime.date(year + 1, 1, 1)
    return start, datetime.date(year, mon + 1, 1)


def monthly_summary(principal, month=None):
    """Revenue, GST, expenses and net profit for one "YYYY-MM" month."""
    require_admin(principal)
    month = month or month_key(timezone.localdate())
    start, end = _month_bounds(month)

    revenue = Revenue.objects.filter(month=month).values_list("amount", flat=True).first() or ZERO
    gst = Payment.objects.completed().filter(
        settled_at__date__gte=start, settled_at__date__lt=end
    ).aggregate(t=Sum("gst_amount"))["t"]
    expenses = Expense.objects.filter(date__gte=start, date__lt=end).aggregate(t=Sum("amount"))["t"]

    revenue = to_money(revenue)
    total_expense = to_money(expenses or ZERO)
    return {
        "month": month,
        "total_revenue": revenue,
        "gst_collected": to_money(gst or ZERO),
        "total_expense": total_expense,
        "net_profit": revenue - total_expense,
    }
