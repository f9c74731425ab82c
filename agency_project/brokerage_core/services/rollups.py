"""
Revenue and GST rollups.

Settlement and project completion write the totals; filing only records
what was paid to the tax office. Everything else reads.
Rows are upserted per period and incremented with F() so concurrent
settlements add up instead of overwriting each other.
"""
import datetime
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from ..exceptions import Conflict, NotFound
from ..models import GstReport, GstReportStatus, Revenue
from ..money import ZERO, to_money
from .audit_helper import log_action
from .principal import require_admin


def month_key(day: datetime.date) -> str:
    return f"{day.year:04d}-{day.month:02d}"


def quarter_key(day: datetime.date) -> str:
    return f"Q{(day.month - 1) // 3 + 1} {day.year}"


def quarter_due_date(day: datetime.date) -> datetime.date:
    # lodged by the 28th of the month after the quarter ends
    quarter_end_month = ((day.month - 1) // 3 + 1) * 3
    if quarter_end_month == 12:
        return datetime.date(day.year + 1, 1, 28)
    return datetime.date(day.year, quarter_end_month + 1, 28)


def _today(on):
    return on or timezone.localdate()


def record_revenue(amount, on=None) -> Revenue:
    """Add `amount` (may be negative on reversal) to the month's revenue."""
    amount = to_money(amount)
    day = _today(on)
    with transaction.atomic():
        row, _ = Revenue.objects.get_or_create(month=month_key(day))
        if amount != ZERO:
            Revenue.objects.filter(pk=row.pk).update(amount=F("amount") + amount)
            row.refresh_from_db(fields=["amount"])
    return row


def record_gst_collected(amount, on=None) -> GstReport:
    amount = to_money(amount)
    day = _today(on)
    with transaction.atomic():
        row, _ = GstReport.objects.get_or_create(
            period=quarter_key(day),
            defaults={"due_date": quarter_due_date(day)},
        )
        if amount != ZERO:
            GstReport.objects.filter(pk=row.pk).update(
                gst_collected=F("gst_collected") + amount
            )
            row.refresh_from_db(fields=["gst_collected"])
    return row


# ---------- filing ----------
def file_gst_report(principal, period, gst_paid=None, status=None) -> GstReport:
    """Record the GST paid for a quarter and move it along PENDING -> FILED -> PAID."""
    require_admin(principal)
    if gst_paid is not None:
        gst_paid = to_money(gst_paid)
        if gst_paid < ZERO:
            raise ValidationError("GST paid cannot be negative.")
    if status is not None and status not in GstReportStatus.values:
        raise ValidationError(f"Unknown GST report status {status!r}.")

    with transaction.atomic():
        report = GstReport.objects.select_for_update().filter(period=period).first()
        if report is None:
            raise NotFound(f"No GST report for {period}")
        if report.status == GstReportStatus.PAID:
            raise Conflict(f"GST for {period} is already paid.")

        previous = report.status
        if status is not None and status != report.status:
            report.transition_to(status)
            if status == GstReportStatus.FILED:
                report.filed_at = timezone.now()
        if gst_paid is not None:
            report.gst_paid = gst_paid
        # gst_collected stays out of update_fields: settlements may be adding to it
        report.save(update_fields=["gst_paid", "status", "filed_at", "updated_at"])
        log_action(
            action="gst.file",
            instance=report,
            actor=principal,
            changes={"from": previous, "to": report.status, "gst_paid": report.gst_paid},
        )
    report.refresh_from_db()
    return report


# ---------- read models ----------
def revenue_summary(limit=12):
    rows = Revenue.objects.order_by("-month")[:limit]
    return [{"month": r.month, "amount": r.amount} for r in rows]


def gst_summary(limit=8):
    rows = GstReport.objects.order_by("-updated_at")[:limit]
    return [
        {
            "period": r.period,
            "gst_collected": r.gst_collected,
            "gst_paid": r.gst_paid,
            "net_payable": r.net_payable,
            "status": r.status,
            "due_date": r.due_date,
        }
        for r in rows
    ]


def total_revenue() -> Decimal:
    return sum((r.amount for r in Revenue.objects.all()), ZERO)
