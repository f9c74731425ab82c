from django.contrib import admin, messages
from django.core.exceptions import PermissionDenied, ValidationError

from brokerage_core.exceptions import BrokerageError
from brokerage_core.models import GstReportStatus, WithdrawalStatus
from brokerage_core.services import (bill_subscription, file_gst_report,
                                     mark_complete, process_withdrawal,
                                     refund_payment, start_review)
from brokerage_core.services.principal import Principal

# ---------- Admin actions ----------
# Every action goes through the service layer so admins get the same
# rules, locks and audit entries as the API.

SERVICE_ERRORS = (BrokerageError, ValidationError, PermissionDenied)


def _run_each(modeladmin, request, queryset, label, call):
    """Apply `call(principal, obj)` to each selected row, one transaction each."""
    principal = Principal.from_user(request.user)
    done = 0
    for obj in queryset:
        try:
            call(principal, obj)
            done += 1
        except SERVICE_ERRORS as exc:
            modeladmin.message_user(request, f"{obj}: {exc}", level=messages.ERROR)
    modeladmin.message_user(
        request,
        f"{label}: {done} of {queryset.count()} done.",
        level=messages.SUCCESS if done == queryset.count() else messages.WARNING,
    )


@admin.action(description="Start review of selected leads")
def review_leads(modeladmin, request, queryset):
    _run_each(modeladmin, request, queryset, "Review",
              lambda p, lead: start_review(p, lead.pk))


@admin.action(description="Mark selected projects as Completed")
def complete_projects(modeladmin, request, queryset):
    _run_each(modeladmin, request, queryset, "Complete",
              lambda p, project: mark_complete(p, project.pk))


@admin.action(description="Approve selected withdrawals")
def approve_withdrawals(modeladmin, request, queryset):
    _run_each(modeladmin, request, queryset, "Approve",
              lambda p, w: process_withdrawal(p, w.pk, WithdrawalStatus.APPROVED))


@admin.action(description="Mark selected withdrawals as Paid")
def pay_withdrawals(modeladmin, request, queryset):
    _run_each(modeladmin, request, queryset, "Pay",
              lambda p, w: process_withdrawal(p, w.pk, WithdrawalStatus.PAID))


@admin.action(description="Reject selected withdrawals (refund balance)")
def reject_withdrawals(modeladmin, request, queryset):
    _run_each(modeladmin, request, queryset, "Reject",
              lambda p, w: process_withdrawal(p, w.pk, WithdrawalStatus.REJECTED))


@admin.action(description="Refund selected payments")
def refund_payments(modeladmin, request, queryset):
    _run_each(modeladmin, request, queryset, "Refund",
              lambda p, payment: refund_payment(p, payment.pk))


@admin.action(description="Bill selected subscriptions now (if due)")
def bill_subscriptions(modeladmin, request, queryset):
    _run_each(modeladmin, request, queryset, "Bill",
              lambda p, sub: bill_subscription(sub.pk))


@admin.action(description="Mark selected GST reports as Filed")
def file_gst_reports(modeladmin, request, queryset):
    _run_each(modeladmin, request, queryset, "File",
              lambda p, report: file_gst_report(p, report.period, status=GstReportStatus.FILED))


@admin.action(description="Mark selected GST reports as Paid in full")
def pay_gst_reports(modeladmin, request, queryset):
    _run_each(modeladmin, request, queryset, "Pay",
              lambda p, report: file_gst_report(
                  p, report.period, gst_paid=report.gst_collected, status=GstReportStatus.PAID))
