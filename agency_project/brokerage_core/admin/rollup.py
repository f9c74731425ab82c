from django.contrib import admin

from brokerage_core.models import Expense, GstReport, Revenue

from .actions import file_gst_reports, pay_gst_reports
from .readonly import ReadOnlyAdmin


@admin.register(Revenue)
class RevenueAdmin(ReadOnlyAdmin):
    list_display = ("month", "amount", "updated_at")


@admin.register(GstReport)
class GstReportAdmin(ReadOnlyAdmin):
    list_display = ("period", "gst_collected", "gst_paid", "net_payable", "status", "due_date", "filed_at")
    list_filter = ("status",)
    actions = [file_gst_reports, pay_gst_reports]


@admin.register(Expense)
class ExpenseAdmin(ReadOnlyAdmin):
    list_display = ("date", "category", "amount", "description", "created_by")
    list_filter = ("category",)
    date_hierarchy = "date"
