from django.contrib import admin

from brokerage_core.models import Invoice, Payment

from .actions import refund_payments
from .readonly import ReadOnlyAdmin


class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0
    fields = ("id", "total_amount", "gst_amount", "method", "status", "settled_at")
    readonly_fields = fields
    can_delete = False


@admin.register(Invoice)
class InvoiceAdmin(ReadOnlyAdmin):
    list_display = (
        "invoice_number",
        "client",
        "project",
        "milestone",
        "amount",
        "gst_amount",
        "total_amount",
        "status",
        "due_date",
    )
    list_filter = ("status", "gst_enabled")
    search_fields = ("invoice_number", "client__email")
    inlines = [PaymentInline]

    def get_queryset(self, request):
        return super().get_queryset(request).select_related("client", "project", "milestone")


@admin.register(Payment)
class PaymentAdmin(ReadOnlyAdmin):
    list_display = (
        "id",
        "client",
        "invoice",
        "total_amount",
        "gst_amount",
        "method",
        "status",
        "gateway_transaction_id",
        "settled_at",
    )
    list_filter = ("status", "method")
    search_fields = ("gateway_transaction_id", "client__email", "invoice__invoice_number")
    actions = [refund_payments]
