from django.contrib import admin

from brokerage_core.models import MaintenancePlan, MaintenanceSubscription

from .actions import bill_subscriptions


@admin.register(MaintenancePlan)
class MaintenancePlanAdmin(admin.ModelAdmin):
    list_display = ("name", "price", "billing_cycle", "includes_gst", "is_active")
    list_filter = ("billing_cycle", "is_active")


@admin.register(MaintenanceSubscription)
class MaintenanceSubscriptionAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "client",
        "plan",
        "status",
        "next_billing_date",
        "failed_attempts",
        "next_retry_at",
    )
    list_filter = ("status", "plan")
    actions = [bill_subscriptions]
    readonly_fields = ("failed_attempts", "next_retry_at", "last_billed_at", "last_failure_reason")
