from django.contrib import admin

from brokerage_core.models import Lead

from .actions import review_leads


@admin.register(Lead)
class LeadAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "project_title",
        "email",
        "status",
        "assigned_partner",
        "partner_proposed_cost",
        "offer_price",
        "created_at",
    )
    list_filter = ("status", "includes_gst")
    search_fields = ("project_title", "email", "name", "company_name")
    actions = [review_leads]
    # negotiation fields change only through the workflow
    readonly_fields = (
        "status",
        "assigned_partner",
        "partner_proposed_cost",
        "partner_offer_proposed_at",
        "admin_margin",
        "offer_price",
        "includes_gst",
        "offer_sent_at",
        "responded_at",
        "archived_at",
    )

    def get_queryset(self, request):
        return super().get_queryset(request).select_related("client", "assigned_partner")
