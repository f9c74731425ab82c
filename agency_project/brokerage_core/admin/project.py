from django.contrib import admin

from brokerage_core.models import Milestone, Project

from .actions import complete_projects


class MilestoneInline(admin.TabularInline):
    model = Milestone
    extra = 0
    fields = ("order", "title", "cost", "client_cost", "status", "due_date")
    readonly_fields = fields
    can_delete = False
    show_change_link = True


@admin.register(Project)
class ProjectAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "title",
        "client",
        "partner",
        "status",
        "offer_price",
        "partner_cost",
        "admin_margin",
    )
    list_filter = ("status", "includes_gst")
    search_fields = ("title", "client__email", "partner__email")
    actions = [complete_projects]
    inlines = [MilestoneInline]
    # money is changed via the recompute service only
    readonly_fields = (
        "offer_price",
        "partner_cost",
        "admin_margin",
        "includes_gst",
        "gst_amount",
        "status",
        "lead",
        "completed_at",
    )

    def get_queryset(self, request):
        return super().get_queryset(request).select_related("client", "partner")


@admin.register(Milestone)
class MilestoneAdmin(admin.ModelAdmin):
    list_display = ("id", "project", "order", "title", "partner", "cost", "client_cost", "status")
    list_filter = ("status",)
    search_fields = ("title", "project__title")
    readonly_fields = ("status", "client_cost", "approved_by", "approved_at", "completed_at")
