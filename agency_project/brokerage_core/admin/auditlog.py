from django.contrib import admin

from brokerage_core.models import AuditLog

from .readonly import ReadOnlyAdmin


# Register `AuditLog` model
@admin.register(AuditLog)
class AuditLogAdmin(ReadOnlyAdmin):
    list_display = ("id", "actor", "action", "object_type", "object_id", "created_at")
    search_fields = ("object_type", "object_id", "actor__email")
    list_filter = ("action", "created_at")

    # Fetch everything in one SQL join
    def get_queryset(self, request):
        return super().get_queryset(request).select_related("actor")
