from django.conf import settings
from django.db import models


# ---------- Audit / Event log ----------
class AuditLog(models.Model):  # Who changed which financial record, and how
    # Nullable for automated actors (webhooks, celery beat)
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL
    )
    action = models.CharField(max_length=50)  # e.g. "milestone.approve"
    object_type = models.CharField(max_length=100)  # e.g. "Invoice"
    object_id = models.CharField(max_length=100)
    changes = models.JSONField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["object_type", "object_id"], name="brokerage_c_object_audit_idx"),
            models.Index(fields=["created_at"], name="brokerage_c_created_audit_idx"),
        ]

    def __str__(self):
        return (
            f"[{self.created_at:%Y-%m-%d %H:%M}] {self.actor} "
            f"{self.action} {self.object_type}({self.object_id})"
        )
