from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models

from ..exceptions import InvalidTransition
from ..managers import ProjectQuerySet
from .lead import Lead
from .status import ProjectStatus

S = ProjectStatus


class Project(models.Model):  # Engagement created when a client accepts an offer
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True, default="")
    category = models.CharField(max_length=100, blank=True, default="")
    timeline = models.CharField(max_length=100, blank=True, default="")

    # Money is copied from the accepted offer and only changes via recompute
    offer_price = models.DecimalField(max_digits=14, decimal_places=2)
    partner_cost = models.DecimalField(max_digits=14, decimal_places=2)
    admin_margin = models.DecimalField(max_digits=14, decimal_places=2)
    includes_gst = models.BooleanField(default=False)
    gst_amount = models.DecimalField(
        max_digits=14, decimal_places=2, default=Decimal("0.00")
    )

    status = models.CharField(
        max_length=16, choices=ProjectStatus.choices, default=ProjectStatus.ACTIVE
    )

    client = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="client_projects",
    )
    partner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="partner_projects",
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="+",
    )
    # Owning side of the lead link; Lead.project is the derived reverse
    lead = models.OneToOneField(
        Lead,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="project",
    )

    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ProjectQuerySet.as_manager()

    TRANSITIONS = {
        S.PENDING: [S.ACTIVE, S.IN_PROGRESS, S.COMPLETED, S.CANCELLED],
        S.ACTIVE: [S.IN_PROGRESS, S.COMPLETED, S.CANCELLED],
        S.IN_PROGRESS: [S.COMPLETED, S.CANCELLED],
        S.COMPLETED: [],
        S.CANCELLED: [],
    }

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["client", "status"], name="brokerage_c_client_proj_idx"),
            models.Index(fields=["partner", "status"], name="brokerage_c_partner_proj_idx"),
        ]

    def __str__(self):
        return self.title

    def clean(self):
        for field in ("offer_price", "partner_cost", "admin_margin", "gst_amount"):
            if getattr(self, field) is not None and getattr(self, field) < 0:
                raise ValidationError({field: "Amount cannot be negative."})

    def transition_to(self, new_status):
        if new_status not in self.TRANSITIONS.get(self.status, []):
            raise InvalidTransition("Project", self.status, new_status)
        self.status = new_status
