from django.conf import settings
from django.db import models

from ..exceptions import InvalidTransition
from ..managers import MilestoneQuerySet
from .project import Project
from .status import MilestoneStatus

S = MilestoneStatus


class Milestone(models.Model):  # Unit of partner work billed to the client
    project = models.ForeignKey(
        Project, on_delete=models.CASCADE, related_name="milestones"
    )
    partner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="milestones",
    )
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True, default="")

    # What the partner is paid
    cost = models.DecimalField(max_digits=14, decimal_places=2)
    # What the client is charged before GST, fixed at approval
    client_cost = models.DecimalField(
        max_digits=14, decimal_places=2, null=True, blank=True
    )
    includes_gst = models.BooleanField(default=False)

    duration_days = models.PositiveIntegerField(default=0)
    order = models.PositiveIntegerField(default=1)
    due_date = models.DateField(null=True, blank=True)

    status = models.CharField(
        max_length=16, choices=MilestoneStatus.choices, default=MilestoneStatus.PENDING
    )
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="+",
    )
    approved_at = models.DateTimeField(null=True, blank=True)
    rejection_reason = models.TextField(blank=True, default="")
    completed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = MilestoneQuerySet.as_manager()

    """ Workflow:
        PENDING -> APPROVED -> [IN_PROGRESS] -> COMPLETED -> PAID
        PENDING -> REJECTED
        Settlement may land before the partner reports completion,
        so APPROVED and IN_PROGRESS can also go straight to PAID. """
    TRANSITIONS = {
        S.PENDING: [S.APPROVED, S.REJECTED],
        S.APPROVED: [S.IN_PROGRESS, S.COMPLETED, S.PAID],
        S.IN_PROGRESS: [S.COMPLETED, S.PAID],
        S.COMPLETED: [S.PAID],
        # reversal of a settlement
        S.PAID: [S.COMPLETED],
        S.REJECTED: [],
    }

    class Meta:
        ordering = ["project", "order"]
        indexes = [models.Index(fields=["project", "status"], name="brokerage_c_project_ms_idx")]
        constraints = [
            models.UniqueConstraint(
                fields=["project", "order"], name="uq_milestone_project_order"
            ),
            models.CheckConstraint(
                condition=models.Q(cost__gt=0), name="ck_milestone_cost_positive"
            ),
        ]

    def __str__(self):
        return f"{self.project} #{self.order}: {self.title}"

    def transition_to(self, new_status):
        if new_status not in self.TRANSITIONS.get(self.status, []):
            raise InvalidTransition("Milestone", self.status, new_status)
        self.status = new_status
