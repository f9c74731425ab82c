from decimal import Decimal

from django.db import models

from ..exceptions import InvalidTransition
from .status import GstReportStatus


class Revenue(models.Model):  # Platform margin accumulated per calendar month
    month = models.CharField(max_length=7, unique=True)  # "YYYY-MM"
    amount = models.DecimalField(
        max_digits=16, decimal_places=2, default=Decimal("0.00")
    )
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-month"]

    def __str__(self):
        return f"Revenue {self.month}: {self.amount}"


class GstReport(models.Model):  # GST collected per quarter, for the BAS
    period = models.CharField(max_length=10, unique=True)  # "Q3 2025"
    gst_collected = models.DecimalField(
        max_digits=16, decimal_places=2, default=Decimal("0.00")
    )
    gst_paid = models.DecimalField(
        max_digits=16, decimal_places=2, default=Decimal("0.00")
    )
    status = models.CharField(
        max_length=10,
        choices=GstReportStatus.choices,
        default=GstReportStatus.PENDING,
    )
    due_date = models.DateField(null=True, blank=True)
    filed_at = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    """ Filing: PENDING -> FILED -> PAID. gst_collected is never
        touched by filing, only by settlement. """
    TRANSITIONS = {
        GstReportStatus.PENDING: [GstReportStatus.FILED],
        GstReportStatus.FILED: [GstReportStatus.PAID],
        GstReportStatus.PAID: [],
    }

    class Meta:
        ordering = ["-period"]

    def __str__(self):
        return f"GST {self.period}: {self.gst_collected}"

    @property
    def net_payable(self):
        return self.gst_collected - self.gst_paid

    def transition_to(self, new_status):
        if new_status not in self.TRANSITIONS.get(self.status, []):
            raise InvalidTransition("GstReport", self.status, new_status)
        self.status = new_status
