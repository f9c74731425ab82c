from decimal import Decimal

from django.conf import settings
from django.db import models

from ..exceptions import InvalidTransition
from ..managers import PaymentQuerySet
from .invoice import Invoice
from .milestone import Milestone
from .project import Project
from .status import PaymentMethod, PaymentStatus

S = PaymentStatus


class Payment(models.Model):  # Money received from a client
    client = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="payments",
    )
    project = models.ForeignKey(
        Project,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="payments",
    )
    milestone = models.ForeignKey(
        Milestone,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="payments",
    )
    invoice = models.ForeignKey(
        Invoice,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="payments",
    )
    subscription = models.ForeignKey(
        "brokerage_core.MaintenanceSubscription",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="payments",
    )

    # total_amount is what the client paid; gst_amount is its tax share
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    gst_amount = models.DecimalField(
        max_digits=14, decimal_places=2, default=Decimal("0.00")
    )
    total_amount = models.DecimalField(max_digits=14, decimal_places=2)

    method = models.CharField(
        max_length=16, choices=PaymentMethod.choices, default=PaymentMethod.CARD
    )
    status = models.CharField(
        max_length=12, choices=PaymentStatus.choices, default=PaymentStatus.PENDING
    )
    gateway_transaction_id = models.CharField(
        max_length=128, null=True, blank=True, unique=True
    )
    failure_reason = models.TextField(blank=True, default="")
    paid_at = models.DateTimeField(null=True, blank=True)
    # set exactly once, by the settlement that applied this payment
    settled_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = PaymentQuerySet.as_manager()

    TRANSITIONS = {
        S.PENDING: [S.PROCESSING, S.COMPLETED, S.FAILED],
        S.PROCESSING: [S.COMPLETED, S.FAILED],
        S.COMPLETED: [S.REFUNDED],
        S.FAILED: [],
        S.REFUNDED: [],
    }

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["client", "status"], name="brokerage_c_client_pay_idx"),
            models.Index(fields=["invoice", "status"], name="brokerage_c_invoice_pay_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(total_amount__gt=0), name="ck_payment_total_positive"
            ),
            models.CheckConstraint(
                condition=models.Q(total_amount=models.F("amount") + models.F("gst_amount")),
                name="ck_payment_total_identity",
            ),
        ]

    def __str__(self):
        return f"Payment {self.pk} {self.total_amount} ({self.status})"

    @property
    def is_settled(self):
        return self.settled_at is not None

    def transition_to(self, new_status):
        if new_status not in self.TRANSITIONS.get(self.status, []):
            raise InvalidTransition("Payment", self.status, new_status)
        self.status = new_status
