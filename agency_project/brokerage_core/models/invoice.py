from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models

from ..exceptions import InvalidTransition
from ..managers import InvoiceQuerySet
from .milestone import Milestone
from .project import Project
from .status import InvoiceStatus

S = InvoiceStatus


class Invoice(models.Model):  # Client-facing bill, minted by milestone approval
    # human-readable, e.g. "INV-250918-004211"
    invoice_number = models.CharField(max_length=32, unique=True)
    client = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="invoices",
    )
    project = models.ForeignKey(
        Project, on_delete=models.PROTECT, related_name="invoices"
    )
    milestone = models.ForeignKey(
        Milestone,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="invoices",
    )

    # Pre-tax amount, the GST on it, and what the client owes
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    gst_enabled = models.BooleanField(default=False)
    gst_amount = models.DecimalField(
        max_digits=14, decimal_places=2, default=Decimal("0.00")
    )
    total_amount = models.DecimalField(max_digits=14, decimal_places=2)

    status = models.CharField(
        max_length=10, choices=InvoiceStatus.choices, default=InvoiceStatus.SENT
    )
    due_date = models.DateField()
    paid_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = InvoiceQuerySet.as_manager()

    TRANSITIONS = {
        S.DRAFT: [S.SENT, S.CANCELLED],
        S.SENT: [S.PAID, S.OVERDUE, S.CANCELLED],
        S.OVERDUE: [S.PAID, S.SENT, S.CANCELLED],
        # reversal of a settlement
        S.PAID: [S.SENT],
        S.CANCELLED: [],
    }

    # fields a paid invoice may not change
    LOCKED_WHEN_PAID = ("invoice_number", "amount", "gst_amount", "total_amount", "client_id")

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["client", "status"], name="brokerage_c_client_inv_idx"),
            models.Index(fields=["project"], name="brokerage_c_project_inv_idx"),
        ]
        constraints = [
            # One live invoice per milestone; cancelled ones don't count
            models.UniqueConstraint(
                fields=["milestone"],
                condition=~models.Q(status="CANCELLED"),
                name="uq_invoice_live_per_milestone",
            ),
            models.CheckConstraint(
                condition=models.Q(total_amount=models.F("amount") + models.F("gst_amount")),
                name="ck_invoice_total_identity",
            ),
            models.CheckConstraint(
                condition=models.Q(amount__gt=0), name="ck_invoice_amount_positive"
            ),
        ]

    def __str__(self):
        return f"Inv {self.invoice_number or self.pk}"

    def clean(self):
        # total always equals amount + gst
        if self.total_amount != self.amount + self.gst_amount:
            raise ValidationError("Invoice total must equal amount plus GST.")
        if not self.gst_enabled and self.gst_amount:
            raise ValidationError("GST amount must be zero when GST is disabled.")

        """Make paid invoices immutable in all code paths"""
        if self.pk and self.status == S.PAID:
            orig = Invoice.objects.filter(pk=self.pk).first()
            if orig is not None:
                changed = [
                    f for f in self.LOCKED_WHEN_PAID
                    if getattr(orig, f) != getattr(self, f)
                ]
                if changed:
                    raise ValidationError(
                        f"Cannot modify {changed} on a paid invoice."
                    )

    def save(self, *args, **kwargs):
        # unique keys are left to the database so callers can retry on IntegrityError
        self.full_clean(validate_unique=False, validate_constraints=False)
        return super().save(*args, **kwargs)

    def transition_to(self, new_status):
        if new_status not in self.TRANSITIONS.get(self.status, []):
            raise InvalidTransition("Invoice", self.status, new_status)
        self.status = new_status
