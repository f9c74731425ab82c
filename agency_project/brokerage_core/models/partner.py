from decimal import Decimal

from django.conf import settings
from django.db import models

from ..managers import WithdrawalQuerySet
from ..exceptions import InvalidTransition
from .status import WithdrawalStatus


class Partner(models.Model):  # Earnings account of a partner user
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="partner_account",
    )
    # Lifetime credits from settled milestones
    total_earnings = models.DecimalField(
        max_digits=14, decimal_places=2, default=Decimal("0.00")
    )
    # What the partner can still withdraw
    available_balance = models.DecimalField(
        max_digits=14, decimal_places=2, default=Decimal("0.00")
    )
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=models.Q(available_balance__gte=0),
                name="ck_partner_balance_non_negative",
            ),
        ]

    def __str__(self):
        return f"Partner {self.user}"


class Withdrawal(models.Model):  # Partner payout request
    partner = models.ForeignKey(
        Partner, on_delete=models.PROTECT, related_name="withdrawals"
    )
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    status = models.CharField(
        max_length=10,
        choices=WithdrawalStatus.choices,
        default=WithdrawalStatus.PENDING,
    )
    note = models.TextField(blank=True, default="")
    requested_at = models.DateTimeField(auto_now_add=True)
    processed_at = models.DateTimeField(null=True, blank=True)
    processed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="+",
    )

    objects = WithdrawalQuerySet.as_manager()

    """ Workflow:
        PENDING -> APPROVED -> PAID
        PENDING/APPROVED -> REJECTED (funds go back to the partner) """
    TRANSITIONS = {
        WithdrawalStatus.PENDING: [
            WithdrawalStatus.APPROVED,
            WithdrawalStatus.PAID,
            WithdrawalStatus.REJECTED,
        ],
        WithdrawalStatus.APPROVED: [WithdrawalStatus.PAID, WithdrawalStatus.REJECTED],
        WithdrawalStatus.PAID: [],
        WithdrawalStatus.REJECTED: [],
    }

    class Meta:
        ordering = ["-requested_at"]
        indexes = [models.Index(fields=["partner", "status"], name="brokerage_c_partner_wd_idx")]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0), name="ck_withdrawal_amount_positive"
            ),
        ]

    def __str__(self):
        return f"Withdrawal {self.pk} {self.amount} ({self.status})"

    @property
    def holds_funds(self):
        # funds leave the balance on request and come back only on rejection
        return self.status in (WithdrawalStatus.PENDING, WithdrawalStatus.APPROVED)

    def transition_to(self, new_status):
        if new_status not in self.TRANSITIONS.get(self.status, []):
            raise InvalidTransition("Withdrawal", self.status, new_status)
        self.status = new_status
