from django.conf import settings
from django.db import models

from ..managers import SubscriptionQuerySet
from .project import Project
from .status import BillingCycle, SubscriptionStatus


class MaintenancePlan(models.Model):  # Recurring support package sold to clients
    name = models.CharField(max_length=120, unique=True)
    description = models.TextField(blank=True, default="")
    price = models.DecimalField(max_digits=14, decimal_places=2)  # pre-tax
    billing_cycle = models.CharField(
        max_length=10, choices=BillingCycle.choices, default=BillingCycle.MONTHLY
    )
    includes_gst = models.BooleanField(default=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=models.Q(price__gt=0), name="ck_plan_price_positive"
            ),
        ]

    def __str__(self):
        return f"{self.name} ({self.get_billing_cycle_display()})"


class MaintenanceSubscription(models.Model):
    client = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="subscriptions",
    )
    project = models.ForeignKey(
        Project,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="subscriptions",
    )
    plan = models.ForeignKey(
        MaintenancePlan, on_delete=models.PROTECT, related_name="subscriptions"
    )
    status = models.CharField(
        max_length=16,
        choices=SubscriptionStatus.choices,
        default=SubscriptionStatus.ACTIVE,
    )
    # opaque reference to the stored card / mandate at the gateway
    payment_method_ref = models.CharField(max_length=128, blank=True, default="")

    start_date = models.DateField()
    next_billing_date = models.DateField()
    last_billed_at = models.DateTimeField(null=True, blank=True)

    # Retry state for the current billing cycle
    failed_attempts = models.PositiveIntegerField(default=0)
    next_retry_at = models.DateTimeField(null=True, blank=True)
    last_failure_reason = models.TextField(blank=True, default="")

    cancelled_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = SubscriptionQuerySet.as_manager()

    class Meta:
        indexes = [models.Index(fields=["status", "next_billing_date"], name="brokerage_c_status_sub_idx")]

    def __str__(self):
        return f"{self.client} / {self.plan.name}"
