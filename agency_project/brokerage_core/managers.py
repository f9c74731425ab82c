from django.contrib.auth.models import UserManager
from django.db import models
from django.db.models import Q, Sum
from django.utils import timezone

from .models.status import (InvoiceStatus, LeadStatus, PaymentStatus, Role,
                            SubscriptionStatus, WithdrawalStatus)

# -----------------------------------------
# One queryset per entity. These are the
# data-access layer the services go through.
# -----------------------------------------


class AgencyUserManager(UserManager):
    use_in_migrations = True

    def admins(self):
        return self.filter(role=Role.ADMIN)

    def clients(self):
        return self.filter(role=Role.CLIENT)

    def create_superuser(self, username, email=None, password=None, **extra_fields):
        # superusers act as agency admins in the workflow
        extra_fields.setdefault("role", Role.ADMIN)
        extra_fields.setdefault("is_email_verified", True)
        return super().create_superuser(username, email, password, **extra_fields)


class VisibleToQuerySet(models.QuerySet):
    """Row visibility per role: admins see everything."""

    client_field = "client"
    partner_field = None

    def visible_to(self, principal):
        if principal.role == Role.ADMIN:
            return self
        if principal.role == Role.CLIENT and self.client_field:
            return self.filter(**{f"{self.client_field}_id": principal.id})
        if principal.role == Role.PARTNER and self.partner_field:
            return self.filter(**{f"{self.partner_field}_id": principal.id})
        return self.none()


class LeadQuerySet(VisibleToQuerySet):
    partner_field = "assigned_partner"

    def open(self):
        return self.exclude(
            status__in=[LeadStatus.ACCEPTED_AND_CONVERTED, LeadStatus.ARCHIVED]
        )


class ProjectQuerySet(VisibleToQuerySet):
    partner_field = "partner"


class MilestoneQuerySet(VisibleToQuerySet):
    client_field = "project__client"
    partner_field = "partner"

    def next_order(self, project):
        last = self.filter(project=project).aggregate(m=models.Max("order"))["m"]
        return (last or 0) + 1


class InvoiceQuerySet(VisibleToQuerySet):
    def live(self):
        return self.exclude(status=InvoiceStatus.CANCELLED)

    def unpaid(self):
        return self.filter(status__in=[InvoiceStatus.SENT, InvoiceStatus.OVERDUE])


class PaymentQuerySet(VisibleToQuerySet):
    def completed(self):
        return self.filter(status=PaymentStatus.COMPLETED)

    def completed_total(self, invoice):
        # Sum(...) over no rows gives None
        agg = self.completed().filter(invoice=invoice).aggregate(t=Sum("total_amount"))
        return agg["t"] or 0

    def in_flight_total(self, invoice):
        agg = (
            self.filter(invoice=invoice)
            .filter(status__in=[PaymentStatus.PENDING, PaymentStatus.PROCESSING])
            .aggregate(t=Sum("total_amount"))
        )
        return agg["t"] or 0


class WithdrawalQuerySet(models.QuerySet):
    def pending(self):
        return self.filter(status=WithdrawalStatus.PENDING)

    def holding_funds(self):
        return self.filter(
            status__in=[WithdrawalStatus.PENDING, WithdrawalStatus.APPROVED]
        )


class SubscriptionQuerySet(models.QuerySet):
    def due(self, now):
        """Active subscriptions whose billing date has come and whose retry
        back-off (if any) has elapsed."""
        return self.filter(
            status=SubscriptionStatus.ACTIVE,
            next_billing_date__lte=timezone.localdate(now),
        ).filter(
            Q(next_retry_at__isnull=True) | Q(next_retry_at__lte=now)
        ).exclude(
            # a charge is still waiting for the gateway
            payments__status__in=[PaymentStatus.PENDING, PaymentStatus.PROCESSING]
        )
