"""
Recurring maintenance billing.

A due subscription gets one PENDING payment per cycle, charged through the
gateway. Settlement of that payment advances the billing date; a failed
charge backs off exponentially and, after the last attempt, parks the
subscription in PAYMENT_FAILED.
"""
import logging

from django.core.exceptions import PermissionDenied, ValidationError
from django.db import transaction
from django.utils import timezone

from ..exceptions import Conflict, GatewayError
from ..models import (MaintenancePlan, MaintenanceSubscription, Payment,
                      PaymentMethod, PaymentStatus, Project, Role,
                      SubscriptionStatus, User)
from ..money import invoice_amounts
from .audit_helper import log_action
from .lookup import fetch
from .payments import charge_payment
from .principal import require_role

logger = logging.getLogger(__name__)


def subscribe(principal, plan_id, *, client_id=None, project_id=None, payment_method_ref="", start_date=None):
    require_role(principal, Role.ADMIN, Role.CLIENT)
    if principal.is_client:
        client_id = principal.id
    elif client_id is None:
        raise ValidationError("client_id is required.")

    with transaction.atomic():
        plan = fetch(MaintenancePlan, plan_id)
        if not plan.is_active:
            raise Conflict(f"Plan {plan.name} is no longer offered.")
        client = fetch(User.objects.clients(), client_id, label="Client")
        project = None
        if project_id is not None:
            project = fetch(Project, project_id)
            if project.client_id != client.pk:
                raise ValidationError("Project belongs to another client.")

        start = start_date or timezone.localdate()
        sub = MaintenanceSubscription.objects.create(
            client=client,
            project=project,
            plan=plan,
            payment_method_ref=payment_method_ref or "",
            start_date=start,
            next_billing_date=start,
        )
        log_action(action="subscription.create", instance=sub, actor=principal)
    return sub


def cancel_subscription(principal, subscription_id):
    require_role(principal, Role.ADMIN, Role.CLIENT)
    with transaction.atomic():
        sub = fetch(MaintenanceSubscription, subscription_id, lock=True)
        if principal.is_client and sub.client_id != principal.id:
            raise PermissionDenied("You do not own this subscription.")
        if sub.status == SubscriptionStatus.CANCELLED:
            raise Conflict("Subscription is already cancelled.")
        sub.status = SubscriptionStatus.CANCELLED
        sub.cancelled_at = timezone.now()
        sub.next_retry_at = None
        sub.save()
        log_action(action="subscription.cancel", instance=sub, actor=principal)
    return sub


def bill_subscription(subscription_id, *, gateway=None, now=None, notifier=None):
    """Charge one billing cycle. Returns the payment, or None if nothing was due."""
    now = now or timezone.now()
    with transaction.atomic():
        sub = fetch(MaintenanceSubscription.objects.select_related("plan"), subscription_id, lock=True)
        if not MaintenanceSubscription.objects.due(now).filter(pk=sub.pk).exists():
            return None

        gst, total = invoice_amounts(sub.plan.price, sub.plan.includes_gst)
        payment = Payment.objects.create(
            client_id=sub.client_id,
            project_id=sub.project_id,
            subscription=sub,
            amount=sub.plan.price,
            gst_amount=gst,
            total_amount=total,
            method=PaymentMethod.CARD,
            status=PaymentStatus.PENDING,
        )
        log_action(
            action="subscription.bill",
            instance=sub,
            actor=None,
            changes={"payment_id": payment.pk, "total_amount": total},
        )

    try:
        return charge_payment(
            payment,
            gateway=gateway,
            description=f"{sub.plan.name} maintenance",
            payment_method_ref=sub.payment_method_ref,
            notifier=notifier,
        )
    except GatewayError as exc:
        # the payment is FAILED and the retry is scheduled by now
        logger.warning("Subscription %s charge failed: %s", sub.pk, exc)
        payment.refresh_from_db()
        return payment


def bill_due_subscriptions(now=None, *, gateway=None):
    """Bill every due subscription; one failure doesn't stop the batch."""
    now = now or timezone.now()
    billed = 0
    for sub_id in MaintenanceSubscription.objects.due(now).values_list("pk", flat=True):
        try:
            if bill_subscription(sub_id, gateway=gateway, now=now) is not None:
                billed += 1
        except Exception:
            logger.exception("Billing subscription %s failed", sub_id)
    return billed


def resume_subscription(principal, subscription_id, payment_method_ref=None):
    """Re-activate a PAYMENT_FAILED (or paused) subscription, e.g. after a card update."""
    require_role(principal, Role.ADMIN, Role.CLIENT)
    with transaction.atomic():
        sub = fetch(MaintenanceSubscription, subscription_id, lock=True)
        if principal.is_client and sub.client_id != principal.id:
            raise PermissionDenied("You do not own this subscription.")
        if sub.status not in (SubscriptionStatus.PAYMENT_FAILED, SubscriptionStatus.PAUSED):
            raise Conflict(f"Subscription is {sub.status}.")
        sub.status = SubscriptionStatus.ACTIVE
        sub.failed_attempts = 0
        sub.next_retry_at = None
        if payment_method_ref is not None:
            sub.payment_method_ref = payment_method_ref
        sub.save()
        log_action(action="subscription.resume", instance=sub, actor=principal)
    return sub
