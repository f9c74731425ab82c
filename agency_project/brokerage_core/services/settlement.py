"""
Settlement: what a completed payment does to the rest of the ledger.

Applying a payment (exactly once per payment, guarded by settled_at):
    1. invoice -> PAID once completed payments cover its total
    2. milestone -> PAID
    3. partner total_earnings / available_balance += milestone.cost
    4. revenue(month) += client_cost - cost
    5. gst(quarter) += the payment's GST
Reversal (refund / delete) undoes the same steps from the current state,
so nothing has to be replayed.
"""
import logging

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from ..conf import subscription_max_attempts
from ..exceptions import Conflict, InsufficientBalance
from ..models import (Invoice, InvoiceStatus, Milestone, MilestoneStatus,
                      Partner, Payment, PaymentStatus)
from ..money import margin_split
from .accounts import partner_account
from .audit_helper import log_action
from .billing_cycle import advance_subscription, register_billing_failure
from .lookup import fetch
from .notifications import get_notifier
from .rollups import record_gst_collected, record_revenue

logger = logging.getLogger(__name__)

SETTLEABLE = (PaymentStatus.PENDING, PaymentStatus.PROCESSING, PaymentStatus.COMPLETED)


def _milestone_margin(milestone, invoice):
    client_cost = milestone.client_cost if milestone.client_cost is not None else invoice.amount
    return margin_split(client_cost, milestone.cost)


def _credit_partner(milestone):
    account = partner_account(milestone.partner_id, lock=True)
    Partner.objects.filter(pk=account.pk).update(
        total_earnings=F("total_earnings") + milestone.cost,
        available_balance=F("available_balance") + milestone.cost,
    )


def _debit_partner(milestone):
    account = partner_account(milestone.partner_id, lock=True)
    if account.available_balance < milestone.cost:
        raise InsufficientBalance(
            f"Partner has already withdrawn the earnings of milestone {milestone.pk}."
        )
    Partner.objects.filter(pk=account.pk).update(
        total_earnings=F("total_earnings") - milestone.cost,
        available_balance=F("available_balance") - milestone.cost,
    )


def _apply(payment):
    """Steps 1-5 for a payment already marked COMPLETED and settled."""
    record_gst_collected(payment.gst_amount)

    if payment.subscription_id:
        record_revenue(payment.amount)
        advance_subscription(payment.subscription_id, payment.paid_at)

    if not payment.invoice_id:
        return
    invoice = Invoice.objects.select_for_update().get(pk=payment.invoice_id)
    if invoice.status == InvoiceStatus.PAID:
        return
    if invoice.status == InvoiceStatus.CANCELLED:
        # money arrived for a voided invoice; only its GST is booked
        logger.warning(
            "Payment %s settled against cancelled invoice %s, needs manual review",
            payment.pk,
            invoice.invoice_number,
        )
        return
    if Payment.objects.completed_total(invoice) < invoice.total_amount:
        # partial payment: the invoice stays open
        return

    invoice.transition_to(InvoiceStatus.PAID)
    invoice.paid_at = timezone.now()
    invoice.save(update_fields=["status", "paid_at", "updated_at"])

    if not invoice.milestone_id:
        return
    milestone = Milestone.objects.select_for_update().get(pk=invoice.milestone_id)
    milestone.transition_to(MilestoneStatus.PAID)
    milestone.save(update_fields=["status", "updated_at"])

    _credit_partner(milestone)
    record_revenue(_milestone_margin(milestone, invoice))


def _revert(payment):
    """Undo _apply for a payment that no longer counts as completed."""
    record_gst_collected(-payment.gst_amount)

    if payment.subscription_id:
        record_revenue(-payment.amount)

    if not payment.invoice_id:
        return
    invoice = Invoice.objects.select_for_update().get(pk=payment.invoice_id)
    if invoice.status != InvoiceStatus.PAID:
        return
    if Payment.objects.completed_total(invoice) >= invoice.total_amount:
        # other payments still cover it
        return

    invoice.transition_to(InvoiceStatus.SENT)
    invoice.paid_at = None
    invoice.save(update_fields=["status", "paid_at", "updated_at"])

    if not invoice.milestone_id:
        return
    milestone = Milestone.objects.select_for_update().get(pk=invoice.milestone_id)
    if milestone.status != MilestoneStatus.PAID:
        return
    milestone.transition_to(MilestoneStatus.COMPLETED)
    milestone.save(update_fields=["status", "updated_at"])

    _debit_partner(milestone)
    record_revenue(-_milestone_margin(milestone, invoice))


def complete_payment(payment_id, transaction_id=None, *, actor=None, notifier=None):
    """
    Mark a payment COMPLETED and settle it. Idempotent: a payment that is
    already settled is returned unchanged. Returns (payment, applied).
    """
    now = timezone.now()
    with transaction.atomic():
        payment = fetch(Payment, payment_id, lock=True)
        if payment.is_settled:
            logger.info("Payment %s already settled, ignoring", payment.pk)
            return payment, False
        if payment.status not in SETTLEABLE:
            raise Conflict(f"Payment {payment.pk} is {payment.status} and cannot be completed.")

        fields = {"status": PaymentStatus.COMPLETED, "settled_at": now, "updated_at": now}
        if payment.paid_at is None:
            fields["paid_at"] = now
        if transaction_id and not payment.gateway_transaction_id:
            fields["gateway_transaction_id"] = transaction_id

        # conditional update: only one caller can flip settled_at
        claimed = Payment.objects.filter(pk=payment.pk, settled_at__isnull=True).update(**fields)
        if not claimed:
            return payment, False
        payment.refresh_from_db()

        _apply(payment)
        log_action(
            action="payment.settle",
            instance=payment,
            actor=actor,
            changes={"total_amount": payment.total_amount, "gst_amount": payment.gst_amount},
        )

    get_notifier(notifier).notify(
        "payment_received",
        payment.client.email,
        {
            "invoice_number": payment.invoice.invoice_number if payment.invoice_id else "maintenance",
            "total_amount": payment.total_amount,
        },
    )
    logger.info("Payment %s settled", payment.pk)
    return payment, True


def fail_payment(payment_id, reason="", *, actor=None, notifier=None):
    """PENDING/PROCESSING -> FAILED. No ledger side effects, but a failed
    subscription charge counts against its retry budget."""
    with transaction.atomic():
        payment = fetch(Payment, payment_id, lock=True)
        if payment.status == PaymentStatus.FAILED:
            return payment
        if payment.is_settled:
            raise Conflict("A settled payment cannot fail; refund it instead.")
        payment.transition_to(PaymentStatus.FAILED)
        payment.failure_reason = reason or ""
        payment.save(update_fields=["status", "failure_reason", "updated_at"])
        subscription = None
        if payment.subscription_id:
            subscription = register_billing_failure(payment.subscription_id, reason)
        log_action(action="payment.fail", instance=payment, actor=actor, changes={"reason": reason})

    notifier = get_notifier(notifier)
    if subscription is not None:
        notifier.notify(
            "subscription_payment_failed",
            payment.client.email,
            {
                "total_amount": payment.total_amount,
                "plan": subscription.plan.name,
                "attempt": subscription.failed_attempts,
                "max_attempts": subscription_max_attempts(),
            },
        )
    else:
        notifier.notify(
            "payment_failed",
            payment.client.email,
            {"total_amount": payment.total_amount, "reason": reason or "declined"},
        )
    logger.warning("Payment %s failed: %s", payment.pk, reason)
    return payment


def unsettle(payment, *, actor=None, action="payment.refund"):
    """Reverse a locked payment's settlement and mark it REFUNDED.
    Caller holds the payment lock inside transaction.atomic()."""
    was_settled = payment.is_settled
    payment.transition_to(PaymentStatus.REFUNDED)
    payment.settled_at = None
    payment.save(update_fields=["status", "settled_at", "updated_at"])
    if was_settled:
        _revert(payment)
    log_action(
        action=action,
        instance=payment,
        actor=actor,
        changes={"total_amount": payment.total_amount, "reversed": was_settled},
    )
    return payment
