"""
Payment entry points: client/admin payments, gateway webhooks and admin
corrections. The ledger effects live in settlement.py.
"""
import logging

from django.core.exceptions import ValidationError
from django.db import transaction

from ..exceptions import Conflict, GatewayError, InvalidTransition, NotFound
from ..models import (OFFLINE_METHODS, Invoice, InvoiceStatus, Payment,
                      PaymentMethod, PaymentStatus, Role)
from ..money import ZERO, positive_money, prorate_gst
from .audit_helper import log_action
from .gateway import get_gateway
from .lookup import fetch
from .principal import require_admin, require_owner, require_role
from .settlement import complete_payment, fail_payment, unsettle

logger = logging.getLogger(__name__)

EVENT_SUCCEEDED = "payment.succeeded"
EVENT_FAILED = "payment.failed"


def _resolve_invoice(invoice_id, milestone_id):
    if (invoice_id is None) == (milestone_id is None):
        raise ValidationError("Provide exactly one of invoice_id or milestone_id.")
    qs = Invoice.objects.select_for_update()
    if invoice_id is not None:
        return fetch(qs, invoice_id)
    invoice = qs.live().filter(milestone_id=milestone_id).first()
    if invoice is None:
        raise NotFound(f"No invoice for milestone {milestone_id}")
    return invoice


def record_payment(principal, *, invoice_id=None, milestone_id=None, amount, method, gateway=None, notifier=None):
    """
    Pay (part of) an invoice. `amount` is what the client pays now, GST
    included; the GST share is prorated from the invoice.

    Offline payments recorded by an admin settle immediately. Card payments
    are committed as PENDING first, then charged; the charge either settles
    at once or waits for the gateway webhook.
    """
    require_role(principal, Role.ADMIN, Role.CLIENT)
    total = positive_money(amount)
    if method not in PaymentMethod.values:
        raise ValidationError(f"Unknown payment method {method!r}")

    with transaction.atomic():
        invoice = _resolve_invoice(invoice_id, milestone_id)
        require_owner(principal, invoice.client_id, allow_admin=True, what="invoice")
        if invoice.status not in (InvoiceStatus.SENT, InvoiceStatus.OVERDUE):
            raise Conflict(f"Invoice {invoice.invoice_number} is {invoice.status}.")

        outstanding = (
            invoice.total_amount
            - Payment.objects.completed_total(invoice)
            - Payment.objects.in_flight_total(invoice)
        )
        if total > outstanding:
            raise ValidationError(
                f"Payment {total} exceeds the outstanding amount {max(outstanding, ZERO)}."
            )

        gst = prorate_gst(invoice.gst_amount, invoice.total_amount, total)
        payment = Payment.objects.create(
            client_id=invoice.client_id,
            project_id=invoice.project_id,
            milestone_id=invoice.milestone_id,
            invoice=invoice,
            amount=total - gst,
            gst_amount=gst,
            total_amount=total,
            method=method,
            status=PaymentStatus.PENDING,
        )
        log_action(
            action="payment.record",
            instance=payment,
            actor=principal,
            changes={"total_amount": total, "method": method},
        )

    if method in OFFLINE_METHODS:
        if principal.is_admin:
            payment, _ = complete_payment(payment.pk, actor=principal, notifier=notifier)
        # a client-declared transfer waits for an admin to confirm it
        return payment

    return charge_payment(payment, gateway=gateway, description=invoice.invoice_number, notifier=notifier)


def charge_payment(payment, *, gateway=None, description="", payment_method_ref="", notifier=None):
    """Call the gateway for a committed PENDING payment.

    Runs outside any money transaction. GatewayError marks the payment
    FAILED and propagates.
    """
    gateway = get_gateway(gateway)
    try:
        charge = gateway.charge(payment, description=description, payment_method_ref=payment_method_ref)
    except GatewayError as exc:
        fail_payment(payment.pk, str(exc), notifier=notifier)
        raise

    with transaction.atomic():
        # webhook may already have settled it; only touch a still-pending row
        Payment.objects.filter(pk=payment.pk, status=PaymentStatus.PENDING).update(
            status=PaymentStatus.PROCESSING,
            gateway_transaction_id=charge.transaction_id,
        )

    if charge.succeeded:
        payment, _ = complete_payment(payment.pk, charge.transaction_id, notifier=notifier)
        return payment
    payment.refresh_from_db()
    return payment


def _find_event_payment(metadata):
    payment_id = metadata.get("paymentId") or metadata.get("payment_id")
    txn_id = metadata.get("transactionId") or metadata.get("transaction_id")
    if payment_id:
        return fetch(Payment, payment_id), txn_id
    if txn_id:
        payment = Payment.objects.filter(gateway_transaction_id=txn_id).first()
        if payment is None:
            raise NotFound(f"No payment with transaction {txn_id}")
        return payment, txn_id
    raise ValidationError("Webhook event carries no payment reference.")


def handle_gateway_event(event, *, notifier=None):
    """
    Apply one webhook event. Duplicate or late deliveries are no-ops;
    returns the payment, or None for event types we don't handle.
    """
    event_type = event.get("type")
    if event_type not in (EVENT_SUCCEEDED, EVENT_FAILED):
        logger.info("Ignoring gateway event %s", event_type)
        return None

    payment, txn_id = _find_event_payment(event.get("metadata") or {})

    if event_type == EVENT_SUCCEEDED:
        if payment.status in (PaymentStatus.FAILED, PaymentStatus.REFUNDED):
            logger.warning(
                "Gateway reported success for %s payment %s; needs manual review",
                payment.status, payment.pk,
            )
            return payment
        payment, applied = complete_payment(payment.pk, txn_id, notifier=notifier)
        if not applied:
            logger.info("Duplicate success event for payment %s", payment.pk)
        return payment

    if payment.is_settled or payment.status in (PaymentStatus.COMPLETED, PaymentStatus.REFUNDED):
        logger.warning("Gateway reported failure for settled payment %s; ignored", payment.pk)
        return payment
    reason = (event.get("metadata") or {}).get("reason") or event.get("failure_message") or ""
    return fail_payment(payment.pk, reason, notifier=notifier)


def refund_payment(principal, payment_id):
    require_admin(principal)
    with transaction.atomic():
        payment = fetch(Payment, payment_id, lock=True)
        if payment.status != PaymentStatus.COMPLETED:
            raise InvalidTransition("Payment", payment.status, PaymentStatus.REFUNDED)
        unsettle(payment, actor=principal)
    logger.info("Payment %s refunded", payment.pk)
    return payment


def update_payment_status(principal, payment_id, status, reason=""):
    """Admin correction: settle, fail or refund a payment by hand."""
    require_admin(principal)
    if status == PaymentStatus.COMPLETED:
        payment, _ = complete_payment(payment_id, actor=principal)
        return payment
    if status == PaymentStatus.FAILED:
        return fail_payment(payment_id, reason, actor=principal)
    if status == PaymentStatus.REFUNDED:
        return refund_payment(principal, payment_id)
    raise ValidationError(f"Cannot set payment status to {status!r}")


def delete_payment(principal, payment_id):
    """Delete a payment, reversing its settlement first if it had one."""
    require_admin(principal)
    with transaction.atomic():
        payment = fetch(Payment, payment_id, lock=True)
        if payment.is_settled:
            unsettle(payment, actor=principal, action="payment.delete")
        else:
            log_action(action="payment.delete", instance=payment, actor=principal)
        payment.delete()


def delete_invoice(principal, invoice_id):
    """Delete an invoice and its payments, reversing every settlement on it."""
    require_admin(principal)
    with transaction.atomic():
        invoice = fetch(Invoice, invoice_id, lock=True)
        for payment in Payment.objects.select_for_update().filter(invoice=invoice).order_by("pk"):
            if payment.is_settled:
                unsettle(payment, actor=principal, action="payment.delete")
            payment.delete()
        log_action(action="invoice.delete", instance=invoice, actor=principal)
        Invoice.objects.filter(pk=invoice.pk).delete()


def payments_for(principal):
    return Payment.objects.visible_to(principal).select_related("invoice")
