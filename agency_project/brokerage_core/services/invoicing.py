import datetime
import logging
import secrets

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone

from ..conf import invoice_due_days, invoice_number_attempts
from ..exceptions import Conflict, DuplicateKey
from ..models import (Invoice, InvoiceStatus, Milestone, MilestoneStatus,
                      Payment, Project)
from ..money import invoice_amounts, positive_money
from .audit_helper import log_action
from .lookup import fetch
from .notifications import get_notifier
from .principal import require_admin

logger = logging.getLogger(__name__)

# milestone states an admin may bill by hand (approval bills PENDING ones)
BILLABLE_MILESTONE_STATES = (
    MilestoneStatus.APPROVED,
    MilestoneStatus.IN_PROGRESS,
    MilestoneStatus.COMPLETED,
)


def generate_invoice_number(today=None):
    """INV-YYMMDD-NNNNNN with a random six digit suffix."""
    today = today or timezone.localdate()
    return f"INV-{today:%y%m%d}-{secrets.randbelow(1_000_000):06d}"


def issue_invoice(
    *,
    project,
    amount,
    gst_enabled,
    due_date=None,
    milestone=None,
    number_factory=generate_invoice_number,
):
    """
    Create one invoice, retrying the number on collision.
    Must run inside transaction.atomic(); each attempt gets its own savepoint
    so a collision doesn't poison the outer transaction.
    """
    amount = positive_money(amount)
    gst_amount, total_amount = invoice_amounts(amount, gst_enabled)
    due_date = due_date or timezone.localdate() + datetime.timedelta(days=invoice_due_days())

    attempts = invoice_number_attempts()
    for attempt in range(1, attempts + 1):
        number = number_factory()
        try:
            with transaction.atomic():
                return Invoice.objects.create(
                    invoice_number=number,
                    client_id=project.client_id,
                    project=project,
                    milestone=milestone,
                    amount=amount,
                    gst_enabled=bool(gst_enabled),
                    gst_amount=gst_amount,
                    total_amount=total_amount,
                    status=InvoiceStatus.SENT,
                    due_date=due_date,
                )
        except IntegrityError:
            if milestone is not None and Invoice.objects.live().filter(milestone=milestone).exists():
                raise Conflict("This milestone already has an invoice.")
            logger.warning("Invoice number %s collided (attempt %s/%s)", number, attempt, attempts)
    raise DuplicateKey(f"Could not generate a unique invoice number after {attempts} attempts")


def notify_invoice(invoice, notifier=None):
    get_notifier(notifier).notify(
        "invoice_generated",
        invoice.client.email,
        {
            "invoice_number": invoice.invoice_number,
            "total_amount": invoice.total_amount,
            "due_date": invoice.due_date.isoformat(),
        },
    )


def create_invoice(principal, project_id, amount, gst_enabled, due_date=None, milestone_id=None, *, notifier=None):
    """Admin-issued invoice outside milestone approval (e.g. a deposit)."""
    require_admin(principal)
    with transaction.atomic():
        project = fetch(Project, project_id, lock=True)
        milestone = None
        if milestone_id is not None:
            milestone = fetch(Milestone, milestone_id, lock=True)
            if milestone.project_id != project.pk:
                raise ValidationError("Milestone does not belong to this project.")
            if milestone.status not in BILLABLE_MILESTONE_STATES:
                raise Conflict(f"Milestone is {milestone.status} and cannot be invoiced.")
        if due_date is not None and isinstance(due_date, str):
            due_date = datetime.date.fromisoformat(due_date)
        invoice = issue_invoice(
            project=project,
            amount=amount,
            gst_enabled=gst_enabled,
            due_date=due_date,
            milestone=milestone,
        )
        log_action(
            action="invoice.create",
            instance=invoice,
            actor=principal,
            changes={"total_amount": invoice.total_amount},
        )
    notify_invoice(invoice, notifier)
    return invoice


def cancel_invoice(principal, invoice_id):
    require_admin(principal)
    with transaction.atomic():
        invoice = fetch(Invoice, invoice_id, lock=True)
        if invoice.payments.filter(settled_at__isnull=False).exists():
            raise Conflict("Invoices with settled payments cannot be cancelled.")
        if Payment.objects.in_flight_total(invoice) > 0:
            raise Conflict("A payment for this invoice is still being processed.")
        invoice.transition_to(InvoiceStatus.CANCELLED)
        invoice.save(update_fields=["status", "updated_at"])
        log_action(action="invoice.cancel", instance=invoice, actor=principal)
    return invoice


def mark_overdue(today=None):
    """Flag unpaid invoices past their due date. Returns how many changed."""
    today = today or timezone.localdate()
    return Invoice.objects.filter(
        status=InvoiceStatus.SENT, due_date__lt=today
    ).update(status=InvoiceStatus.OVERDUE, updated_at=timezone.now())


def invoices_for(principal):
    return Invoice.objects.visible_to(principal).select_related("project", "milestone")
