import datetime
import logging

from django.core.exceptions import PermissionDenied, ValidationError
from django.db import transaction
from django.utils import timezone

from ..exceptions import Conflict, InvalidTransition
from ..models import (Invoice, InvoiceStatus, Milestone, MilestoneStatus,
                      Project, ProjectStatus, Role)
from ..money import positive_money
from .audit_helper import log_action
from .invoicing import issue_invoice, notify_invoice
from .lookup import fetch
from .notifications import get_notifier
from .principal import require_admin, require_role

logger = logging.getLogger(__name__)

# what a partner may report on their own milestone
PARTNER_STATUSES = (MilestoneStatus.IN_PROGRESS, MilestoneStatus.COMPLETED)


def submit_milestone(principal, project_id, title, cost, duration_days=0, description="", due_date=None, *, notifier=None):
    require_role(principal, Role.PARTNER)
    cost = positive_money(cost, "Milestone cost")
    if not str(title or "").strip():
        raise ValidationError("Milestone title is required.")
    try:
        duration_days = int(duration_days or 0)
    except (TypeError, ValueError):
        raise ValidationError("duration_days must be a whole number.")
    if duration_days < 0:
        raise ValidationError("duration_days cannot be negative.")
    notifier = get_notifier(notifier)

    with transaction.atomic():
        # lock the project so concurrent submissions get distinct orders
        project = fetch(Project, project_id, lock=True)
        if project.partner_id != principal.id:
            raise PermissionDenied("Only the project's partner can submit milestones.")
        if project.status in (ProjectStatus.COMPLETED, ProjectStatus.CANCELLED):
            raise Conflict("Milestones cannot be added to a closed project.")

        if due_date is None and duration_days:
            due_date = timezone.localdate() + datetime.timedelta(days=duration_days)

        milestone = Milestone.objects.create(
            project=project,
            partner_id=principal.id,
            title=str(title).strip(),
            description=description or "",
            cost=cost,
            includes_gst=project.includes_gst,
            duration_days=duration_days,
            due_date=due_date,
            order=Milestone.objects.next_order(project),
        )
        log_action(
            action="milestone.submit",
            instance=milestone,
            actor=principal,
            changes={"cost": cost},
        )

    notifier.notify_admins(
        "milestone_submitted",
        {"title": milestone.title, "cost": cost, "project_id": project.pk},
    )
    return milestone


def approve_milestone(principal, milestone_id, client_cost, includes_gst=None, *, notifier=None):
    """
    Approve a pending milestone and bill it.
    Status, approver and the invoice are written in one transaction; this is
    the only place a milestone invoice comes from.
    """
    require_admin(principal)
    client_cost = positive_money(client_cost, "Client cost")
    notifier = get_notifier(notifier)

    with transaction.atomic():
        milestone = fetch(Milestone.objects.select_related("project"), milestone_id, lock=True)
        if milestone.status != MilestoneStatus.PENDING:
            raise InvalidTransition("Milestone", milestone.status, MilestoneStatus.APPROVED)

        gst = milestone.project.includes_gst if includes_gst is None else bool(includes_gst)
        milestone.transition_to(MilestoneStatus.APPROVED)
        milestone.client_cost = client_cost
        milestone.includes_gst = gst
        milestone.approved_by_id = principal.id
        milestone.approved_at = timezone.now()
        milestone.save()

        invoice = issue_invoice(
            project=milestone.project,
            amount=client_cost,
            gst_enabled=gst,
            milestone=milestone,
        )
        log_action(
            action="milestone.approve",
            instance=milestone,
            actor=principal,
            changes={"client_cost": client_cost, "invoice": invoice.invoice_number},
        )

    notifier.notify(
        "milestone_approved", milestone.partner.email, {"title": milestone.title}
    )
    notify_invoice(invoice, notifier)
    logger.info("Milestone %s approved, invoice %s issued", milestone.pk, invoice.invoice_number)
    return milestone, invoice


def reject_milestone(principal, milestone_id, reason, *, notifier=None):
    require_admin(principal)
    if not str(reason or "").strip():
        raise ValidationError("A rejection reason is required.")
    notifier = get_notifier(notifier)

    with transaction.atomic():
        milestone = fetch(Milestone, milestone_id, lock=True)
        if milestone.status != MilestoneStatus.PENDING:
            raise InvalidTransition("Milestone", milestone.status, MilestoneStatus.REJECTED)
        milestone.transition_to(MilestoneStatus.REJECTED)
        milestone.rejection_reason = str(reason).strip()
        milestone.approved_by_id = principal.id
        milestone.save()
        log_action(
            action="milestone.reject",
            instance=milestone,
            actor=principal,
            changes={"reason": milestone.rejection_reason},
        )

    notifier.notify(
        "milestone_rejected",
        milestone.partner.email,
        {"title": milestone.title, "reason": milestone.rejection_reason},
    )
    return milestone


def update_milestone_status(principal, milestone_id, status):
    """Partner progress report: IN_PROGRESS or COMPLETED, until it is paid."""
    require_role(principal, Role.PARTNER)
    if status not in PARTNER_STATUSES:
        raise ValidationError(f"Partners can only set {', '.join(PARTNER_STATUSES)}.")

    with transaction.atomic():
        milestone = fetch(Milestone, milestone_id, lock=True)
        if milestone.partner_id != principal.id:
            raise PermissionDenied("Only the milestone's partner can update it.")
        paid_invoice = Invoice.objects.filter(
            milestone=milestone, status=InvoiceStatus.PAID
        ).exists()
        if milestone.status == MilestoneStatus.PAID or paid_invoice:
            raise Conflict("A paid milestone can no longer change.")

        previous = milestone.status
        milestone.transition_to(status)
        if status == MilestoneStatus.COMPLETED:
            milestone.completed_at = timezone.now()
        milestone.save()
        log_action(
            action="milestone.status",
            instance=milestone,
            actor=principal,
            changes={"from": previous, "to": status},
        )
    return milestone


def milestones_for(principal, project_id=None):
    qs = Milestone.objects.visible_to(principal).select_related("project")
    if project_id is not None:
        qs = qs.filter(project_id=project_id)
    return qs
