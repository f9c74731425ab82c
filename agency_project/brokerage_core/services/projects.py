import logging

from django.core.exceptions import PermissionDenied
from django.db import transaction
from django.utils import timezone

from ..exceptions import Conflict
from ..models import (Invoice, Lead, LeadStatus, Payment, Project,
                      ProjectStatus)
from ..money import ZERO, offer_from_margin, to_money
from .audit_helper import log_action
from .lookup import fetch
from .principal import require_admin
from .rollups import record_revenue

logger = logging.getLogger(__name__)


def create_project_from_lead(lead, *, created_by_id=None):
    """Copy the negotiated offer onto a new project. Caller holds the lead lock."""
    partner_cost = lead.partner_proposed_cost
    admin_margin = lead.admin_margin
    offer_price = lead.offer_price
    gst_amount = offer_price - partner_cost - admin_margin if lead.includes_gst else ZERO

    return Project.objects.create(
        title=lead.project_title,
        description=lead.description,
        category=lead.project_category,
        timeline=lead.timeline,
        offer_price=offer_price,
        partner_cost=partner_cost,
        admin_margin=admin_margin,
        includes_gst=lead.includes_gst,
        gst_amount=gst_amount,
        status=ProjectStatus.ACTIVE,
        client_id=lead.client_id,
        partner_id=lead.assigned_partner_id,
        created_by_id=created_by_id,
        lead=lead,
    )


def start_project(principal, project_id):
    with transaction.atomic():
        project = fetch(Project, project_id, lock=True)
        if not (principal.is_admin or principal.id == project.partner_id):
            raise PermissionDenied("Only an admin or the project's partner can start it.")
        project.transition_to(ProjectStatus.IN_PROGRESS)
        project.started_at = timezone.now()
        project.save(update_fields=["status", "started_at", "updated_at"])
        log_action(action="project.start", instance=project, actor=principal)
    return project


def mark_complete(principal, project_id):
    """Close the project and book its margin as realized revenue."""
    require_admin(principal)
    with transaction.atomic():
        project = fetch(Project, project_id, lock=True)
        if project.status == ProjectStatus.COMPLETED:
            raise Conflict("Project is already completed.")
        project.transition_to(ProjectStatus.COMPLETED)
        project.completed_at = timezone.now()
        project.save(update_fields=["status", "completed_at", "updated_at"])
        record_revenue(project.admin_margin)
        log_action(
            action="project.complete",
            instance=project,
            actor=principal,
            changes={"revenue": project.admin_margin},
        )
    logger.info("Project %s completed, revenue +%s", project.pk, project.admin_margin)
    return project


def cancel_project(principal, project_id):
    require_admin(principal)
    with transaction.atomic():
        project = fetch(Project, project_id, lock=True)
        project.transition_to(ProjectStatus.CANCELLED)
        project.save(update_fields=["status", "updated_at"])
        log_action(action="project.cancel", instance=project, actor=principal)
    return project


def recompute_financials(principal, project_id, *, partner_cost=None, admin_margin=None, includes_gst=None):
    """The only path that changes a project's money after creation."""
    require_admin(principal)
    with transaction.atomic():
        project = fetch(Project, project_id, lock=True)
        if project.status in (ProjectStatus.COMPLETED, ProjectStatus.CANCELLED):
            raise Conflict("Financials of a closed project cannot change.")

        before = {
            "partner_cost": project.partner_cost,
            "admin_margin": project.admin_margin,
            "offer_price": project.offer_price,
            "includes_gst": project.includes_gst,
        }
        if partner_cost is not None:
            project.partner_cost = to_money(partner_cost)
        if admin_margin is not None:
            project.admin_margin = to_money(admin_margin)
        if includes_gst is not None:
            project.includes_gst = bool(includes_gst)

        base = project.partner_cost + project.admin_margin
        project.offer_price = offer_from_margin(
            project.partner_cost, project.admin_margin, project.includes_gst
        )
        project.gst_amount = project.offer_price - base
        project.full_clean()
        project.save()
        log_action(
            action="project.recompute",
            instance=project,
            actor=principal,
            changes={"before": before, "offer_price": project.offer_price},
        )
    return project


def delete_project(principal, project_id):
    """
    Delete a project that never carried money.
    The lead link is broken first: the lead is archived and detached, then
    the project row goes.
    """
    require_admin(principal)
    with transaction.atomic():
        project = fetch(Project, project_id, lock=True)
        if Invoice.objects.filter(project=project).exists() or Payment.objects.filter(project=project).exists():
            raise Conflict("Projects with invoices or payments cannot be deleted.")

        lead = None
        if project.lead_id:
            lead = Lead.objects.select_for_update().get(pk=project.lead_id)
            project.lead = None
            project.save(update_fields=["lead", "updated_at"])
            # bypasses Lead.TRANSITIONS: a converted lead has no way out otherwise
            lead.status = LeadStatus.ARCHIVED
            lead.archived_at = timezone.now()
            lead.save(update_fields=["status", "archived_at", "updated_at"])

        log_action(
            action="project.delete",
            instance=project,
            actor=principal,
            changes={"lead_id": lead.pk if lead else None},
        )
        project.delete()


def projects_for(principal):
    return Project.objects.visible_to(principal).select_related("client", "partner")
