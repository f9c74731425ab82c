"""
Lead negotiation: submission, partner assignment, partner pricing, the
admin's offer and the client's answer.
"""
import logging
from dataclasses import dataclass

from django.core.exceptions import PermissionDenied, ValidationError
from django.core.validators import validate_email
from django.db import IntegrityError, transaction
from django.utils import timezone

from ..conf import activation_window
from ..exceptions import Conflict, InvalidTransition
from ..models import Lead, LeadStatus, Project, Role, User
from ..models.lead import PRE_OFFER_STATES
from ..money import compute_offer, offer_from_margin, positive_money, to_money
from .accounts import (activation_link, create_pending_client,
                       find_client_by_email, issue_activation_token,
                       partner_account)
from .audit_helper import log_action
from .lookup import fetch
from .notifications import get_notifier
from .principal import require_admin, require_owner, require_role
from .projects import create_project_from_lead

logger = logging.getLogger(__name__)

LEAD_CREATED = "lead_created"
LEAD_LINKED = "lead_linked_to_existing_client"
ACTIVATION_RESENT = "activation_resent"

REQUIRED_CONTACT = ("name", "email")
REQUIRED_BRIEF = ("project_title", "description")
BRIEF_FIELDS = (
    "project_category",
    "project_title",
    "description",
    "key_features",
    "budget_range",
    "timeline",
)


@dataclass
class LeadSubmission:
    outcome: str
    client: User
    lead: Lead | None = None


def _require_fields(data, names):
    missing = [n for n in names if not str(data.get(n) or "").strip()]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")


def submit_lead(contact: dict, brief: dict, *, notifier=None) -> LeadSubmission:
    """
    Public lead form. Idempotent on e-mail:
    - verified client: the lead is attached to their account
    - unverified client: a new activation link is sent, no lead is created
    - unknown e-mail: an inactive client is created along with the lead
    """
    _require_fields(contact, REQUIRED_CONTACT)
    _require_fields(brief, REQUIRED_BRIEF)
    email = contact["email"].strip().lower()
    validate_email(email)
    notifier = get_notifier(notifier)

    with transaction.atomic():
        client = find_client_by_email(email)

        if client is not None and not (client.is_email_verified and client.is_active):
            token = issue_activation_token(client)
            notifier.notify(
                "client_activation",
                client.email,
                {
                    "name": contact["name"],
                    "link": activation_link(token),
                    "hours": int(activation_window().total_seconds() // 3600),
                },
            )
            logger.info("Activation re-sent to unverified client %s", client.pk)
            return LeadSubmission(outcome=ACTIVATION_RESENT, client=client)

        outcome = LEAD_LINKED
        if client is None:
            client = create_pending_client(
                email=email,
                name=contact["name"],
                phone=contact.get("phone", ""),
                company_name=contact.get("company_name", ""),
            )
            outcome = LEAD_CREATED
            notifier.notify(
                "client_activation",
                client.email,
                {
                    "name": contact["name"],
                    "link": activation_link(client.verification_token),
                    "hours": int(activation_window().total_seconds() // 3600),
                },
            )

        lead = Lead.objects.create(
            name=contact["name"].strip(),
            email=email,
            phone=contact.get("phone", "") or "",
            company_name=contact.get("company_name", "") or "",
            client=client,
            **{f: brief[f] for f in BRIEF_FIELDS if brief.get(f) is not None},
        )
        log_action(action="lead.submit", instance=lead, actor=None)

    notifier.notify_admins(
        "lead_submitted",
        {"name": lead.name, "email": lead.email, "project_title": lead.project_title},
    )
    logger.info("Lead %s submitted (%s)", lead.pk, outcome)
    return LeadSubmission(outcome=outcome, client=client, lead=lead)


def start_review(principal, lead_id):
    require_admin(principal)
    with transaction.atomic():
        lead = fetch(Lead, lead_id, lock=True)
        lead.transition_to(LeadStatus.REVIEWING)
        lead.processed_by_id = principal.id
        lead.save(update_fields=["status", "processed_by", "updated_at"])
        log_action(action="lead.review", instance=lead, actor=principal)
    return lead


def assign_partner(principal, lead_id, partner_id, *, notifier=None):
    """Assign (or reassign) a partner to price the lead."""
    require_admin(principal)
    notifier = get_notifier(notifier)

    with transaction.atomic():
        lead = fetch(Lead, lead_id, lock=True)
        if lead.status not in PRE_OFFER_STATES:
            raise InvalidTransition("Lead", lead.status, LeadStatus.ASSIGNED_TO_PARTNER)

        partner = User.objects.filter(pk=partner_id, role=Role.PARTNER, is_active=True).first()
        if partner is None:
            raise ValidationError("Assignee must be an active partner.")
        partner_account(partner.pk)

        previous = lead.assigned_partner_id
        lead.transition_to(LeadStatus.ASSIGNED_TO_PARTNER)
        lead.assigned_partner = partner
        lead.processed_by_id = principal.id
        # a new partner prices from scratch
        if previous != partner.pk:
            lead.partner_proposed_cost = None
            lead.partner_notes = ""
            lead.partner_offer_proposed_at = None
        lead.save()
        log_action(
            action="lead.assign",
            instance=lead,
            actor=principal,
            changes={"from": previous, "to": partner.pk},
        )

    notifier.notify(
        "lead_assigned",
        partner.email,
        {"lead_id": lead.pk, "project_title": lead.project_title},
    )
    return lead


def partner_propose_cost(principal, lead_id, proposed_cost, timeline, notes="", *, notifier=None):
    require_role(principal, Role.PARTNER)
    cost = positive_money(proposed_cost, "Proposed cost")
    if not str(timeline or "").strip():
        raise ValidationError("Timeline is required.")
    notifier = get_notifier(notifier)

    with transaction.atomic():
        lead = fetch(Lead, lead_id, lock=True)
        if lead.assigned_partner_id != principal.id:
            raise PermissionDenied("Only the assigned partner can price this lead.")
        lead.transition_to(LeadStatus.PARTNER_OFFER_PROPOSED)
        lead.partner_proposed_cost = cost
        lead.timeline = str(timeline).strip()
        lead.partner_notes = notes or ""
        lead.partner_offer_proposed_at = timezone.now()
        lead.save()
        log_action(
            action="lead.propose",
            instance=lead,
            actor=principal,
            changes={"cost": cost, "timeline": lead.timeline},
        )

    notifier.notify_admins(
        "partner_offer_proposed",
        {
            "lead_id": lead.pk,
            "partner": lead.assigned_partner.email,
            "cost": cost,
            "timeline": lead.timeline,
            "project_title": lead.project_title,
        },
    )
    return lead


def admin_send_offer(
    principal,
    lead_id,
    *,
    margin_percent=None,
    admin_margin=None,
    includes_gst=False,
    notifier=None,
):
    """Price the lead for the client. Give the margin either as a percentage
    of the partner cost or as an absolute amount."""
    require_admin(principal)
    if (margin_percent is None) == (admin_margin is None):
        raise ValidationError("Provide exactly one of margin_percent or admin_margin.")
    notifier = get_notifier(notifier)

    with transaction.atomic():
        lead = fetch(Lead, lead_id, lock=True)
        if lead.partner_proposed_cost is None:
            raise ValidationError("The partner has not proposed a cost yet.")
        if not lead.can_transition(LeadStatus.OFFER_SENT_TO_CLIENT):
            raise InvalidTransition("Lead", lead.status, LeadStatus.OFFER_SENT_TO_CLIENT)

        if margin_percent is not None:
            margin, price = compute_offer(lead.partner_proposed_cost, margin_percent, includes_gst)
        else:
            margin = to_money(admin_margin)
            if margin < 0:
                raise ValidationError("Admin margin cannot be negative.")
            price = offer_from_margin(lead.partner_proposed_cost, margin, includes_gst)

        lead.transition_to(LeadStatus.OFFER_SENT_TO_CLIENT)
        lead.admin_margin = margin
        lead.offer_price = price
        lead.includes_gst = bool(includes_gst)
        lead.offer_sent_at = timezone.now()
        lead.responded_at = None
        lead.processed_by_id = principal.id
        lead.save()
        log_action(
            action="lead.offer",
            instance=lead,
            actor=principal,
            changes={"admin_margin": margin, "offer_price": price, "includes_gst": lead.includes_gst},
        )

    notifier.notify(
        "offer_sent",
        lead.client.email if lead.client_id else lead.email,
        {
            "project_title": lead.project_title,
            "offer_price": price,
            "gst_note": " incl. GST" if lead.includes_gst else "",
            "timeline": lead.timeline or "the agreed timeline",
        },
    )
    return lead


def client_accept_offer(principal, lead_id, *, notifier=None):
    """Accept the offer: the project is created in the same transaction."""
    require_role(principal, Role.CLIENT)
    notifier = get_notifier(notifier)

    with transaction.atomic():
        lead = fetch(Lead, lead_id, lock=True)
        require_owner(principal, lead.client_id, what="lead")
        if lead.status == LeadStatus.ACCEPTED_AND_CONVERTED or Project.objects.filter(lead=lead).exists():
            raise Conflict("This offer has already been accepted.")
        if lead.status != LeadStatus.OFFER_SENT_TO_CLIENT:
            raise InvalidTransition("Lead", lead.status, LeadStatus.ACCEPTED_AND_CONVERTED)

        try:
            with transaction.atomic():
                project = create_project_from_lead(lead, created_by_id=lead.processed_by_id)
        except IntegrityError:
            # unique Project.lead: someone converted it first
            raise Conflict("This lead has already been converted.")

        lead.transition_to(LeadStatus.ACCEPTED_AND_CONVERTED)
        lead.responded_at = timezone.now()
        lead.save(update_fields=["status", "responded_at", "updated_at"])
        log_action(
            action="lead.accept",
            instance=lead,
            actor=principal,
            changes={"project_id": project.pk},
        )

    data = {"lead_id": lead.pk, "project_id": project.pk, "project_title": lead.project_title}
    notifier.notify_admins("offer_accepted", data)
    if lead.assigned_partner_id:
        notifier.notify("offer_accepted", lead.assigned_partner.email, data)
    logger.info("Lead %s converted to project %s", lead.pk, project.pk)
    return project


def client_reject_offer(principal, lead_id, *, notifier=None):
    require_role(principal, Role.CLIENT)
    notifier = get_notifier(notifier)

    with transaction.atomic():
        lead = fetch(Lead, lead_id, lock=True)
        require_owner(principal, lead.client_id, what="lead")
        if lead.status != LeadStatus.OFFER_SENT_TO_CLIENT:
            raise InvalidTransition("Lead", lead.status, LeadStatus.OFFER_REJECTED_BY_CLIENT)
        lead.transition_to(LeadStatus.OFFER_REJECTED_BY_CLIENT)
        lead.responded_at = timezone.now()
        lead.save(update_fields=["status", "responded_at", "updated_at"])
        log_action(action="lead.reject", instance=lead, actor=principal)

    notifier.notify_admins(
        "offer_rejected", {"lead_id": lead.pk, "project_title": lead.project_title}
    )
    return lead


def archive_lead(principal, lead_id):
    require_admin(principal)
    with transaction.atomic():
        lead = fetch(Lead, lead_id, lock=True)
        lead.transition_to(LeadStatus.ARCHIVED)
        lead.archived_at = timezone.now()
        lead.save(update_fields=["status", "archived_at", "updated_at"])
        log_action(action="lead.archive", instance=lead, actor=principal)
    return lead


def delete_lead(principal, lead_id):
    """Converted leads can only be archived, never deleted."""
    require_admin(principal)
    with transaction.atomic():
        lead = fetch(Lead, lead_id, lock=True)
        if Project.objects.filter(lead=lead).exists():
            raise Conflict("Converted leads cannot be deleted; archive them instead.")
        log_action(action="lead.delete", instance=lead, actor=principal)
        lead.delete()


def leads_for(principal):
    return Lead.objects.visible_to(principal).select_related("client", "assigned_partner")
