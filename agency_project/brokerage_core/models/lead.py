from django.conf import settings
from django.db import models

from ..exceptions import InvalidTransition
from ..managers import LeadQuerySet
from .status import LeadStatus

S = LeadStatus

# States from which the lead can still be (re)assigned to a partner
PRE_OFFER_STATES = (
    S.PENDING,
    S.REVIEWING,
    S.ASSIGNED_TO_PARTNER,
    S.PARTNER_OFFER_PROPOSED,
)


class Lead(models.Model):  # A client's project enquiry, priced by a partner
    # Contact details as submitted
    name = models.CharField(max_length=200)
    email = models.EmailField()
    phone = models.CharField(max_length=32, blank=True, default="")
    company_name = models.CharField(max_length=200, blank=True, default="")

    # Project brief
    project_category = models.CharField(max_length=100, blank=True, default="")
    project_title = models.CharField(max_length=200)
    description = models.TextField()
    key_features = models.JSONField(default=list, blank=True)
    budget_range = models.CharField(max_length=100, blank=True, default="")
    timeline = models.CharField(max_length=100, blank=True, default="")

    status = models.CharField(
        max_length=32, choices=LeadStatus.choices, default=LeadStatus.PENDING
    )

    client = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="leads",
    )
    assigned_partner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="assigned_leads",
    )
    processed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="processed_leads",
    )

    # Negotiation
    partner_proposed_cost = models.DecimalField(
        max_digits=14, decimal_places=2, null=True, blank=True
    )
    partner_notes = models.TextField(blank=True, default="")
    partner_offer_proposed_at = models.DateTimeField(null=True, blank=True)
    admin_margin = models.DecimalField(
        max_digits=14, decimal_places=2, null=True, blank=True
    )
    offer_price = models.DecimalField(
        max_digits=14, decimal_places=2, null=True, blank=True
    )
    includes_gst = models.BooleanField(default=False)
    offer_sent_at = models.DateTimeField(null=True, blank=True)
    responded_at = models.DateTimeField(null=True, blank=True)
    archived_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = LeadQuerySet.as_manager()

    """ Workflow:
        PENDING -> REVIEWING -> ASSIGNED_TO_PARTNER -> PARTNER_OFFER_PROPOSED
        -> OFFER_SENT_TO_CLIENT -> ACCEPTED_AND_CONVERTED | OFFER_REJECTED_BY_CLIENT
        A rejected offer can be re-sent; any open lead can be archived. """
    TRANSITIONS = {
        S.PENDING: [S.REVIEWING, S.ASSIGNED_TO_PARTNER, S.ARCHIVED],
        S.REVIEWING: [S.ASSIGNED_TO_PARTNER, S.ARCHIVED],
        S.ASSIGNED_TO_PARTNER: [
            S.ASSIGNED_TO_PARTNER,
            S.PARTNER_OFFER_PROPOSED,
            S.ARCHIVED,
        ],
        S.PARTNER_OFFER_PROPOSED: [
            S.ASSIGNED_TO_PARTNER,
            S.PARTNER_OFFER_PROPOSED,
            S.OFFER_SENT_TO_CLIENT,
            S.ARCHIVED,
        ],
        S.OFFER_SENT_TO_CLIENT: [
            S.ACCEPTED_AND_CONVERTED,
            S.OFFER_REJECTED_BY_CLIENT,
            S.ARCHIVED,
        ],
        S.OFFER_REJECTED_BY_CLIENT: [S.OFFER_SENT_TO_CLIENT, S.ARCHIVED],
        S.ACCEPTED_AND_CONVERTED: [],
        S.ARCHIVED: [],
    }

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="brokerage_c_status_lead_idx"),
            models.Index(fields=["email"], name="brokerage_c_email_lead_idx"),
        ]

    def __str__(self):
        return f"Lead {self.pk}: {self.project_title}"

    @property
    def converted_project(self):
        # reverse side of Project.lead, derived rather than stored
        return getattr(self, "project", None)

    def can_transition(self, new_status):
        return new_status in self.TRANSITIONS.get(self.status, [])

    def transition_to(self, new_status):
        if not self.can_transition(new_status):
            raise InvalidTransition("Lead", self.status, new_status)
        self.status = new_status
