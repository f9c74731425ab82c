from decimal import Decimal

from django.test import TestCase
from django.utils import timezone

from ..exceptions import GatewayError
from ..models import GstReport, Lead, Partner, Revenue, Role, User
from ..services import (admin_send_offer, approve_milestone, assign_partner,
                        client_accept_offer, partner_propose_cost,
                        submit_milestone)
from ..services.gateway import (CHARGE_SUCCEEDED, GatewayCharge,
                                PaymentGateway)
from ..services.principal import Principal
from ..services.rollups import month_key, quarter_key


class SucceedingGateway(PaymentGateway):
    """Charges settle immediately."""

    def __init__(self):
        self.charged = []

    def charge(self, payment, *, description="", payment_method_ref=""):
        self.charged.append(payment.pk)
        return GatewayCharge(transaction_id=f"ch_ok_{payment.pk}", status=CHARGE_SUCCEEDED)


class DecliningGateway(PaymentGateway):
    def charge(self, payment, *, description="", payment_method_ref=""):
        raise GatewayError("card_declined")


class BrokerageTestCase(TestCase):
    """Admin, client and partner users plus helpers that walk the workflow."""

    def setUp(self):
        self.admin_user = User.objects.create_user(
            "admin", "admin@agency.test", "pw-admin-123", role=Role.ADMIN, is_email_verified=True
        )
        self.client_user = User.objects.create_user(
            "client", "client@agency.test", "pw-client-123", role=Role.CLIENT, is_email_verified=True
        )
        self.partner_user = User.objects.create_user(
            "partner", "partner@agency.test", "pw-partner-123", role=Role.PARTNER, is_email_verified=True
        )
        self.admin = Principal(self.admin_user.pk, Role.ADMIN)
        self.customer = Principal(self.client_user.pk, Role.CLIENT)
        self.partner = Principal(self.partner_user.pk, Role.PARTNER)

    # ---------- workflow shortcuts ----------
    def make_lead(self, **extra):
        fields = {
            "name": "Casey Client",
            "email": self.client_user.email,
            "project_title": "Company website",
            "description": "Five pages and a contact form",
            "client": self.client_user,
        }
        fields.update(extra)
        return Lead.objects.create(**fields)

    def make_offer(self, cost="800.00", margin_percent=20, includes_gst=False):
        lead = self.make_lead()
        assign_partner(self.admin, lead.pk, self.partner_user.pk)
        partner_propose_cost(self.partner, lead.pk, cost, "4 weeks")
        return admin_send_offer(
            self.admin, lead.pk, margin_percent=margin_percent, includes_gst=includes_gst
        )

    def make_project(self, **offer):
        lead = self.make_offer(**offer)
        return client_accept_offer(self.customer, lead.pk)

    def make_invoice(self, project=None, cost="1000.00", client_cost="1100.00", includes_gst=True):
        project = project or self.make_project()
        milestone = submit_milestone(self.partner, project.pk, "Design", cost, 10)
        return approve_milestone(self.admin, milestone.pk, client_cost, includes_gst)

    # ---------- ledger readers ----------
    def balance(self):
        return Partner.objects.get(user=self.partner_user).available_balance

    def earnings(self):
        return Partner.objects.get(user=self.partner_user).total_earnings

    def set_balance(self, amount):
        Partner.objects.filter(user=self.partner_user).update(available_balance=Decimal(amount))

    def revenue(self):
        row = Revenue.objects.filter(month=month_key(timezone.localdate())).first()
        return row.amount if row else Decimal("0.00")

    def gst_collected(self):
        row = GstReport.objects.filter(period=quarter_key(timezone.localdate())).first()
        return row.gst_collected if row else Decimal("0.00")
