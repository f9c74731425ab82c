import json
from decimal import Decimal
from unittest import mock

from django.test import override_settings
from django.urls import reverse

from ..models import InvoiceStatus, PaymentMethod, Role, User
from ..services import record_payment, request_withdrawal
from ..services.gateway import sign_payload
from .helpers import BrokerageTestCase


def url(name, *args):
    return reverse(f"brokerage_core:{name}", args=args)


class ApiTests(BrokerageTestCase):
    def post(self, name, *args, data=None, user=None):
        if user is not None:
            self.client.force_login(user)
        return self.client.post(url(name, *args), data or {}, content_type="application/json")

    def test_public_lead_submission(self):
        response = self.post(
            "lead-submit",
            data={
                "contact": {"name": "Robin", "email": "robin@example.com"},
                "brief": {"project_title": "Shop", "description": "Online shop"},
            },
        )
        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertTrue(body["ok"])
        self.assertEqual(body["outcome"], "lead_created")
        self.assertIsNotNone(body["lead_id"])

    def test_validation_errors_are_400(self):
        response = self.post("lead-submit", data={"contact": {"name": "Robin"}, "brief": {}})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["kind"], "validation_error")

    def test_malformed_json_is_400(self):
        response = self.client.post(url("lead-submit"), "{not json", content_type="application/json")
        self.assertEqual(response.status_code, 400)

    def test_anonymous_calls_are_403(self):
        lead = self.make_lead()
        response = self.post("lead-assign", lead.pk, data={"partner_id": self.partner_user.pk})
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["kind"], "forbidden")

    def test_unknown_ids_are_404(self):
        response = self.post("lead-assign", 9999, data={"partner_id": self.partner_user.pk}, user=self.admin_user)
        self.assertEqual(response.status_code, 404)

    def test_offer_round_trip_and_double_accept_conflict(self):
        lead = self.make_lead()
        self.post("lead-assign", lead.pk, data={"partner_id": self.partner_user.pk}, user=self.admin_user)
        self.post("lead-propose", lead.pk, data={"proposed_cost": "800", "timeline": "4 weeks"}, user=self.partner_user)
        offer = self.post("lead-offer", lead.pk, data={"margin_percent": 20}, user=self.admin_user)
        self.assertEqual(offer.status_code, 200)
        self.assertEqual(Decimal(offer.json()["offer_price"]), Decimal("960.00"))

        accepted = self.post("lead-accept", lead.pk, user=self.client_user)
        self.assertEqual(accepted.status_code, 201)
        again = self.post("lead-accept", lead.pk)
        self.assertEqual(again.status_code, 409)
        self.assertEqual(again.json()["kind"], "conflict")

    def test_overdrawn_withdrawal_is_402(self):
        self.set_balance("50.00")
        response = self.post("withdrawal-request", data={"amount": "60.00"}, user=self.partner_user)
        self.assertEqual(response.status_code, 402)
        self.assertEqual(response.json()["kind"], "insufficient_balance")

    def test_earnings_and_revenue_reports(self):
        self.client.force_login(self.partner_user)
        response = self.client.get(url("partner-earnings"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(Decimal(response.json()["available_balance"]), Decimal("0.00"))

        self.assertEqual(self.client.get(url("revenue-report")).status_code, 403)
        self.client.force_login(self.admin_user)
        self.assertEqual(self.client.get(url("revenue-report")).status_code, 200)

    def test_get_on_a_write_endpoint_is_405(self):
        self.assertEqual(self.client.get(url("lead-submit")).status_code, 405)

    def test_unexpected_errors_are_hidden(self):
        project = self.make_project()
        with mock.patch("brokerage_core.services.mark_complete", side_effect=RuntimeError("db password is hunter2")):
            response = self.post("project-complete", project.pk, user=self.admin_user)
        self.assertEqual(response.status_code, 500)
        self.assertNotIn("hunter2", response.content.decode())


@override_settings(PAYMENT_WEBHOOK_SECRET="whsec_test")
class WebhookViewTests(BrokerageTestCase):
    def setUp(self):
        super().setUp()
        _, self.invoice = self.make_invoice()
        self.payment = record_payment(
            self.customer, invoice_id=self.invoice.pk, amount="1210.00", method=PaymentMethod.CARD
        )
        self.body = json.dumps(
            {"type": "payment.succeeded", "metadata": {"paymentId": self.payment.pk}}
        ).encode()

    def deliver(self, signature):
        return self.client.post(
            url("payment-webhook"),
            self.body,
            content_type="application/json",
            HTTP_X_GATEWAY_SIGNATURE=signature,
        )

    def test_signed_event_settles_the_payment(self):
        response = self.deliver(sign_payload(self.body, "whsec_test"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["payment_status"], "COMPLETED")
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, InvoiceStatus.PAID)

    def test_redelivery_is_harmless(self):
        signature = sign_payload(self.body, "whsec_test")
        self.deliver(signature)
        self.assertEqual(self.deliver(signature).status_code, 200)
        self.assertEqual(self.balance(), Decimal("1000.00"))

    def test_bad_signature_is_refused(self):
        response = self.deliver("not-a-signature")
        self.assertEqual(response.status_code, 403)
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, InvoiceStatus.SENT)


class ListingViewTests(BrokerageTestCase):
    def rows(self, kind, user, **params):
        self.client.force_login(user)
        response = self.client.get(url("listing", kind), params)
        self.assertEqual(response.status_code, 200)
        return response.json()[kind]

    def test_rows_are_scoped_to_the_caller(self):
        milestone, invoice = self.make_invoice()
        stranger = User.objects.create_user("c2", "c2@agency.test", "pw", role=Role.CLIENT)

        self.assertEqual([r["id"] for r in self.rows("invoices", self.client_user)], [invoice.pk])
        self.assertEqual([r["id"] for r in self.rows("milestones", self.partner_user)], [milestone.pk])
        self.assertEqual(self.rows("invoices", stranger), [])
        self.assertEqual(self.rows("projects", stranger), [])
        self.assertEqual(len(self.rows("leads", self.admin_user)), 1)

    def test_open_leads_leave_out_converted_ones(self):
        self.make_project()
        fresh = self.make_lead(project_title="Mobile app")

        rows = self.rows("leads", self.client_user, open="1")
        self.assertEqual([r["id"] for r in rows], [fresh.pk])

    def test_unpaid_invoices_and_payments(self):
        _, invoice = self.make_invoice()
        self.assertEqual(len(self.rows("invoices", self.admin_user, unpaid="1")), 1)

        record_payment(self.admin, invoice_id=invoice.pk, amount="1210.00", method=PaymentMethod.MANUAL)

        self.assertEqual(self.rows("invoices", self.admin_user, unpaid="1"), [])
        payments = self.rows("payments", self.client_user)
        self.assertEqual(len(payments), 1)
        self.assertEqual(payments[0]["status"], "COMPLETED")

    def test_pending_withdrawals_for_the_partner_only(self):
        self.set_balance("500.00")
        request_withdrawal(self.partner, "200.00")

        self.assertEqual(len(self.rows("withdrawals", self.partner_user, pending="1")), 1)
        self.assertEqual(self.rows("withdrawals", self.client_user), [])

    def test_unknown_listing_is_404(self):
        self.client.force_login(self.admin_user)
        self.assertEqual(self.client.get(url("listing", "secrets")).status_code, 404)

    def test_revenue_report_includes_the_total(self):
        _, invoice = self.make_invoice()
        record_payment(self.admin, invoice_id=invoice.pk, amount="1210.00", method=PaymentMethod.MANUAL)
        self.client.force_login(self.admin_user)

        body = self.client.get(url("revenue-report")).json()

        self.assertEqual(Decimal(body["total_revenue"]), Decimal("100.00"))
