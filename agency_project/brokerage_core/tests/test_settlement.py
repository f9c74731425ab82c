from decimal import Decimal
from itertools import cycle

from django.core import mail
from django.core.exceptions import ValidationError
from django.db import transaction

from ..exceptions import (Conflict, DuplicateKey, GatewayError,
                          InsufficientBalance)
from ..models import (AuditLog, Invoice, InvoiceStatus, MilestoneStatus,
                      Payment, PaymentMethod, PaymentStatus)
from ..services import (cancel_invoice, complete_payment, delete_invoice,
                        delete_payment, handle_gateway_event, record_payment,
                        refund_payment, update_payment_status)
from ..services.invoicing import generate_invoice_number, issue_invoice
from .helpers import BrokerageTestCase, DecliningGateway, SucceedingGateway


class SettlementTests(BrokerageTestCase):
    def pay(self, invoice, amount="1210.00", method=PaymentMethod.BANK_TRANSFER, principal=None, **kw):
        return record_payment(principal or self.admin, invoice_id=invoice.pk, amount=amount, method=method, **kw)

    def test_scenario_c_full_offline_payment(self):
        milestone, invoice = self.make_invoice()
        self.assertEqual(invoice.amount, Decimal("1100.00"))
        self.assertEqual(invoice.gst_amount, Decimal("110.00"))
        self.assertEqual(invoice.total_amount, Decimal("1210.00"))

        payment = self.pay(invoice)

        self.assertEqual(payment.status, PaymentStatus.COMPLETED)
        self.assertTrue(payment.is_settled)
        invoice.refresh_from_db()
        milestone.refresh_from_db()
        self.assertEqual(invoice.status, InvoiceStatus.PAID)
        self.assertIsNotNone(invoice.paid_at)
        self.assertEqual(milestone.status, MilestoneStatus.PAID)
        self.assertEqual(self.balance(), Decimal("1000.00"))
        self.assertEqual(self.earnings(), Decimal("1000.00"))
        self.assertEqual(self.revenue(), Decimal("100.00"))
        self.assertEqual(self.gst_collected(), Decimal("110.00"))
        self.assertTrue(AuditLog.objects.filter(action="payment.settle", object_id=str(payment.pk)).exists())

    def test_settling_twice_is_a_no_op(self):
        _, invoice = self.make_invoice()
        payment = self.pay(invoice)

        again, applied = complete_payment(payment.pk)

        self.assertFalse(applied)
        self.assertEqual(again.pk, payment.pk)
        self.assertEqual(self.balance(), Decimal("1000.00"))
        self.assertEqual(self.gst_collected(), Decimal("110.00"))

    def test_partial_payments_settle_the_invoice_when_covered(self):
        milestone, invoice = self.make_invoice()

        first = self.pay(invoice, amount="605.00")
        self.assertEqual(first.gst_amount, Decimal("55.00"))
        self.assertEqual(first.amount, Decimal("550.00"))
        invoice.refresh_from_db()
        self.assertEqual(invoice.status, InvoiceStatus.SENT)
        self.assertEqual(self.gst_collected(), Decimal("55.00"))
        self.assertEqual(self.balance(), Decimal("0.00"))

        self.pay(invoice, amount="605.00")
        invoice.refresh_from_db()
        milestone.refresh_from_db()
        self.assertEqual(invoice.status, InvoiceStatus.PAID)
        self.assertEqual(milestone.status, MilestoneStatus.PAID)
        self.assertEqual(self.gst_collected(), Decimal("110.00"))
        self.assertEqual(self.balance(), Decimal("1000.00"))
        self.assertEqual(self.revenue(), Decimal("100.00"))

    def test_overpayment_is_rejected(self):
        _, invoice = self.make_invoice()
        with self.assertRaises(ValidationError):
            self.pay(invoice, amount="1210.01")
        self.assertFalse(Payment.objects.exists())

    def test_in_flight_payment_reduces_outstanding(self):
        _, invoice = self.make_invoice()
        # client card payment waits for the webhook
        pending = self.pay(invoice, method=PaymentMethod.CARD, principal=self.customer)
        self.assertEqual(pending.status, PaymentStatus.PROCESSING)
        with self.assertRaises(ValidationError):
            self.pay(invoice, amount="1.00")

    def test_paid_invoice_takes_no_more_payments(self):
        _, invoice = self.make_invoice()
        self.pay(invoice)
        with self.assertRaises(Conflict):
            self.pay(invoice, amount="1.00")

    def test_client_bank_transfer_waits_for_confirmation(self):
        _, invoice = self.make_invoice()
        payment = self.pay(invoice, principal=self.customer)
        self.assertEqual(payment.status, PaymentStatus.PENDING)
        self.assertEqual(self.balance(), Decimal("0.00"))

        update_payment_status(self.admin, payment.pk, PaymentStatus.COMPLETED)

        self.assertEqual(self.balance(), Decimal("1000.00"))

    def test_immediate_gateway_success_settles(self):
        _, invoice = self.make_invoice()
        gateway = SucceedingGateway()
        payment = self.pay(invoice, method=PaymentMethod.CARD, principal=self.customer, gateway=gateway)
        self.assertEqual(gateway.charged, [payment.pk])
        self.assertEqual(payment.status, PaymentStatus.COMPLETED)
        self.assertEqual(payment.gateway_transaction_id, f"ch_ok_{payment.pk}")
        self.assertEqual(self.balance(), Decimal("1000.00"))

    def test_gateway_decline_fails_payment_and_raises(self):
        _, invoice = self.make_invoice()
        with self.assertRaises(GatewayError):
            self.pay(invoice, method=PaymentMethod.CARD, principal=self.customer, gateway=DecliningGateway())
        payment = Payment.objects.get(invoice=invoice)
        self.assertEqual(payment.status, PaymentStatus.FAILED)
        self.assertEqual(payment.failure_reason, "card_declined")
        self.assertFalse(payment.is_settled)
        invoice.refresh_from_db()
        self.assertEqual(invoice.status, InvoiceStatus.SENT)
        self.assertEqual(self.gst_collected(), Decimal("0.00"))


class WebhookTests(BrokerageTestCase):
    def setUp(self):
        super().setUp()
        self.milestone, self.invoice = self.make_invoice()
        self.payment = record_payment(
            self.customer, invoice_id=self.invoice.pk, amount="1210.00", method=PaymentMethod.CARD
        )

    def event(self, kind, **metadata):
        return {"type": kind, "metadata": metadata}

    def test_duplicate_success_credits_once(self):
        event = self.event("payment.succeeded", paymentId=self.payment.pk)
        handle_gateway_event(event)
        payment = handle_gateway_event(event)

        self.assertEqual(payment.status, PaymentStatus.COMPLETED)
        self.assertEqual(self.balance(), Decimal("1000.00"))
        self.assertEqual(self.revenue(), Decimal("100.00"))
        self.assertEqual(self.gst_collected(), Decimal("110.00"))

    def test_success_found_by_transaction_id(self):
        txn = self.payment.gateway_transaction_id
        self.assertTrue(txn)
        handle_gateway_event(self.event("payment.succeeded", transactionId=txn))
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, InvoiceStatus.PAID)

    def test_failure_then_late_success_is_ignored(self):
        handle_gateway_event(self.event("payment.failed", paymentId=self.payment.pk, reason="expired"))
        payment = handle_gateway_event(self.event("payment.succeeded", paymentId=self.payment.pk))

        self.assertEqual(payment.status, PaymentStatus.FAILED)
        self.assertEqual(self.balance(), Decimal("0.00"))

    def test_failure_after_settlement_is_ignored(self):
        handle_gateway_event(self.event("payment.succeeded", paymentId=self.payment.pk))
        payment = handle_gateway_event(self.event("payment.failed", paymentId=self.payment.pk))
        self.assertEqual(payment.status, PaymentStatus.COMPLETED)

    def test_unknown_event_type_is_ignored(self):
        self.assertIsNone(handle_gateway_event(self.event("charge.dispute", paymentId=self.payment.pk)))

    def test_event_without_reference_is_invalid(self):
        with self.assertRaises(ValidationError):
            handle_gateway_event(self.event("payment.succeeded"))

    def test_client_is_mailed_on_settlement(self):
        with self.captureOnCommitCallbacks(execute=True):
            handle_gateway_event(self.event("payment.succeeded", paymentId=self.payment.pk))
        self.assertIn(self.client_user.email, [m.to[0] for m in mail.outbox])

    def test_invoice_with_payment_in_flight_cannot_be_cancelled(self):
        with self.assertRaises(Conflict):
            cancel_invoice(self.admin, self.invoice.pk)
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, InvoiceStatus.SENT)

        # once the charge resolves the invoice can be voided
        handle_gateway_event(self.event("payment.failed", paymentId=self.payment.pk))
        self.assertEqual(cancel_invoice(self.admin, self.invoice.pk).status, InvoiceStatus.CANCELLED)

    def test_late_success_on_cancelled_invoice_settles_without_crediting(self):
        # voided behind the service, e.g. by a data fix
        Invoice.objects.filter(pk=self.invoice.pk).update(status=InvoiceStatus.CANCELLED)

        with self.assertLogs("brokerage_core.services.settlement", "WARNING") as logs:
            payment = handle_gateway_event(self.event("payment.succeeded", paymentId=self.payment.pk))

        self.assertEqual(payment.status, PaymentStatus.COMPLETED)
        self.assertTrue(payment.is_settled)
        self.assertIn("manual review", logs.output[0])
        self.invoice.refresh_from_db()
        self.milestone.refresh_from_db()
        self.assertEqual(self.invoice.status, InvoiceStatus.CANCELLED)
        self.assertNotEqual(self.milestone.status, MilestoneStatus.PAID)
        self.assertEqual(self.balance(), Decimal("0.00"))
        self.assertEqual(self.revenue(), Decimal("0.00"))
        self.assertEqual(self.gst_collected(), Decimal("110.00"))

        # redelivery stays a no-op and a refund takes the GST back out
        handle_gateway_event(self.event("payment.succeeded", paymentId=self.payment.pk))
        refund_payment(self.admin, self.payment.pk)
        self.assertEqual(self.gst_collected(), Decimal("0.00"))


class ReversalTests(BrokerageTestCase):
    def setUp(self):
        super().setUp()
        self.milestone, self.invoice = self.make_invoice()
        self.payment = record_payment(
            self.admin, invoice_id=self.invoice.pk, amount="1210.00", method=PaymentMethod.MANUAL
        )

    def assert_reverted(self):
        self.invoice.refresh_from_db()
        self.milestone.refresh_from_db()
        self.assertEqual(self.invoice.status, InvoiceStatus.SENT)
        self.assertEqual(self.milestone.status, MilestoneStatus.COMPLETED)
        self.assertEqual(self.balance(), Decimal("0.00"))
        self.assertEqual(self.earnings(), Decimal("0.00"))
        self.assertEqual(self.revenue(), Decimal("0.00"))
        self.assertEqual(self.gst_collected(), Decimal("0.00"))

    def test_refund_reverses_every_effect(self):
        payment = refund_payment(self.admin, self.payment.pk)
        self.assertEqual(payment.status, PaymentStatus.REFUNDED)
        self.assertFalse(payment.is_settled)
        self.assert_reverted()

    def test_refund_after_withdrawal_is_refused(self):
        self.set_balance("200.00")
        with self.assertRaises(InsufficientBalance):
            refund_payment(self.admin, self.payment.pk)
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, PaymentStatus.COMPLETED)
        self.assertEqual(self.revenue(), Decimal("100.00"))

    def test_delete_payment_reverses_first(self):
        delete_payment(self.admin, self.payment.pk)
        self.assertFalse(Payment.objects.filter(pk=self.payment.pk).exists())
        self.assert_reverted()

    def test_delete_invoice_reverses_its_payments(self):
        delete_invoice(self.admin, self.invoice.pk)
        self.assertFalse(Invoice.objects.filter(pk=self.invoice.pk).exists())
        self.assertFalse(Payment.objects.exists())
        self.assertEqual(self.balance(), Decimal("0.00"))
        self.assertEqual(self.gst_collected(), Decimal("0.00"))

    def test_settled_rows_cannot_be_deleted_directly(self):
        with self.assertRaises(ValidationError):
            self.payment.delete()


class InvoiceNumberTests(BrokerageTestCase):
    def setUp(self):
        super().setUp()
        self.project = self.make_project()

    def issue(self, factory):
        with transaction.atomic():
            return issue_invoice(project=self.project, amount="100", gst_enabled=False, number_factory=factory)

    def test_collision_retries_with_new_number(self):
        self.issue(lambda: "INV-250101-000001")
        numbers = iter(["INV-250101-000001", "INV-250101-000002"])

        invoice = self.issue(lambda: next(numbers))

        self.assertEqual(invoice.invoice_number, "INV-250101-000002")

    def test_gives_up_after_repeated_collisions(self):
        self.issue(lambda: "INV-250101-000001")
        same = cycle(["INV-250101-000001"])
        with self.assertRaises(DuplicateKey):
            self.issue(lambda: next(same))
        self.assertEqual(Invoice.objects.filter(project=self.project).count(), 1)

    def test_generated_number_format(self):
        invoice = self.issue(generate_invoice_number)
        self.assertRegex(invoice.invoice_number, r"^INV-\d{6}-\d{6}$")
