import datetime
from decimal import Decimal
from io import StringIO

from django.core import mail
from django.core.management import call_command
from django.db import transaction
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone

from ..models import (AuditLog, Invoice, InvoiceStatus, Lead, MaintenancePlan,
                      Role, User, WithdrawalStatus)
from ..services import request_withdrawal
from ..services.notifications import Notifier, deliver, render
from ..tasks import mark_overdue_invoices, send_notification
from .helpers import BrokerageTestCase


class NotificationTests(BrokerageTestCase):
    def test_render_fills_in_the_frontend_link(self):
        subject, body = render("invoice_generated", {
            "invoice_number": "INV-1", "total_amount": "10.00", "due_date": "2030-01-01",
        })
        self.assertEqual(subject, "Invoice INV-1")
        self.assertIn("http", body)

    def test_delivery_failure_is_logged_not_raised(self):
        with self.assertLogs("brokerage_core.services.notifications", level="ERROR"):
            # missing template fields
            self.assertFalse(deliver("invoice_generated", "x@example.com", {}))
        self.assertEqual(mail.outbox, [])

    def test_rolled_back_work_sends_nothing(self):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            try:
                with transaction.atomic():
                    Notifier().notify("payment_failed", "x@example.com", {"total_amount": 1, "reason": "no"})
                    raise RuntimeError("rollback")
            except RuntimeError:
                pass
        self.assertEqual(callbacks, [])
        self.assertEqual(mail.outbox, [])

    def test_task_sends_mail(self):
        self.assertTrue(send_notification("payment_received", "x@example.com", {
            "invoice_number": "INV-1", "total_amount": "5.00",
        }))
        self.assertEqual(mail.outbox[0].subject, "Payment received for INV-1")


class ScheduledTaskTests(BrokerageTestCase):
    def test_overdue_task(self):
        _, invoice = self.make_invoice()
        Invoice.objects.filter(pk=invoice.pk).update(
            due_date=timezone.localdate() - datetime.timedelta(days=3)
        )
        self.assertEqual(mark_overdue_invoices(), 1)
        invoice.refresh_from_db()
        self.assertEqual(invoice.status, InvoiceStatus.OVERDUE)


class AdminActionTests(BrokerageTestCase):
    def setUp(self):
        super().setUp()
        self.admin_user.is_staff = True
        self.admin_user.is_superuser = True
        self.admin_user.save()
        self.client.force_login(self.admin_user)

    def test_reject_action_goes_through_the_service(self):
        self.set_balance("300.00")
        withdrawal = request_withdrawal(self.partner, "300.00")

        self.client.post(
            reverse("admin:brokerage_core_withdrawal_changelist"),
            {"action": "reject_withdrawals", "_selected_action": [withdrawal.pk]},
        )

        withdrawal.refresh_from_db()
        self.assertEqual(withdrawal.status, WithdrawalStatus.REJECTED)
        self.assertEqual(self.balance(), Decimal("300.00"))
        # same audit trail as the API
        self.assertTrue(AuditLog.objects.filter(action="withdrawal.process", actor=self.admin_user).exists())

    def test_failed_rows_are_reported_not_raised(self):
        self.set_balance("100.00")
        withdrawal = request_withdrawal(self.partner, "100.00")
        url = reverse("admin:brokerage_core_withdrawal_changelist")
        self.client.post(url, {"action": "pay_withdrawals", "_selected_action": [withdrawal.pk]})

        response = self.client.post(
            url, {"action": "reject_withdrawals", "_selected_action": [withdrawal.pk]}, follow=True
        )

        self.assertEqual(response.status_code, 200)
        self.assertContains(response, "already PAID")
        self.assertEqual(self.balance(), Decimal("0.00"))

    def test_ledger_rows_are_read_only(self):
        response = self.client.get(reverse("admin:brokerage_core_partner_add"))
        self.assertEqual(response.status_code, 403)


class SeedDemoTests(TestCase):
    def test_seed_is_repeatable(self):
        out = StringIO()
        call_command("seed_demo", stdout=out)
        call_command("seed_demo", stdout=out)

        self.assertEqual(User.objects.filter(role=Role.ADMIN).count(), 1)
        self.assertEqual(MaintenancePlan.objects.count(), 1)
        # second run only re-sends the activation link
        self.assertEqual(Lead.objects.count(), 1)
        self.assertIn("activation_resent", out.getvalue())
