import datetime
from decimal import Decimal

from django.core.exceptions import PermissionDenied, ValidationError
from django.urls import reverse
from django.utils import timezone

from ..exceptions import Conflict, InvalidTransition, NotFound
from ..models import (AuditLog, Expense, GstReport, GstReportStatus,
                      PaymentMethod)
from ..services import (delete_expense, file_gst_report, monthly_summary,
                        record_expense, record_payment, refund_payment,
                        update_expense)
from ..services.rollups import month_key, quarter_key
from .helpers import BrokerageTestCase


def previous_month(day):
    return (day.replace(day=1) - datetime.timedelta(days=1)).replace(day=1)


class ExpenseTests(BrokerageTestCase):
    def test_record_update_delete(self):
        expense = record_expense(self.admin, "49.90", "Software", "Hosting")
        self.assertEqual(expense.amount, Decimal("49.90"))
        self.assertEqual(expense.date, timezone.localdate())
        self.assertEqual(expense.created_by_id, self.admin_user.pk)

        expense = update_expense(self.admin, expense.pk, amount="55", date="2025-01-15")
        self.assertEqual(expense.amount, Decimal("55.00"))
        self.assertEqual(expense.date, datetime.date(2025, 1, 15))

        delete_expense(self.admin, expense.pk)
        self.assertFalse(Expense.objects.exists())
        self.assertEqual(
            list(AuditLog.objects.filter(object_type="Expense").values_list("action", flat=True).order_by("id")),
            ["expense.create", "expense.update", "expense.delete"],
        )

    def test_validation(self):
        with self.assertRaises(ValidationError):
            record_expense(self.admin, "0", "Software")
        with self.assertRaises(ValidationError):
            record_expense(self.admin, "10", "")
        with self.assertRaises(ValidationError):
            record_expense(self.admin, "10", "Travel", date="next tuesday")

        expense = record_expense(self.admin, "10", "Travel")
        with self.assertRaises(ValidationError):
            update_expense(self.admin, expense.pk, created_by=self.partner_user.pk)
        with self.assertRaises(ValidationError):
            update_expense(self.admin, expense.pk, amount="-5")

    def test_only_admins_manage_expenses(self):
        with self.assertRaises(PermissionDenied):
            record_expense(self.partner, "10", "Travel")
        expense = record_expense(self.admin, "10", "Travel")
        with self.assertRaises(PermissionDenied):
            delete_expense(self.customer, expense.pk)
        with self.assertRaises(NotFound):
            delete_expense(self.admin, 9999)


class MonthlySummaryTests(BrokerageTestCase):
    def setUp(self):
        super().setUp()
        self.today = timezone.localdate()
        _, self.invoice = self.make_invoice()
        self.payment = record_payment(
            self.admin, invoice_id=self.invoice.pk, amount="1210.00", method=PaymentMethod.MANUAL
        )

    def test_net_profit_is_margin_less_expenses(self):
        record_expense(self.admin, "30.00", "Software")
        record_expense(self.admin, "20.00", "Travel")
        # last month's costs belong to last month
        record_expense(self.admin, "500.00", "Office", date=previous_month(self.today))

        summary = monthly_summary(self.admin)

        self.assertEqual(summary["month"], month_key(self.today))
        self.assertEqual(summary["total_revenue"], Decimal("100.00"))
        self.assertEqual(summary["gst_collected"], Decimal("110.00"))
        self.assertEqual(summary["total_expense"], Decimal("50.00"))
        self.assertEqual(summary["net_profit"], Decimal("50.00"))

    def test_loss_making_month(self):
        record_expense(self.admin, "250.00", "Office")
        self.assertEqual(monthly_summary(self.admin)["net_profit"], Decimal("-150.00"))

    def test_refund_takes_revenue_and_gst_out(self):
        refund_payment(self.admin, self.payment.pk)
        summary = monthly_summary(self.admin, month_key(self.today))
        self.assertEqual(summary["total_revenue"], Decimal("0.00"))
        self.assertEqual(summary["gst_collected"], Decimal("0.00"))

    def test_empty_month(self):
        summary = monthly_summary(self.admin, "2001-02")
        self.assertEqual(summary["total_revenue"], Decimal("0.00"))
        self.assertEqual(summary["net_profit"], Decimal("0.00"))

    def test_bad_month_and_non_admin(self):
        with self.assertRaises(ValidationError):
            monthly_summary(self.admin, "2025-13")
        with self.assertRaises(PermissionDenied):
            monthly_summary(self.partner)


class GstFilingTests(BrokerageTestCase):
    def setUp(self):
        super().setUp()
        _, invoice = self.make_invoice()
        record_payment(self.admin, invoice_id=invoice.pk, amount="1210.00", method=PaymentMethod.MANUAL)
        self.period = quarter_key(timezone.localdate())

    def test_filed_then_paid(self):
        report = file_gst_report(self.admin, self.period, gst_paid="40.00", status=GstReportStatus.FILED)
        self.assertEqual(report.status, GstReportStatus.FILED)
        self.assertIsNotNone(report.filed_at)
        self.assertEqual(report.gst_collected, Decimal("110.00"))
        self.assertEqual(report.net_payable, Decimal("70.00"))

        report = file_gst_report(self.admin, self.period, gst_paid="110.00", status=GstReportStatus.PAID)
        self.assertEqual(report.status, GstReportStatus.PAID)
        self.assertEqual(report.net_payable, Decimal("0.00"))
        self.assertTrue(AuditLog.objects.filter(action="gst.file").exists())

    def test_filing_leaves_collected_gst_to_settlement(self):
        file_gst_report(self.admin, self.period, status=GstReportStatus.FILED)
        _, invoice = self.make_invoice()
        record_payment(self.admin, invoice_id=invoice.pk, amount="1210.00", method=PaymentMethod.MANUAL)

        report = GstReport.objects.get(period=self.period)
        self.assertEqual(report.gst_collected, Decimal("220.00"))
        self.assertEqual(report.status, GstReportStatus.FILED)

    def test_cannot_skip_or_reopen(self):
        with self.assertRaises(InvalidTransition):
            file_gst_report(self.admin, self.period, status=GstReportStatus.PAID)
        file_gst_report(self.admin, self.period, status=GstReportStatus.FILED)
        with self.assertRaises(InvalidTransition):
            file_gst_report(self.admin, self.period, status=GstReportStatus.PENDING)
        file_gst_report(self.admin, self.period, status=GstReportStatus.PAID)
        with self.assertRaises(Conflict):
            file_gst_report(self.admin, self.period, gst_paid="1.00")

    def test_validation(self):
        with self.assertRaises(ValidationError):
            file_gst_report(self.admin, self.period, gst_paid="-1")
        with self.assertRaises(ValidationError):
            file_gst_report(self.admin, self.period, status="LODGED")
        with self.assertRaises(NotFound):
            file_gst_report(self.admin, "Q1 1999", status=GstReportStatus.FILED)
        with self.assertRaises(PermissionDenied):
            file_gst_report(self.partner, self.period, status=GstReportStatus.FILED)


class ReportViewTests(BrokerageTestCase):
    def test_expense_and_summary_endpoints(self):
        self.client.force_login(self.admin_user)
        created = self.client.post(
            reverse("brokerage_core:expense-create"),
            {"amount": "80.00", "category": "Software"},
            content_type="application/json",
        )
        self.assertEqual(created.status_code, 201)

        listed = self.client.get(reverse("brokerage_core:listing", args=["expenses"]))
        self.assertEqual(len(listed.json()["expenses"]), 1)

        summary = self.client.get(reverse("brokerage_core:monthly-summary")).json()
        self.assertEqual(Decimal(summary["total_expense"]), Decimal("80.00"))
        self.assertEqual(Decimal(summary["net_profit"]), Decimal("-80.00"))

    def test_partners_cannot_see_the_books(self):
        self.client.force_login(self.partner_user)
        self.assertEqual(self.client.get(reverse("brokerage_core:monthly-summary")).status_code, 403)
        self.assertEqual(
            self.client.get(reverse("brokerage_core:listing", args=["expenses"])).status_code, 403
        )

    def test_gst_filing_endpoint(self):
        _, invoice = self.make_invoice()
        record_payment(self.admin, invoice_id=invoice.pk, amount="1210.00", method=PaymentMethod.MANUAL)
        self.client.force_login(self.admin_user)

        response = self.client.post(
            reverse("brokerage_core:gst-file"),
            {"period": quarter_key(timezone.localdate()), "status": "FILED", "gst_paid": "10.00"},
            content_type="application/json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "FILED")
        self.assertEqual(Decimal(response.json()["net_payable"]), Decimal("100.00"))

    def test_gst_admin_actions(self):
        _, invoice = self.make_invoice()
        record_payment(self.admin, invoice_id=invoice.pk, amount="1210.00", method=PaymentMethod.MANUAL)
        self.admin_user.is_staff = True
        self.admin_user.is_superuser = True
        self.admin_user.save()
        self.client.force_login(self.admin_user)
        report = GstReport.objects.get()
        url = reverse("admin:brokerage_core_gstreport_changelist")

        self.client.post(url, {"action": "file_gst_reports", "_selected_action": [report.pk]})
        self.client.post(url, {"action": "pay_gst_reports", "_selected_action": [report.pk]})

        report.refresh_from_db()
        self.assertEqual(report.status, GstReportStatus.PAID)
        self.assertEqual(report.gst_paid, Decimal("110.00"))
