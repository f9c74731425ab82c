from .actions import (approve_withdrawals, bill_subscriptions,
                      complete_projects, file_gst_reports, pay_gst_reports,
                      pay_withdrawals, refund_payments, reject_withdrawals,
                      review_leads)
from .invoice import InvoiceAdmin, PaymentAdmin
from .lead import LeadAdmin
from .maintenance import MaintenancePlanAdmin, MaintenanceSubscriptionAdmin
from .partner import PartnerAdmin, WithdrawalAdmin
from .project import MilestoneAdmin, ProjectAdmin
from .readonly import ReadOnlyAdmin
from .auditlog import AuditLogAdmin
from .rollup import ExpenseAdmin, GstReportAdmin, RevenueAdmin
from .user import UserAdmin
