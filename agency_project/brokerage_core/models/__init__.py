from .auditlog import AuditLog
from .expense import Expense
from .invoice import Invoice
from .lead import Lead
from .maintenance import MaintenancePlan, MaintenanceSubscription
from .milestone import Milestone
from .partner import Partner, Withdrawal
from .payment import Payment
from .project import Project
from .rollup import GstReport, Revenue
from .status import (OFFLINE_METHODS, BillingCycle, GstReportStatus,
                     InvoiceStatus, LeadStatus, MilestoneStatus,
                     PaymentMethod, PaymentStatus, ProjectStatus, Role,
                     SubscriptionStatus, WithdrawalStatus)
from .user import User
