from django.db import models

# Closed status sets shared by models, services and admin filters


class Role(models.TextChoices):
    ADMIN = "ADMIN", "Admin"
    CLIENT = "CLIENT", "Client"
    PARTNER = "PARTNER", "Partner"


class LeadStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    REVIEWING = "REVIEWING", "Reviewing"
    ASSIGNED_TO_PARTNER = "ASSIGNED_TO_PARTNER", "Assigned to partner"
    PARTNER_OFFER_PROPOSED = "PARTNER_OFFER_PROPOSED", "Partner offer proposed"
    OFFER_SENT_TO_CLIENT = "OFFER_SENT_TO_CLIENT", "Offer sent to client"
    ACCEPTED_AND_CONVERTED = "ACCEPTED_AND_CONVERTED", "Accepted and converted"
    OFFER_REJECTED_BY_CLIENT = "OFFER_REJECTED_BY_CLIENT", "Offer rejected by client"
    ARCHIVED = "ARCHIVED", "Archived"


class ProjectStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    ACTIVE = "ACTIVE", "Active"
    IN_PROGRESS = "IN_PROGRESS", "In progress"
    COMPLETED = "COMPLETED", "Completed"
    CANCELLED = "CANCELLED", "Cancelled"


class MilestoneStatus(models.TextChoices):
    PENDING = "PENDING", "Pending approval"
    APPROVED = "APPROVED", "Approved"
    REJECTED = "REJECTED", "Rejected"
    IN_PROGRESS = "IN_PROGRESS", "In progress"
    COMPLETED = "COMPLETED", "Completed"
    PAID = "PAID", "Paid"


class InvoiceStatus(models.TextChoices):
    DRAFT = "DRAFT", "Draft"
    SENT = "SENT", "Sent"
    PAID = "PAID", "Paid"
    OVERDUE = "OVERDUE", "Overdue"
    CANCELLED = "CANCELLED", "Cancelled"


class PaymentStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    PROCESSING = "PROCESSING", "Processing"
    COMPLETED = "COMPLETED", "Completed"
    FAILED = "FAILED", "Failed"
    REFUNDED = "REFUNDED", "Refunded"


class PaymentMethod(models.TextChoices):
    CARD = "CARD", "Card (gateway)"
    BANK_TRANSFER = "BANK_TRANSFER", "Bank transfer"
    MANUAL = "MANUAL", "Manual"


# methods an admin records after the money has already arrived
OFFLINE_METHODS = (PaymentMethod.BANK_TRANSFER, PaymentMethod.MANUAL)


class WithdrawalStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    APPROVED = "APPROVED", "Approved"
    PAID = "PAID", "Paid"
    REJECTED = "REJECTED", "Rejected"


class GstReportStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    FILED = "FILED", "Filed"
    PAID = "PAID", "Paid"


class BillingCycle(models.TextChoices):
    MONTHLY = "MONTHLY", "Monthly"
    QUARTERLY = "QUARTERLY", "Quarterly"
    YEARLY = "YEARLY", "Yearly"


class SubscriptionStatus(models.TextChoices):
    ACTIVE = "ACTIVE", "Active"
    PAUSED = "PAUSED", "Paused"
    PAYMENT_FAILED = "PAYMENT_FAILED", "Payment failed"
    CANCELLED = "CANCELLED", "Cancelled"
