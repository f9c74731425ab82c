import decimal

import django.contrib.auth.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

import brokerage_core.managers

MONEY = dict(max_digits=14, decimal_places=2)
ZERO = decimal.Decimal("0.00")

LEAD_STATUS = [
    ("PENDING", "Pending"),
    ("REVIEWING", "Reviewing"),
    ("ASSIGNED_TO_PARTNER", "Assigned to partner"),
    ("PARTNER_OFFER_PROPOSED", "Partner offer proposed"),
    ("OFFER_SENT_TO_CLIENT", "Offer sent to client"),
    ("ACCEPTED_AND_CONVERTED", "Accepted and converted"),
    ("OFFER_REJECTED_BY_CLIENT", "Offer rejected by client"),
    ("ARCHIVED", "Archived"),
]
PROJECT_STATUS = [
    ("PENDING", "Pending"),
    ("ACTIVE", "Active"),
    ("IN_PROGRESS", "In progress"),
    ("COMPLETED", "Completed"),
    ("CANCELLED", "Cancelled"),
]
MILESTONE_STATUS = [
    ("PENDING", "Pending approval"),
    ("APPROVED", "Approved"),
    ("REJECTED", "Rejected"),
    ("IN_PROGRESS", "In progress"),
    ("COMPLETED", "Completed"),
    ("PAID", "Paid"),
]
INVOICE_STATUS = [
    ("DRAFT", "Draft"),
    ("SENT", "Sent"),
    ("PAID", "Paid"),
    ("OVERDUE", "Overdue"),
    ("CANCELLED", "Cancelled"),
]
PAYMENT_STATUS = [
    ("PENDING", "Pending"),
    ("PROCESSING", "Processing"),
    ("COMPLETED", "Completed"),
    ("FAILED", "Failed"),
    ("REFUNDED", "Refunded"),
]
PAYMENT_METHOD = [
    ("CARD", "Card (gateway)"),
    ("BANK_TRANSFER", "Bank transfer"),
    ("MANUAL", "Manual"),
]
WITHDRAWAL_STATUS = [
    ("PENDING", "Pending"),
    ("APPROVED", "Approved"),
    ("PAID", "Paid"),
    ("REJECTED", "Rejected"),
]
GST_STATUS = [("PENDING", "Pending"), ("FILED", "Filed"), ("PAID", "Paid")]
BILLING_CYCLE = [
    ("MONTHLY", "Monthly"),
    ("QUARTERLY", "Quarterly"),
    ("YEARLY", "Yearly"),
]
SUBSCRIPTION_STATUS = [
    ("ACTIVE", "Active"),
    ("PAUSED", "Paused"),
    ("PAYMENT_FAILED", "Payment failed"),
    ("CANCELLED", "Cancelled"),
]
ROLE = [("ADMIN", "Admin"), ("CLIENT", "Client"), ("PARTNER", "Partner")]


def user_fk(related_name, null=True, on_delete=django.db.models.deletion.SET_NULL):
    return models.ForeignKey(
        null=null,
        blank=null,
        on_delete=on_delete,
        related_name=related_name,
        to=settings.AUTH_USER_MODEL,
    )


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("auth", "0012_alter_user_first_name_max_length"),
    ]

    operations = [
        migrations.CreateModel(
            name="User",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("password", models.CharField(max_length=128, verbose_name="password")),
                ("last_login", models.DateTimeField(blank=True, null=True, verbose_name="last login")),
                ("is_superuser", models.BooleanField(default=False, help_text="Designates that this user has all permissions without explicitly assigning them.", verbose_name="superuser status")),
                ("username", models.CharField(error_messages={"unique": "A user with that username already exists."}, help_text="Required. 150 characters or fewer. Letters, digits and @/./+/-/_ only.", max_length=150, unique=True, validators=[django.contrib.auth.validators.UnicodeUsernameValidator()], verbose_name="username")),
                ("first_name", models.CharField(blank=True, max_length=150, verbose_name="first name")),
                ("last_name", models.CharField(blank=True, max_length=150, verbose_name="last name")),
                ("is_staff", models.BooleanField(default=False, help_text="Designates whether the user can log into this admin site.", verbose_name="staff status")),
                ("is_active", models.BooleanField(default=True, help_text="Designates whether this user should be treated as active. Unselect this instead of deleting accounts.", verbose_name="active")),
                ("date_joined", models.DateTimeField(default=django.utils.timezone.now, verbose_name="date joined")),
                ("email", models.EmailField(max_length=254, unique=True)),
                ("role", models.CharField(choices=ROLE, default="CLIENT", max_length=10)),
                ("phone", models.CharField(blank=True, default="", max_length=32)),
                ("company_name", models.CharField(blank=True, default="", max_length=200)),
                ("is_email_verified", models.BooleanField(default=False)),
                ("verification_token", models.CharField(blank=True, max_length=64, null=True, unique=True)),
                ("verification_expires", models.DateTimeField(blank=True, null=True)),
                ("groups", models.ManyToManyField(blank=True, help_text="The groups this user belongs to. A user will get all permissions granted to each of their groups.", related_name="user_set", related_query_name="user", to="auth.group", verbose_name="groups")),
                ("user_permissions", models.ManyToManyField(blank=True, help_text="Specific permissions for this user.", related_name="user_set", related_query_name="user", to="auth.permission", verbose_name="user permissions")),
            ],
            options={
                "verbose_name": "user",
                "verbose_name_plural": "users",
                "abstract": False,
                "indexes": [models.Index(fields=["role"], name="brokerage_c_role_user_idx")],
            },
            managers=[
                ("objects", brokerage_core.managers.AgencyUserManager()),
            ],
        ),
        migrations.CreateModel(
            name="Lead",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("email", models.EmailField(max_length=254)),
                ("phone", models.CharField(blank=True, default="", max_length=32)),
                ("company_name", models.CharField(blank=True, default="", max_length=200)),
                ("project_category", models.CharField(blank=True, default="", max_length=100)),
                ("project_title", models.CharField(max_length=200)),
                ("description", models.TextField()),
                ("key_features", models.JSONField(blank=True, default=list)),
                ("budget_range", models.CharField(blank=True, default="", max_length=100)),
                ("timeline", models.CharField(blank=True, default="", max_length=100)),
                ("status", models.CharField(choices=LEAD_STATUS, default="PENDING", max_length=32)),
                ("partner_proposed_cost", models.DecimalField(blank=True, null=True, **MONEY)),
                ("partner_notes", models.TextField(blank=True, default="")),
                ("partner_offer_proposed_at", models.DateTimeField(blank=True, null=True)),
                ("admin_margin", models.DecimalField(blank=True, null=True, **MONEY)),
                ("offer_price", models.DecimalField(blank=True, null=True, **MONEY)),
                ("includes_gst", models.BooleanField(default=False)),
                ("offer_sent_at", models.DateTimeField(blank=True, null=True)),
                ("responded_at", models.DateTimeField(blank=True, null=True)),
                ("archived_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("client", user_fk("leads")),
                ("assigned_partner", user_fk("assigned_leads")),
                ("processed_by", user_fk("processed_leads")),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status"], name="brokerage_c_status_lead_idx"),
                    models.Index(fields=["email"], name="brokerage_c_email_lead_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Project",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("title", models.CharField(max_length=200)),
                ("description", models.TextField(blank=True, default="")),
                ("category", models.CharField(blank=True, default="", max_length=100)),
                ("timeline", models.CharField(blank=True, default="", max_length=100)),
                ("offer_price", models.DecimalField(**MONEY)),
                ("partner_cost", models.DecimalField(**MONEY)),
                ("admin_margin", models.DecimalField(**MONEY)),
                ("includes_gst", models.BooleanField(default=False)),
                ("gst_amount", models.DecimalField(default=ZERO, **MONEY)),
                ("status", models.CharField(choices=PROJECT_STATUS, default="ACTIVE", max_length=16)),
                ("started_at", models.DateTimeField(blank=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("client", user_fk("client_projects", null=False, on_delete=django.db.models.deletion.PROTECT)),
                ("partner", user_fk("partner_projects", on_delete=django.db.models.deletion.PROTECT)),
                ("created_by", user_fk("+")),
                ("lead", models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="project", to="brokerage_core.lead")),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["client", "status"], name="brokerage_c_client_proj_idx"),
                    models.Index(fields=["partner", "status"], name="brokerage_c_partner_proj_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Milestone",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("title", models.CharField(max_length=200)),
                ("description", models.TextField(blank=True, default="")),
                ("cost", models.DecimalField(**MONEY)),
                ("client_cost", models.DecimalField(blank=True, null=True, **MONEY)),
                ("includes_gst", models.BooleanField(default=False)),
                ("duration_days", models.PositiveIntegerField(default=0)),
                ("order", models.PositiveIntegerField(default=1)),
                ("due_date", models.DateField(blank=True, null=True)),
                ("status", models.CharField(choices=MILESTONE_STATUS, default="PENDING", max_length=16)),
                ("approved_at", models.DateTimeField(blank=True, null=True)),
                ("rejection_reason", models.TextField(blank=True, default="")),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("project", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="milestones", to="brokerage_core.project")),
                ("partner", user_fk("milestones", null=False, on_delete=django.db.models.deletion.PROTECT)),
                ("approved_by", user_fk("+")),
            ],
            options={
                "ordering": ["project", "order"],
                "indexes": [models.Index(fields=["project", "status"], name="brokerage_c_project_ms_idx")],
                "constraints": [
                    models.UniqueConstraint(fields=("project", "order"), name="uq_milestone_project_order"),
                    models.CheckConstraint(condition=models.Q(("cost__gt", 0)), name="ck_milestone_cost_positive"),
                ],
            },
        ),
        migrations.CreateModel(
            name="MaintenancePlan",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=120, unique=True)),
                ("description", models.TextField(blank=True, default="")),
                ("price", models.DecimalField(**MONEY)),
                ("billing_cycle", models.CharField(choices=BILLING_CYCLE, default="MONTHLY", max_length=10)),
                ("includes_gst", models.BooleanField(default=True)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("price__gt", 0)), name="ck_plan_price_positive"),
                ],
            },
        ),
        migrations.CreateModel(
            name="MaintenanceSubscription",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("status", models.CharField(choices=SUBSCRIPTION_STATUS, default="ACTIVE", max_length=16)),
                ("payment_method_ref", models.CharField(blank=True, default="", max_length=128)),
                ("start_date", models.DateField()),
                ("next_billing_date", models.DateField()),
                ("last_billed_at", models.DateTimeField(blank=True, null=True)),
                ("failed_attempts", models.PositiveIntegerField(default=0)),
                ("next_retry_at", models.DateTimeField(blank=True, null=True)),
                ("last_failure_reason", models.TextField(blank=True, default="")),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("client", user_fk("subscriptions", null=False, on_delete=django.db.models.deletion.PROTECT)),
                ("project", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="subscriptions", to="brokerage_core.project")),
                ("plan", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="subscriptions", to="brokerage_core.maintenanceplan")),
            ],
            options={
                "indexes": [models.Index(fields=["status", "next_billing_date"], name="brokerage_c_status_sub_idx")],
            },
        ),
        migrations.CreateModel(
            name="Invoice",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("invoice_number", models.CharField(max_length=32, unique=True)),
                ("amount", models.DecimalField(**MONEY)),
                ("gst_enabled", models.BooleanField(default=False)),
                ("gst_amount", models.DecimalField(default=ZERO, **MONEY)),
                ("total_amount", models.DecimalField(**MONEY)),
                ("status", models.CharField(choices=INVOICE_STATUS, default="SENT", max_length=10)),
                ("due_date", models.DateField()),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("client", user_fk("invoices", null=False, on_delete=django.db.models.deletion.PROTECT)),
                ("project", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="invoices", to="brokerage_core.project")),
                ("milestone", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="invoices", to="brokerage_core.milestone")),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["client", "status"], name="brokerage_c_client_inv_idx"),
                    models.Index(fields=["project"], name="brokerage_c_project_inv_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(condition=models.Q(("status", "CANCELLED"), _negated=True), fields=("milestone",), name="uq_invoice_live_per_milestone"),
                    models.CheckConstraint(condition=models.Q(("total_amount", models.F("amount") + models.F("gst_amount"))), name="ck_invoice_total_identity"),
                    models.CheckConstraint(condition=models.Q(("amount__gt", 0)), name="ck_invoice_amount_positive"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Payment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("amount", models.DecimalField(**MONEY)),
                ("gst_amount", models.DecimalField(default=ZERO, **MONEY)),
                ("total_amount", models.DecimalField(**MONEY)),
                ("method", models.CharField(choices=PAYMENT_METHOD, default="CARD", max_length=16)),
                ("status", models.CharField(choices=PAYMENT_STATUS, default="PENDING", max_length=12)),
                ("gateway_transaction_id", models.CharField(blank=True, max_length=128, null=True, unique=True)),
                ("failure_reason", models.TextField(blank=True, default="")),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("settled_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("client", user_fk("payments", null=False, on_delete=django.db.models.deletion.PROTECT)),
                ("project", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="payments", to="brokerage_core.project")),
                ("milestone", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="payments", to="brokerage_core.milestone")),
                ("invoice", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="payments", to="brokerage_core.invoice")),
                ("subscription", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="payments", to="brokerage_core.maintenancesubscription")),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["client", "status"], name="brokerage_c_client_pay_idx"),
                    models.Index(fields=["invoice", "status"], name="brokerage_c_invoice_pay_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("total_amount__gt", 0)), name="ck_payment_total_positive"),
                    models.CheckConstraint(condition=models.Q(("total_amount", models.F("amount") + models.F("gst_amount"))), name="ck_payment_total_identity"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Partner",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("total_earnings", models.DecimalField(default=ZERO, **MONEY)),
                ("available_balance", models.DecimalField(default=ZERO, **MONEY)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("user", models.OneToOneField(on_delete=django.db.models.deletion.PROTECT, related_name="partner_account", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("available_balance__gte", 0)), name="ck_partner_balance_non_negative"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Withdrawal",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("amount", models.DecimalField(**MONEY)),
                ("status", models.CharField(choices=WITHDRAWAL_STATUS, default="PENDING", max_length=10)),
                ("note", models.TextField(blank=True, default="")),
                ("requested_at", models.DateTimeField(auto_now_add=True)),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                ("partner", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="withdrawals", to="brokerage_core.partner")),
                ("processed_by", user_fk("+")),
            ],
            options={
                "ordering": ["-requested_at"],
                "indexes": [models.Index(fields=["partner", "status"], name="brokerage_c_partner_wd_idx")],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("amount__gt", 0)), name="ck_withdrawal_amount_positive"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Revenue",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("month", models.CharField(max_length=7, unique=True)),
                ("amount", models.DecimalField(decimal_places=2, default=ZERO, max_digits=16)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={"ordering": ["-month"]},
        ),
        migrations.CreateModel(
            name="GstReport",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("period", models.CharField(max_length=10, unique=True)),
                ("gst_collected", models.DecimalField(decimal_places=2, default=ZERO, max_digits=16)),
                ("gst_paid", models.DecimalField(decimal_places=2, default=ZERO, max_digits=16)),
                ("status", models.CharField(choices=GST_STATUS, default="PENDING", max_length=10)),
                ("due_date", models.DateField(blank=True, null=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={"ordering": ["-period"]},
        ),
        migrations.CreateModel(
            name="AuditLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("action", models.CharField(max_length=50)),
                ("object_type", models.CharField(max_length=100)),
                ("object_id", models.CharField(max_length=100)),
                ("changes", models.JSONField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("actor", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["object_type", "object_id"], name="brokerage_c_object_audit_idx"),
                    models.Index(fields=["created_at"], name="brokerage_c_created_audit_idx"),
                ],
            },
        ),
    ]
