from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction

from brokerage_core.models import (BillingCycle, MaintenancePlan, Role,
                                   User)
from brokerage_core.services import submit_lead


class Command(BaseCommand):
    help = "Seeds the database with demo users, a maintenance plan and a lead."

    # Define command-line argument
    def add_arguments(self, parser):
        parser.add_argument(
            "--password",
            type=str,
            default="demo-pass-123",
            help="Password for the demo admin and partner (default: demo-pass-123)",
        )

    def _user(self, username, email, role, password, **extra):
        user, created = User.objects.get_or_create(
            username=username,
            defaults={"email": email, "role": role, "is_email_verified": True, **extra},
        )
        if created:
            user.set_password(password)
            user.save()
            self.stdout.write(f"  created {role.lower()} {email}")
        return user

    def handle(self, *args, **options):
        password = options["password"]
        self.stdout.write(self.style.NOTICE("Seeding demo data..."))

        with transaction.atomic():
            self._user("admin", "admin@agency.local", Role.ADMIN, password, is_staff=True, is_superuser=True)
            self._user("partner", "partner@agency.local", Role.PARTNER, password)
            MaintenancePlan.objects.get_or_create(
                name="Standard care",
                defaults={
                    "description": "Monthly updates, backups and uptime monitoring.",
                    "price": Decimal("149.00"),
                    "billing_cycle": BillingCycle.MONTHLY,
                    "includes_gst": True,
                },
            )

        # goes through the public lead flow, so the client gets an activation link
        result = submit_lead(
            {"name": "Demo Client", "email": "client@agency.local", "company_name": "Demo Pty Ltd"},
            {
                "project_title": "Company website",
                "description": "Five page marketing site with a contact form.",
                "project_category": "Web",
                "budget_range": "2k-5k",
                "timeline": "4 weeks",
            },
        )
        self.stdout.write(f"  lead submission: {result.outcome}")
        self.stdout.write(self.style.SUCCESS("Demo data seeded successfully!"))
