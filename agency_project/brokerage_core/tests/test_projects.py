from decimal import Decimal

from django.core.exceptions import PermissionDenied

from ..exceptions import Conflict, InvalidTransition
from ..models import Lead, LeadStatus, Project, ProjectStatus, Role, User
from ..services import (cancel_project, delete_project, mark_complete,
                        recompute_financials, start_project)
from ..services.principal import Principal
from ..services.projects import projects_for
from .helpers import BrokerageTestCase


class ProjectLedgerTests(BrokerageTestCase):
    def setUp(self):
        super().setUp()
        self.project = self.make_project(cost="800.00", margin_percent=20)

    def test_project_carries_the_negotiated_offer(self):
        self.assertEqual(self.project.status, ProjectStatus.ACTIVE)
        self.assertEqual(self.project.client, self.client_user)
        self.assertEqual(self.project.created_by, self.admin_user)
        self.assertEqual(self.project.lead.converted_project, self.project)

    def test_partner_starts_the_project(self):
        project = start_project(self.partner, self.project.pk)
        self.assertEqual(project.status, ProjectStatus.IN_PROGRESS)
        self.assertIsNotNone(project.started_at)

    def test_client_cannot_start_the_project(self):
        with self.assertRaises(PermissionDenied):
            start_project(self.customer, self.project.pk)

    def test_mark_complete_books_the_margin(self):
        project = mark_complete(self.admin, self.project.pk)
        self.assertEqual(project.status, ProjectStatus.COMPLETED)
        self.assertEqual(self.revenue(), Decimal("160.00"))

        with self.assertRaises(Conflict):
            mark_complete(self.admin, self.project.pk)
        self.assertEqual(self.revenue(), Decimal("160.00"))

    def test_cancelled_project_cannot_complete(self):
        cancel_project(self.admin, self.project.pk)
        with self.assertRaises(InvalidTransition):
            mark_complete(self.admin, self.project.pk)
        self.assertEqual(self.revenue(), Decimal("0.00"))

    def test_recompute_keeps_the_price_identity(self):
        project = recompute_financials(self.admin, self.project.pk, admin_margin="200", includes_gst=True)
        self.assertEqual(project.offer_price, Decimal("1100.00"))
        self.assertEqual(project.gst_amount, Decimal("100.00"))
        self.assertEqual(
            project.offer_price, project.partner_cost + project.admin_margin + project.gst_amount
        )

    def test_closed_project_money_is_frozen(self):
        mark_complete(self.admin, self.project.pk)
        with self.assertRaises(Conflict):
            recompute_financials(self.admin, self.project.pk, admin_margin="1")

    def test_delete_archives_and_detaches_the_lead(self):
        lead_id = self.project.lead_id
        delete_project(self.admin, self.project.pk)

        self.assertFalse(Project.objects.filter(pk=self.project.pk).exists())
        lead = Lead.objects.get(pk=lead_id)
        self.assertEqual(lead.status, LeadStatus.ARCHIVED)
        self.assertIsNone(lead.converted_project)

    def test_delete_refused_once_invoiced(self):
        self.make_invoice(self.project)
        with self.assertRaises(Conflict):
            delete_project(self.admin, self.project.pk)

    def test_visibility_per_role(self):
        other = User.objects.create_user("p2", "p2@agency.test", "pw", role=Role.PARTNER)
        self.assertEqual(list(projects_for(self.customer)), [self.project])
        self.assertEqual(list(projects_for(self.partner)), [self.project])
        self.assertEqual(list(projects_for(Principal(other.pk, Role.PARTNER))), [])
        self.assertEqual(projects_for(self.admin).count(), 1)
