from django.urls import path

from . import views

app_name = "brokerage_core"

urlpatterns = [
    path("leads/", views.submit_lead_view, name="lead-submit"),
    path("accounts/activate/", views.activate_client_view, name="client-activate"),
    path("leads/<int:lead_id>/assign/", views.assign_partner_view, name="lead-assign"),
    path("leads/<int:lead_id>/propose/", views.propose_cost_view, name="lead-propose"),
    path("leads/<int:lead_id>/offer/", views.send_offer_view, name="lead-offer"),
    path("leads/<int:lead_id>/accept/", views.accept_offer_view, name="lead-accept"),
    path("leads/<int:lead_id>/reject/", views.reject_offer_view, name="lead-reject"),
    path("projects/<int:project_id>/complete/", views.complete_project_view, name="project-complete"),
    path("projects/<int:project_id>/milestones/", views.submit_milestone_view, name="milestone-submit"),
    path("milestones/<int:milestone_id>/approve/", views.approve_milestone_view, name="milestone-approve"),
    path("milestones/<int:milestone_id>/reject/", views.reject_milestone_view, name="milestone-reject"),
    path("milestones/<int:milestone_id>/status/", views.milestone_status_view, name="milestone-status"),
    path("invoices/<int:invoice_id>/pay/", views.pay_invoice_view, name="invoice-pay"),
    path("webhooks/payments/", views.payment_webhook_view, name="payment-webhook"),
    path("withdrawals/", views.request_withdrawal_view, name="withdrawal-request"),
    path("withdrawals/<int:withdrawal_id>/process/", views.process_withdrawal_view, name="withdrawal-process"),
    path("partner/earnings/", views.earnings_view, name="partner-earnings"),
    path("reports/revenue/", views.revenue_report_view, name="revenue-report"),
    path("reports/summary/", views.monthly_summary_view, name="monthly-summary"),
    path("reports/gst/file/", views.file_gst_view, name="gst-file"),
    path("expenses/", views.record_expense_view, name="expense-create"),
    path("expenses/<int:expense_id>/", views.update_expense_view, name="expense-update"),
    path("expenses/<int:expense_id>/delete/", views.delete_expense_view, name="expense-delete"),
    path("me/<slug:kind>/", views.listing_view, name="listing"),
]
