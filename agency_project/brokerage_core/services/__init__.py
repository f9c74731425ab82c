from .accounts import activate_client
from .expenses import (delete_expense, expenses_for, monthly_summary,
                       record_expense, update_expense)
from .invoicing import (cancel_invoice, create_invoice, invoices_for,
                        mark_overdue)
from .leads import (admin_send_offer, archive_lead, assign_partner,
                    client_accept_offer, client_reject_offer, delete_lead,
                    leads_for, partner_propose_cost, start_review, submit_lead)
from .milestones import (approve_milestone, reject_milestone,
                         milestones_for, submit_milestone,
                         update_milestone_status)
from .payments import (delete_invoice, delete_payment, handle_gateway_event,
                       payments_for, record_payment, refund_payment,
                       update_payment_status)
from .principal import Principal
from .projects import (cancel_project, delete_project, mark_complete,
                       projects_for, recompute_financials, start_project)
from .rollups import (file_gst_report, gst_summary, revenue_summary,
                      total_revenue)
from .settlement import complete_payment, fail_payment
from .subscriptions import (bill_due_subscriptions, bill_subscription,
                            cancel_subscription, resume_subscription,
                            subscribe)
from .withdrawals import (delete_withdrawal, partner_earnings,
                          process_withdrawal, request_withdrawal,
                          withdrawals_for)
