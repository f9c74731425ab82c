import functools
import json
import logging

from django.core.exceptions import PermissionDenied, ValidationError
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from . import services
from .conf import webhook_secret
from .exceptions import (Conflict, DuplicateKey, GatewayError,
                         InsufficientBalance, NotFound)
from .services.gateway import verify_signature
from .services.principal import Principal, require_admin

logger = logging.getLogger(__name__)

# error kind -> HTTP status
ERROR_STATUS = (
    (ValidationError, "validation_error", 400),
    (PermissionDenied, "forbidden", 403),
    (NotFound, "not_found", 404),
    (InsufficientBalance, "insufficient_balance", 402),
    (Conflict, "conflict", 409),
    (DuplicateKey, "duplicate_key", 409),
    (GatewayError, "gateway_error", 502),
)


def _message(exc):
    if isinstance(exc, ValidationError):
        return "; ".join(exc.messages)
    return str(exc)


def api_view(view):
    """Map service errors to JSON responses; hide anything unexpected."""

    @functools.wraps(view)
    def wrapper(request, *args, **kwargs):
        try:
            status, payload = view(request, *args, **kwargs)
        except tuple(cls for cls, _, _ in ERROR_STATUS) as exc:
            for cls, kind, code in ERROR_STATUS:
                if isinstance(exc, cls):
                    return JsonResponse({"ok": False, "kind": kind, "error": _message(exc)}, status=code)
        except Exception:
            logger.exception("Unhandled error in %s", view.__name__)
            return JsonResponse(
                {"ok": False, "kind": "internal", "error": "Something went wrong."}, status=500
            )
        return JsonResponse({"ok": True, **payload}, status=status)

    return wrapper


def _body(request):
    if request.content_type == "application/json":
        try:
            return json.loads(request.body or b"{}")
        except ValueError:
            raise ValidationError("Malformed JSON body.")
    return request.POST.dict()


def _principal(request):
    return Principal.from_user(request.user)


# ---------- leads ----------
@csrf_exempt
@require_POST
@api_view
def submit_lead_view(request):
    body = _body(request)
    result = services.submit_lead(body.get("contact") or {}, body.get("brief") or {})
    return 201, {
        "outcome": result.outcome,
        "lead_id": result.lead.pk if result.lead else None,
    }


@csrf_exempt
@require_POST
@api_view
def activate_client_view(request):
    body = _body(request)
    user = services.activate_client(body.get("token"), body.get("password") or "")
    return 200, {"user_id": user.pk}


@require_POST
@api_view
def assign_partner_view(request, lead_id):
    lead = services.assign_partner(_principal(request), lead_id, _body(request).get("partner_id"))
    return 200, {"status": lead.status}


@require_POST
@api_view
def propose_cost_view(request, lead_id):
    body = _body(request)
    lead = services.partner_propose_cost(
        _principal(request),
        lead_id,
        body.get("proposed_cost"),
        body.get("timeline"),
        body.get("notes", ""),
    )
    return 200, {"status": lead.status, "partner_proposed_cost": lead.partner_proposed_cost}


@require_POST
@api_view
def send_offer_view(request, lead_id):
    body = _body(request)
    lead = services.admin_send_offer(
        _principal(request),
        lead_id,
        margin_percent=body.get("margin_percent"),
        admin_margin=body.get("admin_margin"),
        includes_gst=bool(body.get("includes_gst", False)),
    )
    return 200, {
        "status": lead.status,
        "admin_margin": lead.admin_margin,
        "offer_price": lead.offer_price,
    }


@require_POST
@api_view
def accept_offer_view(request, lead_id):
    project = services.client_accept_offer(_principal(request), lead_id)
    return 201, {"project_id": project.pk, "offer_price": project.offer_price}


@require_POST
@api_view
def reject_offer_view(request, lead_id):
    lead = services.client_reject_offer(_principal(request), lead_id)
    return 200, {"status": lead.status}


# ---------- projects & milestones ----------
@require_POST
@api_view
def complete_project_view(request, project_id):
    project = services.mark_complete(_principal(request), project_id)
    return 200, {"status": project.status}


@require_POST
@api_view
def submit_milestone_view(request, project_id):
    body = _body(request)
    milestone = services.submit_milestone(
        _principal(request),
        project_id,
        body.get("title"),
        body.get("cost"),
        body.get("duration_days", 0),
        body.get("description", ""),
    )
    return 201, {"milestone_id": milestone.pk, "order": milestone.order}


@require_POST
@api_view
def approve_milestone_view(request, milestone_id):
    body = _body(request)
    milestone, invoice = services.approve_milestone(
        _principal(request),
        milestone_id,
        body.get("client_cost"),
        body.get("includes_gst"),
    )
    return 200, {
        "status": milestone.status,
        "invoice_number": invoice.invoice_number,
        "total_amount": invoice.total_amount,
    }


@require_POST
@api_view
def reject_milestone_view(request, milestone_id):
    milestone = services.reject_milestone(_principal(request), milestone_id, _body(request).get("reason"))
    return 200, {"status": milestone.status}


@require_POST
@api_view
def milestone_status_view(request, milestone_id):
    milestone = services.update_milestone_status(
        _principal(request), milestone_id, _body(request).get("status")
    )
    return 200, {"status": milestone.status}


# ---------- payments ----------
@require_POST
@api_view
def pay_invoice_view(request, invoice_id):
    body = _body(request)
    payment = services.record_payment(
        _principal(request),
        invoice_id=invoice_id,
        amount=body.get("amount"),
        method=body.get("method"),
    )
    return 201, {"payment_id": payment.pk, "status": payment.status}


@csrf_exempt
@require_POST
@api_view
def payment_webhook_view(request):
    secret = webhook_secret()
    if secret and not verify_signature(request.body, request.headers.get("X-Gateway-Signature", ""), secret):
        raise PermissionDenied("Bad webhook signature.")
    try:
        event = json.loads(request.body or b"{}")
    except ValueError:
        raise ValidationError("Malformed JSON body.")
    payment = services.handle_gateway_event(event)
    return 200, {"payment_status": payment.status if payment else None}


# ---------- partner earnings ----------
@require_POST
@api_view
def request_withdrawal_view(request):
    body = _body(request)
    withdrawal = services.request_withdrawal(_principal(request), body.get("amount"), body.get("note", ""))
    return 201, {"withdrawal_id": withdrawal.pk, "status": withdrawal.status}


@require_POST
@api_view
def process_withdrawal_view(request, withdrawal_id):
    body = _body(request)
    withdrawal = services.process_withdrawal(
        _principal(request), withdrawal_id, body.get("status"), body.get("note")
    )
    return 200, {"status": withdrawal.status}


@require_GET
@api_view
def earnings_view(request):
    summary = services.partner_earnings(_principal(request), request.GET.get("partner_id"))
    return 200, summary


@require_GET
@api_view
def revenue_report_view(request):
    require_admin(_principal(request))
    # DjangoJSONEncoder renders Decimal and dates
    return 200, {
        "total_revenue": services.total_revenue(),
        "revenue": services.revenue_summary(),
        "gst": services.gst_summary(),
    }


# ---------- expenses & tax ----------
@require_POST
@api_view
def record_expense_view(request):
    body = _body(request)
    expense = services.record_expense(
        _principal(request),
        body.get("amount"),
        body.get("category"),
        body.get("description", ""),
        body.get("date"),
    )
    return 201, {"expense_id": expense.pk, "amount": expense.amount}


@require_POST
@api_view
def update_expense_view(request, expense_id):
    expense = services.update_expense(_principal(request), expense_id, **_body(request))
    return 200, {"expense_id": expense.pk, "amount": expense.amount}


@require_POST
@api_view
def delete_expense_view(request, expense_id):
    services.delete_expense(_principal(request), expense_id)
    return 200, {}


@require_GET
@api_view
def monthly_summary_view(request):
    return 200, services.monthly_summary(_principal(request), request.GET.get("month"))


@require_POST
@api_view
def file_gst_view(request):
    body = _body(request)
    report = services.file_gst_report(
        _principal(request), body.get("period"), body.get("gst_paid"), body.get("status")
    )
    return 200, {"period": report.period, "status": report.status, "net_payable": report.net_payable}


# ---------- role-scoped listings ----------
LISTINGS = {
    "leads": ("id", "project_title", "status", "offer_price", "includes_gst", "created_at"),
    "projects": ("id", "title", "status", "offer_price", "partner_cost", "admin_margin", "created_at"),
    "milestones": ("id", "project_id", "order", "title", "cost", "client_cost", "status", "due_date"),
    "invoices": ("id", "invoice_number", "project_id", "milestone_id", "total_amount", "status", "due_date"),
    "payments": ("id", "invoice_id", "total_amount", "gst_amount", "method", "status", "paid_at"),
    "withdrawals": ("id", "amount", "status", "requested_at", "processed_at"),
    "expenses": ("id", "category", "description", "amount", "date"),
}


def _listing(principal, kind, params):
    if kind == "leads":
        qs = services.leads_for(principal)
        if params.get("open"):
            qs = qs.open()
    elif kind == "projects":
        qs = services.projects_for(principal)
    elif kind == "milestones":
        qs = services.milestones_for(principal, params.get("project_id"))
    elif kind == "invoices":
        qs = services.invoices_for(principal)
        if params.get("unpaid"):
            qs = qs.unpaid()
    elif kind == "payments":
        qs = services.payments_for(principal)
    elif kind == "withdrawals":
        qs = services.withdrawals_for(principal)
        if params.get("pending"):
            qs = qs.pending()
    else:
        qs = services.expenses_for(principal)
    return list(qs.values(*LISTINGS[kind]))


@require_GET
@api_view
def listing_view(request, kind):
    if kind not in LISTINGS:
        raise NotFound(f"Unknown listing {kind!r}")
    principal = _principal(request)
    return 200, {kind: _listing(principal, kind, request.GET)}
