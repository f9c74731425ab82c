"""
Money arithmetic for offers, invoices and settlements.

All amounts are Decimal with two places. Every margin, GST and proration
result goes through to_money() so the components never disagree by a cent.
"""
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.core.exceptions import ValidationError

from .conf import gst_rate

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


def to_money(value) -> Decimal:
    """Coerce to Decimal and round half-up to cents."""
    if isinstance(value, float):
        # go through str so 0.1 stays 0.1
        value = str(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"Invalid money amount: {value!r}")
    if not amount.is_finite():
        raise ValidationError(f"Invalid money amount: {value!r}")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def positive_money(value, label="amount") -> Decimal:
    amount = to_money(value)
    if amount <= ZERO:
        raise ValidationError(f"{label} must be greater than zero")
    return amount


def split_gst(base, rate=None):
    """Return (gst, total) for a pre-tax base amount."""
    base = to_money(base)
    rate = gst_rate() if rate is None else Decimal(str(rate))
    gst = to_money(base * rate)
    return gst, base + gst


def invoice_amounts(amount, gst_enabled, rate=None):
    """Return (gst_amount, total_amount) for an invoice."""
    amount = to_money(amount)
    if not gst_enabled:
        return ZERO, amount
    return split_gst(amount, rate)


def offer_from_margin(partner_cost, admin_margin, gst_enabled, rate=None) -> Decimal:
    """Client price for a partner cost plus an absolute margin."""
    base = to_money(partner_cost) + to_money(admin_margin)
    if not gst_enabled:
        return base
    _, total = split_gst(base, rate)
    return total


def compute_offer(partner_cost, margin_percent, gst_enabled, rate=None):
    """Return (admin_margin, offer_price) for a percentage margin.

    800 at 20% without GST gives (160.00, 960.00); with GST the offer is
    (cost + margin) * (1 + rate).
    """
    partner_cost = to_money(partner_cost)
    pct = Decimal(str(margin_percent))
    if pct < 0:
        raise ValidationError("Margin percent cannot be negative")
    admin_margin = to_money(partner_cost * pct / HUNDRED)
    return admin_margin, offer_from_margin(partner_cost, admin_margin, gst_enabled, rate)


def prorate_gst(invoice_gst, invoice_total, paid_total) -> Decimal:
    """GST share of a (possibly partial) payment against an invoice."""
    invoice_total = to_money(invoice_total)
    paid_total = to_money(paid_total)
    if invoice_total <= ZERO:
        return ZERO
    if paid_total >= invoice_total:
        return to_money(invoice_gst)
    return to_money(to_money(invoice_gst) * paid_total / invoice_total)


def margin_split(client_cost, partner_cost) -> Decimal:
    """Platform margin: client-facing cost minus partner-facing cost."""
    return to_money(client_cost) - to_money(partner_cost)
