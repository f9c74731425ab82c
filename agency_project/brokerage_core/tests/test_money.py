import datetime
from decimal import Decimal

import pytest
from django.core.exceptions import ValidationError

from ..money import (compute_offer, invoice_amounts, margin_split,
                     offer_from_margin, positive_money, prorate_gst,
                     split_gst, to_money)
from ..services.billing_cycle import add_months
from ..services.rollups import month_key, quarter_due_date, quarter_key


def test_to_money_rounds_half_up():
    assert to_money("1.005") == Decimal("1.01")
    assert to_money("2.675") == Decimal("2.68")
    assert to_money(0.1) == Decimal("0.10")


def test_to_money_rejects_garbage():
    with pytest.raises(ValidationError):
        to_money("abc")
    with pytest.raises(ValidationError):
        to_money("NaN")


def test_positive_money_rejects_zero_and_negative():
    with pytest.raises(ValidationError):
        positive_money("0")
    with pytest.raises(ValidationError):
        positive_money("-5")


def test_split_gst_uses_default_rate():
    assert split_gst("1100") == (Decimal("110.00"), Decimal("1210.00"))


def test_invoice_amounts_identity():
    for amount in ("0.01", "19.99", "333.33", "1100"):
        gst, total = invoice_amounts(amount, True)
        assert total == to_money(amount) + gst
        assert gst == to_money(to_money(amount) * Decimal("0.10"))
    assert invoice_amounts("500", False) == (Decimal("0.00"), Decimal("500.00"))


def test_compute_offer_without_gst():
    # 800 at 20% -> margin 160, price 960
    assert compute_offer("800", 20, False) == (Decimal("160.00"), Decimal("960.00"))


def test_compute_offer_with_gst():
    margin, price = compute_offer("800", 20, True)
    assert margin == Decimal("160.00")
    assert price == Decimal("1056.00")


def test_offer_from_absolute_margin():
    assert offer_from_margin("800", "150", False) == Decimal("950.00")


def test_prorate_gst():
    assert prorate_gst("110", "1210", "605") == Decimal("55.00")
    assert prorate_gst("110", "1210", "1210") == Decimal("110.00")
    assert prorate_gst("0", "500", "100") == Decimal("0.00")


def test_margin_split():
    assert margin_split("1100", "1000") == Decimal("100.00")


def test_period_keys():
    day = datetime.date(2025, 8, 14)
    assert month_key(day) == "2025-08"
    assert quarter_key(day) == "Q3 2025"
    assert quarter_due_date(day) == datetime.date(2025, 10, 28)
    assert quarter_due_date(datetime.date(2025, 11, 2)) == datetime.date(2026, 1, 28)


def test_add_months_clamps_to_month_end():
    assert add_months(datetime.date(2025, 1, 31), 1) == datetime.date(2025, 2, 28)
    assert add_months(datetime.date(2025, 11, 15), 3) == datetime.date(2026, 2, 15)
