from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.utils.module_loading import import_string

# Read brokerage settings with defaults, so the app also runs under a bare
# settings module (tests, management shells)


def gst_rate() -> Decimal:
    return Decimal(str(getattr(settings, "GST_RATE", "0.10")))


def invoice_due_days() -> int:
    return int(getattr(settings, "INVOICE_DUE_DAYS", 7))


def invoice_number_attempts() -> int:
    return int(getattr(settings, "INVOICE_NUMBER_ATTEMPTS", 5))


def activation_window() -> timedelta:
    return timedelta(hours=int(getattr(settings, "CLIENT_ACTIVATION_HOURS", 24)))


def frontend_url() -> str:
    return getattr(settings, "FRONTEND_URL", "http://localhost:3000").rstrip("/")


def webhook_secret() -> str:
    return getattr(settings, "PAYMENT_WEBHOOK_SECRET", "")


def subscription_max_attempts() -> int:
    return int(getattr(settings, "SUBSCRIPTION_MAX_ATTEMPTS", 3))


def subscription_retry_base() -> timedelta:
    return timedelta(minutes=int(getattr(settings, "SUBSCRIPTION_RETRY_BASE_MINUTES", 60)))


def gateway_class():
    path = getattr(
        settings,
        "PAYMENT_GATEWAY_CLASS",
        "brokerage_core.services.gateway.OfflineGateway",
    )
    return import_string(path)
