import calendar
import datetime

from django.utils import timezone

from ..conf import subscription_max_attempts, subscription_retry_base
from ..models import BillingCycle, MaintenanceSubscription, SubscriptionStatus

CYCLE_MONTHS = {
    BillingCycle.MONTHLY: 1,
    BillingCycle.QUARTERLY: 3,
    BillingCycle.YEARLY: 12,
}


def add_months(day: datetime.date, months: int) -> datetime.date:
    # clamp to the last day, so Jan 31 + 1 month is Feb 28/29
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last = calendar.monthrange(year, month)[1]
    return datetime.date(year, month, min(day.day, last))


def next_billing_date(day, cycle):
    return add_months(day, CYCLE_MONTHS[cycle])


def retry_delay(attempt: int) -> datetime.timedelta:
    """Exponential back-off: base, 2*base, 4*base, ..."""
    return subscription_retry_base() * (2 ** max(attempt - 1, 0))


def advance_subscription(subscription_id, now=None):
    """A cycle was paid: reset retries and move to the next billing date."""
    now = now or timezone.now()
    sub = MaintenanceSubscription.objects.select_for_update().select_related("plan").get(pk=subscription_id)
    sub.next_billing_date = next_billing_date(sub.next_billing_date, sub.plan.billing_cycle)
    sub.failed_attempts = 0
    sub.next_retry_at = None
    sub.last_failure_reason = ""
    sub.last_billed_at = now
    sub.save()
    return sub


def register_billing_failure(subscription_id, reason, now=None):
    """Count a failed charge; give up with PAYMENT_FAILED after the last attempt.
    Returns None when the subscription is no longer ACTIVE."""
    now = now or timezone.now()
    sub = MaintenanceSubscription.objects.select_for_update().get(pk=subscription_id)
    if sub.status != SubscriptionStatus.ACTIVE:
        # late failure for a subscription that was cancelled or parked meanwhile
        return None
    sub.failed_attempts += 1
    sub.last_failure_reason = reason or ""
    if sub.failed_attempts >= subscription_max_attempts():
        sub.status = SubscriptionStatus.PAYMENT_FAILED
        sub.next_retry_at = None
    else:
        sub.next_retry_at = now + retry_delay(sub.failed_attempts)
    sub.save()
    return sub
