import logging

from celery import shared_task
from django.utils import timezone

logger = logging.getLogger(__name__)


@shared_task  # register this function as a Celery task
def send_notification(template, recipient, data):
    # import lazily: services.notifications queues this task
    from .services.notifications import deliver

    return deliver(template, recipient, data)


@shared_task
def bill_due_subscriptions():
    """Beat entry point for recurring maintenance billing."""
    from .services.subscriptions import bill_due_subscriptions as bill_due

    billed = bill_due(timezone.now())
    logger.info("Billed %s due subscriptions", billed)
    return billed


@shared_task
def mark_overdue_invoices():
    from .services.invoicing import mark_overdue

    changed = mark_overdue()
    if changed:
        logger.info("Marked %s invoices overdue", changed)
    return changed
