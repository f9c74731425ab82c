"""
Outbound notifications.

Services describe a message as (template, recipient, data) and hand it to a
Notifier. The default Notifier queues a celery task once the surrounding
transaction commits, so a rollback never sends mail and a mail failure never
touches committed state.
"""
import logging

from django.conf import settings
from django.core.mail import send_mail
from django.db import transaction

from ..conf import frontend_url

logger = logging.getLogger(__name__)

# template -> (subject, body); bodies are str.format()ed with the data dict
TEMPLATES = {
    "client_activation": (
        "Set your password to track your project request",
        "Hi {name},\n\nThanks for your enquiry. Set a password to access your "
        "dashboard: {link}\nThis link expires in {hours} hours.",
    ),
    "lead_submitted": (
        "New lead: {project_title}",
        "{name} <{email}> submitted a new lead: {project_title}.",
    ),
    "lead_assigned": (
        "New lead assigned to you: {project_title}",
        "You have been assigned lead #{lead_id}. Please propose a cost and timeline.",
    ),
    "partner_offer_proposed": (
        "Partner proposal for lead #{lead_id}",
        "{partner} proposed {cost} over {timeline} for {project_title}.",
    ),
    "offer_sent": (
        "Your quote for {project_title}",
        "We can deliver {project_title} for {offer_price}{gst_note} within "
        "{timeline}. Review the offer in your dashboard: {link}",
    ),
    "offer_accepted": (
        "Offer accepted: {project_title}",
        "The client accepted the offer for lead #{lead_id}. Project #{project_id} created.",
    ),
    "offer_rejected": (
        "Offer rejected: {project_title}",
        "The client rejected the offer for lead #{lead_id}.",
    ),
    "milestone_submitted": (
        "Milestone awaiting approval: {title}",
        "Milestone '{title}' ({cost}) was submitted for project #{project_id}.",
    ),
    "milestone_approved": (
        "Milestone approved: {title}",
        "Milestone '{title}' was approved.",
    ),
    "milestone_rejected": (
        "Milestone rejected: {title}",
        "Milestone '{title}' was rejected: {reason}",
    ),
    "invoice_generated": (
        "Invoice {invoice_number}",
        "Invoice {invoice_number} for {total_amount} is due on {due_date}. "
        "Pay online: {link}",
    ),
    "payment_received": (
        "Payment received for {invoice_number}",
        "We received {total_amount}. Thank you.",
    ),
    "payment_failed": (
        "Payment failed",
        "Your payment of {total_amount} could not be processed: {reason}",
    ),
    "withdrawal_requested": (
        "Withdrawal request #{withdrawal_id}",
        "{partner} requested a withdrawal of {amount}.",
    ),
    "withdrawal_processed": (
        "Withdrawal #{withdrawal_id} {status}",
        "Your withdrawal of {amount} is now {status}.",
    ),
    "subscription_payment_failed": (
        "Maintenance payment failed",
        "We could not charge {total_amount} for {plan}. Attempt {attempt} of "
        "{max_attempts}.",
    ),
}


def render(template, data):
    subject, body = TEMPLATES[template]
    data = {"link": frontend_url(), **data}
    return subject.format(**data), body.format(**data)


def _plain(data):
    # celery payloads must be JSON serializable
    return {
        k: (v if isinstance(v, (str, int, float, bool, type(None))) else str(v))
        for k, v in (data or {}).items()
    }


def deliver(template, recipient, data):
    """Render and send one message. Failures are logged, never raised."""
    try:
        subject, body = render(template, data)
        send_mail(
            subject,
            body,
            settings.DEFAULT_FROM_EMAIL,
            [recipient],
            fail_silently=False,
        )
    except Exception:
        logger.exception("Notification %s to %s failed", template, recipient)
        return False
    logger.info("Notification %s sent to %s", template, recipient)
    return True


class Notifier:
    """Queues notifications after commit."""

    def notify(self, template, recipient, data=None):
        if not recipient:
            logger.warning("Notification %s dropped: no recipient", template)
            return
        if template not in TEMPLATES:
            raise KeyError(f"Unknown notification template {template!r}")
        payload = _plain(data)

        def _send():
            # imported lazily: tasks imports this module
            from ..tasks import send_notification

            try:
                send_notification.delay(template, recipient, payload)
            except Exception:
                logger.exception("Could not queue notification %s", template)

        transaction.on_commit(_send)

    def notify_admins(self, template, data=None):
        from ..models import User

        for email in User.objects.admins().filter(is_active=True).values_list("email", flat=True):
            self.notify(template, email, data)


def get_notifier(notifier=None):
    return notifier if notifier is not None else Notifier()
