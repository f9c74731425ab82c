from django.conf import settings
from django.core.exceptions import ValidationError
from django.db.models.signals import post_save, pre_delete
from django.dispatch import receiver

from .models import Invoice, Partner, Payment

""" Settled money must be reversed by the services before rows go away. """


# pre_delete fires just before Django deletes the row
@receiver(pre_delete, sender=Payment)
def prevent_delete_settled_payment(sender, instance, **kwargs):
    if instance.settled_at is not None:
        raise ValidationError("Reverse the settlement before deleting this payment.")


@receiver(pre_delete, sender=Invoice)
def prevent_delete_invoice_with_settled_payments(sender, instance, **kwargs):
    if Payment.objects.filter(invoice=instance, settled_at__isnull=False).exists():
        raise ValidationError("Cannot delete an invoice with settled payments.")


"""Every partner user gets an earnings account."""


@receiver(post_save, sender=settings.AUTH_USER_MODEL)
def ensure_partner_account(sender, instance, created, **kwargs):
    if instance.is_partner_role:
        Partner.objects.get_or_create(user=instance)
