import logging
import secrets

from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from ..conf import activation_window, frontend_url
from ..exceptions import Conflict, NotFound
from ..models import Partner, Role, User
from .audit_helper import log_action

logger = logging.getLogger(__name__)


def issue_activation_token(user):
    """Give the user a fresh single-use token; returns the token."""
    user.verification_token = secrets.token_urlsafe(32)
    user.verification_expires = timezone.now() + activation_window()
    user.save(update_fields=["verification_token", "verification_expires"])
    return user.verification_token


def activation_link(token):
    return f"{frontend_url()}/set-password?token={token}"


def create_pending_client(*, email, name, phone="", company_name=""):
    """Inactive client account for someone who submitted a lead."""
    first, _, last = (name or "").strip().partition(" ")
    user = User(
        username=email,
        email=email,
        first_name=first[:150],
        last_name=last[:150],
        phone=phone or "",
        company_name=company_name or "",
        role=Role.CLIENT,
        is_active=False,
        is_email_verified=False,
    )
    user.set_unusable_password()
    user.save()
    issue_activation_token(user)
    return user


def find_client_by_email(email):
    user = User.objects.filter(email__iexact=email).first()
    if user is not None and user.role != Role.CLIENT:
        raise Conflict("This email belongs to a staff or partner account.")
    return user


def activate_client(token, password):
    """Set the password and activate the account behind an activation token."""
    if not token:
        raise ValidationError("Activation token is required.")
    with transaction.atomic():
        try:
            user = User.objects.select_for_update().get(verification_token=token)
        except User.DoesNotExist:
            raise NotFound("Invalid or expired activation link.")
        if user.verification_expires is None or user.verification_expires < timezone.now():
            raise NotFound("Invalid or expired activation link.")

        validate_password(password, user)
        user.set_password(password)
        user.is_active = True
        user.is_email_verified = True
        user.verification_token = None
        user.verification_expires = None
        user.save()
        log_action(action="client.activate", instance=user, actor=user)

    logger.info("Client %s activated", user.pk)
    return user


def partner_account(user_id, *, lock=False):
    """Earnings account for a partner user, created on first use."""
    account, _ = Partner.objects.get_or_create(user_id=user_id)
    if lock:
        account = Partner.objects.select_for_update().get(pk=account.pk)
    return account
