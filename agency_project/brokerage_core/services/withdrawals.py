import logging

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from ..exceptions import Conflict, InsufficientBalance, NotFound
from ..models import Partner, Role, Withdrawal, WithdrawalStatus
from ..money import ZERO, positive_money
from .accounts import partner_account
from .audit_helper import log_action
from .lookup import fetch
from .notifications import get_notifier
from .principal import require_admin, require_role

logger = logging.getLogger(__name__)

PROCESS_STATUSES = (
    WithdrawalStatus.APPROVED,
    WithdrawalStatus.PAID,
    WithdrawalStatus.REJECTED,
)


def request_withdrawal(principal, amount, note="", *, notifier=None):
    """Hold `amount` from the partner's balance pending admin approval."""
    require_role(principal, Role.PARTNER)
    amount = positive_money(amount, "Withdrawal amount")
    notifier = get_notifier(notifier)

    with transaction.atomic():
        # row lock serializes concurrent requests against one balance
        account = partner_account(principal.id, lock=True)
        if amount > account.available_balance:
            raise InsufficientBalance(
                f"Requested {amount} but only {account.available_balance} is available."
            )
        withdrawal = Withdrawal.objects.create(partner=account, amount=amount, note=note or "")
        Partner.objects.filter(pk=account.pk).update(
            available_balance=F("available_balance") - amount
        )
        log_action(
            action="withdrawal.request",
            instance=withdrawal,
            actor=principal,
            changes={"amount": amount},
        )

    notifier.notify_admins(
        "withdrawal_requested",
        {"withdrawal_id": withdrawal.pk, "partner": account.user.email, "amount": amount},
    )
    return withdrawal


def process_withdrawal(principal, withdrawal_id, new_status, note=None, *, notifier=None):
    """APPROVED / PAID move forward; REJECTED gives the funds back."""
    require_admin(principal)
    if new_status not in PROCESS_STATUSES:
        raise ValidationError(f"Status must be one of {', '.join(PROCESS_STATUSES)}.")
    notifier = get_notifier(notifier)

    with transaction.atomic():
        withdrawal = fetch(Withdrawal, withdrawal_id, lock=True)
        if withdrawal.status in (WithdrawalStatus.PAID, WithdrawalStatus.REJECTED):
            raise Conflict(f"Withdrawal {withdrawal.pk} is already {withdrawal.status}.")
        account = Partner.objects.select_for_update().get(pk=withdrawal.partner_id)

        previous = withdrawal.status
        withdrawal.transition_to(new_status)
        withdrawal.processed_at = timezone.now()
        withdrawal.processed_by_id = principal.id
        if note is not None:
            withdrawal.note = note
        withdrawal.save()

        if new_status == WithdrawalStatus.REJECTED:
            Partner.objects.filter(pk=account.pk).update(
                available_balance=F("available_balance") + withdrawal.amount
            )
        log_action(
            action="withdrawal.process",
            instance=withdrawal,
            actor=principal,
            changes={"from": previous, "to": new_status},
        )

    notifier.notify(
        "withdrawal_processed",
        account.user.email,
        {"withdrawal_id": withdrawal.pk, "amount": withdrawal.amount, "status": new_status},
    )
    logger.info("Withdrawal %s %s -> %s", withdrawal.pk, previous, new_status)
    return withdrawal


def delete_withdrawal(principal, withdrawal_id):
    """Delete a withdrawal; held funds go back to the partner first."""
    require_admin(principal)
    with transaction.atomic():
        withdrawal = fetch(Withdrawal, withdrawal_id, lock=True)
        account = Partner.objects.select_for_update().get(pk=withdrawal.partner_id)
        if withdrawal.holds_funds:
            Partner.objects.filter(pk=account.pk).update(
                available_balance=F("available_balance") + withdrawal.amount
            )
        log_action(
            action="withdrawal.delete",
            instance=withdrawal,
            actor=principal,
            changes={"amount": withdrawal.amount, "restored": withdrawal.holds_funds},
        )
        withdrawal.delete()


def partner_earnings(principal, partner_user_id=None):
    """Balance summary; partners see their own, admins anyone's."""
    require_role(principal, Role.PARTNER, Role.ADMIN)
    if principal.is_partner:
        partner_user_id = principal.id
        account = partner_account(partner_user_id)
    else:
        account = Partner.objects.filter(user_id=partner_user_id).first()
        if account is None:
            raise NotFound(f"No earnings account for partner {partner_user_id}")
    pending = sum((w.amount for w in account.withdrawals.holding_funds()), ZERO)
    paid_out = sum(
        (w.amount for w in account.withdrawals.filter(status=WithdrawalStatus.PAID)), ZERO
    )
    return {
        "partner_id": partner_user_id,
        "total_earnings": account.total_earnings,
        "available_balance": account.available_balance,
        "pending_withdrawals": pending,
        "paid_out": paid_out,
    }


def withdrawals_for(principal):
    qs = Withdrawal.objects.select_related("partner__user")
    if principal.is_admin:
        return qs
    if principal.is_partner:
        return qs.filter(partner__user_id=principal.id)
    return qs.none()
