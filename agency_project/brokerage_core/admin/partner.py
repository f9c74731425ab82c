from django.contrib import admin

from brokerage_core.models import Partner, Withdrawal

from .actions import approve_withdrawals, pay_withdrawals, reject_withdrawals
from .readonly import ReadOnlyAdmin


@admin.register(Partner)
class PartnerAdmin(ReadOnlyAdmin):
    list_display = ("id", "user", "total_earnings", "available_balance", "updated_at")
    search_fields = ("user__email",)


@admin.register(Withdrawal)
class WithdrawalAdmin(ReadOnlyAdmin):
    list_display = ("id", "partner", "amount", "status", "requested_at", "processed_at")
    list_filter = ("status",)
    actions = [approve_withdrawals, pay_withdrawals, reject_withdrawals]
