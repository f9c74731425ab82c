from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from brokerage_core.models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ("id", "username", "email", "role", "is_active", "is_email_verified")
    list_filter = ("role", "is_active", "is_email_verified")
    search_fields = ("username", "email", "company_name")
    fieldsets = BaseUserAdmin.fieldsets + (
        ("Agency", {"fields": ("role", "phone", "company_name", "is_email_verified")}),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ("Agency", {"fields": ("email", "role")}),
    )
