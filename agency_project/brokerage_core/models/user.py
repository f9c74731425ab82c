from django.contrib.auth.models import AbstractUser
from django.db import models

from ..managers import AgencyUserManager
from .status import Role


class User(AbstractUser):  # Every principal: admins, clients and partners
    email = models.EmailField(unique=True)
    role = models.CharField(max_length=10, choices=Role.choices, default=Role.CLIENT)
    phone = models.CharField(max_length=32, blank=True, default="")
    company_name = models.CharField(max_length=200, blank=True, default="")

    # Clients created from a lead stay inactive until they set a password
    is_email_verified = models.BooleanField(default=False)
    verification_token = models.CharField(
        max_length=64, null=True, blank=True, unique=True
    )
    verification_expires = models.DateTimeField(null=True, blank=True)

    objects = AgencyUserManager()

    class Meta:
        indexes = [models.Index(fields=["role"], name="brokerage_c_role_user_idx")]

    def __str__(self):
        return self.email or self.username

    @property
    def is_partner_role(self):
        return self.role == Role.PARTNER
