from dataclasses import dataclass

from django.core.exceptions import PermissionDenied

from ..models import Role


@dataclass(frozen=True)
class Principal:
    """Who is calling: the only authorization input the services accept."""

    id: int
    role: str

    @classmethod
    def from_user(cls, user):
        if user is None or not user.is_authenticated:
            raise PermissionDenied("Authentication required.")
        # Django superusers act as agency admins
        role = Role.ADMIN if user.is_superuser else user.role
        return cls(id=user.pk, role=role)

    @property
    def is_admin(self):
        return self.role == Role.ADMIN

    @property
    def is_client(self):
        return self.role == Role.CLIENT

    @property
    def is_partner(self):
        return self.role == Role.PARTNER


# ---------- Capability gate ----------
def require_role(principal, *roles):
    if principal is None:
        raise PermissionDenied("Authentication required.")
    if principal.role not in roles:
        raise PermissionDenied(
            f"Role {principal.role} may not perform this action."
        )
    return principal


def require_admin(principal):
    return require_role(principal, Role.ADMIN)


def require_owner(principal, owner_id, *, allow_admin=False, what="record"):
    """Caller must be the owner of the record (or an admin, if allowed)."""
    if principal is None:
        raise PermissionDenied("Authentication required.")
    if allow_admin and principal.is_admin:
        return principal
    if owner_id is None or principal.id != owner_id:
        raise PermissionDenied(f"You do not own this {what}.")
    return principal
