from rest_framework.permissions import SAFE_METHODS
from rest_framework.permissions import BasePermission

from proserv.users.models import User


def _is_admin(user) -> bool:
    return bool(
        getattr(user, "is_staff", False)
        or getattr(user, "role", None) == User.Role.ADMIN,
    )


class _RolePermission(BasePermission):
    """Base helper to gate access by ``User.role``."""

    allowed_roles: tuple[str, ...] = ()
    allow_admin: bool = False

    def has_permission(self, request, view) -> bool:
        user = getattr(request, "user", None)
        if not (user and getattr(user, "is_authenticated", False)):
            return False
        if self.allow_admin and _is_admin(user):
            return True
        return getattr(user, "role", None) in self.allowed_roles


class IsClient(_RolePermission):
    message = "Only clients can perform this action."
    allowed_roles = (User.Role.CLIENT,)


class IsProfessional(_RolePermission):
    message = "Only professionals can perform this action."
    allowed_roles = (User.Role.PROFESSIONAL,)


class IsAdminRole(_RolePermission):
    message = "Administrator access required."
    allow_admin = True


class IsAdminOrReadOnly(BasePermission):
    def has_permission(self, request, view):
        if request.method in SAFE_METHODS:
            return True
        u = getattr(request, "user", None)
        return bool(u and getattr(u, "is_authenticated", False) and _is_admin(u))
