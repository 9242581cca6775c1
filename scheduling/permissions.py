"""
Role based permission classes.

The role is read from the verified token (``request.auth``).
"""
from rest_framework.permissions import BasePermission

from scheduling.models import Role


def _role(request):
    return getattr(getattr(request, 'auth', None), 'role', None)


class IsDoctorOrAdmin(BasePermission):
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return _role(request) in {Role.DOCTOR, Role.ADMIN}
