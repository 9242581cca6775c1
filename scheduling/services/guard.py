"""
Ownership checks shared by every appointment operation.
"""
from __future__ import annotations

from typing import Iterable, Optional

from scheduling.exceptions import Unauthenticated, Unauthorized
from scheduling.models import Appointment, Role
from scheduling.services.tokens import Identity

ANY_ROLE = frozenset(Role)


def require_role(identity: Optional[Identity], roles: Iterable[Role] = ANY_ROLE) -> Identity:
    if identity is None:
        raise Unauthenticated()
    if identity.role not in frozenset(roles):
        raise Unauthorized(f'Role {identity.role} may not perform this operation.')
    return identity


def owns(identity: Identity, appointment: Appointment) -> bool:
    if identity.role == Role.ADMIN:
        return True
    if identity.role == Role.PATIENT:
        return appointment.patient.user_id == identity.user_id
    if identity.role == Role.DOCTOR:
        return appointment.doctor.user_id == identity.user_id
    return False


def authorize(identity: Optional[Identity], appointment: Appointment, roles: Iterable[Role] = ANY_ROLE) -> Identity:
    """Ensure ``identity`` may act on ``appointment``.

    Raises ``Unauthenticated`` when there is no caller and
    ``Unauthorized`` when the caller has the wrong role or is neither the
    appointment's patient nor its doctor.  Admins skip the ownership
    check.
    """
    identity = require_role(identity, roles)
    if not owns(identity, appointment):
        raise Unauthorized()
    return identity
