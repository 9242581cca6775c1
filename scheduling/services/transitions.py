from __future__ import annotations

from scheduling.models import AppointmentStatus as S

# Allowed status changes; anything not listed is rejected.
TRANSITIONS: dict[str, frozenset[str]] = {
    S.SCHEDULED: frozenset({S.CONFIRMED, S.CANCELLED}),
    S.CONFIRMED: frozenset({S.CANCELLED, S.COMPLETED, S.NO_SHOW}),
    S.COMPLETED: frozenset(),
    S.CANCELLED: frozenset(),
    S.NO_SHOW: frozenset(),
}

# States in which the start time may still be moved.
RESCHEDULABLE = frozenset({S.SCHEDULED, S.CONFIRMED})


def can_transition(current: str, new: str) -> bool:
    """Return True if an appointment may move from ``current`` to ``new``."""
    return new in TRANSITIONS.get(current, frozenset())


def is_terminal(status: str) -> bool:
    return not TRANSITIONS.get(status)
