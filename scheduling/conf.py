"""
Scheduling configuration.

The business constants of the booking workflow (lead time, conflict
buffer, appointment length and the default slot template) live in
``settings.SCHEDULING``.  :class:`SchedulingConfig` is the immutable
value the workflow services receive instead of reading settings
themselves, which keeps tests free to inject their own values.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured


def normalize_label(label: str) -> str:
    """Return ``label`` as a zero padded ``HH:MM`` string."""
    return datetime.strptime(str(label).strip(), '%H:%M').strftime('%H:%M')


@dataclass(frozen=True)
class SchedulingConfig:
    slot_template: tuple[str, ...] = field(default_factory=tuple)
    lead_time: timedelta = timedelta(hours=2)
    conflict_buffer: timedelta = timedelta(minutes=30)
    appointment_duration: timedelta = timedelta(minutes=60)
    slot_length: timedelta = timedelta(minutes=30)

    def __post_init__(self):
        object.__setattr__(self, 'slot_template', tuple(normalize_label(s) for s in self.slot_template))
        off_grid = [label for label in self.slot_template if not self.on_grid(label)]
        if off_grid:
            raise ImproperlyConfigured(
                f'slot template labels {off_grid} are not multiples of {self.slot_length} past midnight'
            )

    def on_grid(self, label: str) -> bool:
        """Whether ``label`` starts a slot of ``slot_length``."""
        hours, minutes = (int(part) for part in label.split(':'))
        return timedelta(hours=hours, minutes=minutes) % self.slot_length == timedelta(0)

    @property
    def conflict_span(self) -> timedelta:
        """Minimum distance between two starts of the same doctor."""
        return self.appointment_duration + self.conflict_buffer

    @classmethod
    def from_settings(cls) -> 'SchedulingConfig':
        conf = settings.SCHEDULING
        return cls(
            slot_template=tuple(conf['SLOT_TEMPLATE']),
            lead_time=timedelta(minutes=conf['LEAD_TIME_MINUTES']),
            conflict_buffer=timedelta(minutes=conf['CONFLICT_BUFFER_MINUTES']),
            appointment_duration=timedelta(minutes=conf['APPOINTMENT_DURATION_MINUTES']),
            slot_length=timedelta(minutes=conf['SLOT_MINUTES']),
        )
