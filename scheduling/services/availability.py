"""
Doctor availability.

A doctor's bookable slots for a day are the labels of their weekday
template minus the labels of the non-cancelled appointments starting
that day.  Days are calendar days in the clinic's time zone.
"""
from __future__ import annotations

from datetime import date, datetime, time, timedelta

from django.utils import timezone

from scheduling.conf import SchedulingConfig, normalize_label
from scheduling.exceptions import DoctorNotFound
from scheduling.models import Doctor
from scheduling.services.store import AppointmentStore


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """Return the aware ``[start-of-day, start-of-next-day)`` range for ``day``."""
    tz = timezone.get_current_timezone()
    start = timezone.make_aware(datetime.combine(day, time.min), tz)
    end = timezone.make_aware(datetime.combine(day + timedelta(days=1), time.min), tz)
    return start, end


def slot_label(instant: datetime) -> str:
    return timezone.localtime(instant).strftime('%H:%M')


class AvailabilityCalculator:

    def __init__(self, store: AppointmentStore, config: SchedulingConfig):
        self.store = store
        self.config = config

    def template_for(self, doctor: Doctor) -> tuple[str, ...]:
        if doctor.available_times:
            return tuple(normalize_label(label) for label in doctor.available_times)
        return self.config.slot_template

    def available_slots(self, doctor_id, day: date) -> list[str]:
        doctor = self.store.find_doctor(doctor_id)
        if doctor is None:
            raise DoctorNotFound()
        return self.slots_for(doctor, day)

    def slots_for(self, doctor: Doctor, day: date) -> list[str]:
        # inactive doctors stay visible but have nothing to book
        if not doctor.active:
            return []
        start, end = day_bounds(day)
        consumed = {
            slot_label(appt.start_at)
            for appt in self.store.find_appointments_for_doctor_in_range(doctor.pk, start, end)
        }
        return [label for label in self.template_for(doctor) if label not in consumed]
