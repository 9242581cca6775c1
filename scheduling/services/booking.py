from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable

from django.utils import timezone

from scheduling.conf import SchedulingConfig
from scheduling.models import Appointment


def confirmation_code(doctor_id: int, day: date, appointment_id: int) -> str:
    """Human readable code shown to the patient, e.g. ``APT-18-20240115-000156``."""
    return f"APT-{doctor_id}-{day:%Y%m%d}-{int(appointment_id):06d}"


def normalize_start(start_at: datetime) -> datetime:
    """Make ``start_at`` aware and truncate it to the minute."""
    if timezone.is_naive(start_at):
        start_at = timezone.make_aware(start_at)
    return start_at.replace(second=0, microsecond=0)


def conflict_window(start_at: datetime, config: SchedulingConfig) -> tuple[datetime, datetime]:
    """Range of start instants that could conflict with ``start_at``."""
    span = config.conflict_span
    return start_at - span, start_at + span


def conflicts(existing_start: datetime, candidate_start: datetime, config: SchedulingConfig) -> bool:
    # both visits last the same; they need ``conflict_buffer`` between them
    return abs(existing_start - candidate_start) < config.conflict_span


def find_conflicts(candidate_start: datetime, appointments: Iterable[Appointment],
                   config: SchedulingConfig) -> list[Appointment]:
    return [a for a in appointments if conflicts(a.start_at, candidate_start, config)]


@dataclass(frozen=True)
class BookingConfirmation:
    appointment_id: int
    doctor_id: int
    doctor_name: str
    patient_id: int
    patient_name: str
    start_at: datetime
    end_at: datetime
    status: str
    confirmation_code: str

    @classmethod
    def for_appointment(cls, appointment: Appointment, duration: timedelta) -> 'BookingConfirmation':
        local_day = timezone.localtime(appointment.start_at).date()
        return cls(
            appointment_id=appointment.pk,
            doctor_id=appointment.doctor_id,
            doctor_name=appointment.doctor.name,
            patient_id=appointment.patient_id,
            patient_name=appointment.patient.name,
            start_at=appointment.start_at,
            end_at=appointment.ends_at(duration),
            status=appointment.status,
            confirmation_code=confirmation_code(appointment.doctor_id, local_day, appointment.pk),
        )

    def as_dict(self) -> dict:
        return {
            'appointmentId': self.appointment_id,
            'doctorId': self.doctor_id,
            'doctorName': self.doctor_name,
            'patientId': self.patient_id,
            'patientName': self.patient_name,
            'startAt': self.start_at.isoformat(),
            'endAt': self.end_at.isoformat(),
            'status': str(self.status),
            'confirmationCode': self.confirmation_code,
        }
