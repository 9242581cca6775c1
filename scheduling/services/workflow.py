"""
Appointment workflow engine.

:class:`AppointmentWorkflow` is the single entry point the API uses to
book appointments and move them through their lifecycle:

    scheduled -> confirmed | cancelled
    confirmed -> cancelled | completed | no_show

Every mutating operation runs as one transaction against the store:
the affected rows are read (and locked where the backend supports it),
validated, then written together with an
:class:`~scheduling.models.AppointmentTransition` audit record.  The
engine keeps no state between calls; every availability or conflict
decision is made against a fresh read.

Bookings and reschedules start by bumping the doctor's
``booking_version``, so concurrent writers for one doctor queue up even
on SQLite, and re-check for overlaps after their own write.
"""
from __future__ import annotations

import logging
from collections import Counter
from datetime import date, datetime
from typing import Callable, Optional

import bleach
from django.utils import timezone

from scheduling.conf import SchedulingConfig
from scheduling.exceptions import (
    AppointmentNotFound,
    DoctorNotFound,
    LeadTimeViolation,
    NotCancellable,
    NotConfirmable,
    NotReschedulable,
    PatientNotFound,
    SlotConflict,
    TransitionRejected,
)
from scheduling.models import Appointment, AppointmentStatus, Doctor, Patient, Role
from scheduling.services.availability import AvailabilityCalculator, day_bounds
from scheduling.services.booking import (
    BookingConfirmation,
    conflict_window,
    find_conflicts,
    normalize_start,
)
from scheduling.services.guard import authorize, require_role
from scheduling.services.store import AppointmentStore, SlotTaken
from scheduling.services.tokens import Identity
from scheduling.services.transitions import RESCHEDULABLE, can_transition

logger = logging.getLogger(__name__)

UPCOMING_STATUSES = (AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED)

WHEN_PAST = 'past'
WHEN_FUTURE = 'future'


def clean_text(value: Optional[str]) -> str:
    return bleach.clean((value or '').strip(), strip=True)


class AppointmentWorkflow:

    def __init__(
        self,
        store: Optional[AppointmentStore] = None,
        config: Optional[SchedulingConfig] = None,
        clock: Callable[[], datetime] = timezone.now,
    ):
        self.store = store or AppointmentStore()
        self.config = config or SchedulingConfig.from_settings()
        self.clock = clock
        self.availability = AvailabilityCalculator(self.store, self.config)

    # ------------------------------------------------------------------
    # Availability
    # ------------------------------------------------------------------
    def available_slots(self, doctor_id, day: date) -> list[str]:
        return self.availability.available_slots(doctor_id, day)

    # ------------------------------------------------------------------
    # Booking
    # ------------------------------------------------------------------
    def book(
        self,
        identity: Optional[Identity],
        *,
        doctor_id,
        start_at: datetime,
        notes: Optional[str] = None,
        patient_id=None,
    ) -> BookingConfirmation:
        """Create a scheduled appointment.

        Patients always book for themselves; ``patient_id`` is only read
        for admins booking on a patient's behalf.  Checks run in order and
        the first failure wins: doctor, patient, lead time, conflicts.
        """
        identity = require_role(identity, (Role.PATIENT, Role.ADMIN))
        start_at = normalize_start(start_at)

        try:
            with self.store.transaction():
                if not self.store.claim_doctor(doctor_id):
                    raise DoctorNotFound()
                doctor = self.store.find_doctor(doctor_id, for_update=True)
                if not doctor.active:
                    raise DoctorNotFound()
                patient = self._patient_for_booking(identity, patient_id)
                self._check_lead_time(start_at)
                self._check_conflicts(doctor, start_at)

                appointment = Appointment(
                    doctor=doctor,
                    patient=patient,
                    start_at=start_at,
                    status=AppointmentStatus.SCHEDULED,
                    notes=clean_text(notes),
                )
                self.store.save(appointment)
                self._ensure_no_overlap(appointment)
                self.store.record_transition(
                    appointment, None, AppointmentStatus.SCHEDULED,
                    operator_id=identity.user_id, reason='booked',
                )
        except SlotTaken:
            raise self._slot_conflict(doctor_id, start_at)

        logger.info(
            'appointment %s booked: doctor=%s patient=%s start=%s',
            appointment.pk, doctor.pk, patient.pk, start_at.isoformat(),
        )
        return BookingConfirmation.for_appointment(appointment, self.config.appointment_duration)

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------
    def cancel(self, identity: Optional[Identity], appointment_id, *, reason: Optional[str] = None) -> Appointment:
        with self.store.transaction():
            appointment = self._locked(appointment_id)
            identity = authorize(identity, appointment, (Role.PATIENT, Role.ADMIN))
            if not can_transition(appointment.status, AppointmentStatus.CANCELLED):
                raise NotCancellable(f'Appointment is already {appointment.status}.')
            if not self._outside_lead_time(appointment.start_at):
                raise NotCancellable(
                    f'Appointments can only be cancelled up to {self._lead_minutes()} minutes before they start.'
                )
            reason = clean_text(reason) or f'Cancelled by {identity.role}'
            self._move(
                appointment, AppointmentStatus.CANCELLED, identity, reason,
                cancellation_reason=reason, cancelled_at=self.clock(),
            )
        return appointment

    def confirm(self, identity: Optional[Identity], appointment_id) -> Appointment:
        with self.store.transaction():
            appointment = self._locked(appointment_id)
            identity = authorize(identity, appointment, (Role.DOCTOR, Role.ADMIN))
            if not can_transition(appointment.status, AppointmentStatus.CONFIRMED):
                raise NotConfirmable(f'Only scheduled appointments can be confirmed, this one is {appointment.status}.')
            self._move(appointment, AppointmentStatus.CONFIRMED, identity, 'confirmed')
        return appointment

    def complete(self, identity: Optional[Identity], appointment_id, *, require_started: bool = True) -> Appointment:
        return self._close(identity, appointment_id, AppointmentStatus.COMPLETED, require_started)

    def mark_no_show(self, identity: Optional[Identity], appointment_id, *, require_started: bool = True) -> Appointment:
        return self._close(identity, appointment_id, AppointmentStatus.NO_SHOW, require_started)

    def reschedule(self, identity: Optional[Identity], appointment_id, *, start_at: datetime) -> BookingConfirmation:
        """Move an appointment to ``start_at`` keeping its status.

        The current start must still be outside the lead time, as for a
        cancellation; the new start goes through the booking lead time
        and conflict checks, ignoring the appointment being moved.
        """
        start_at = normalize_start(start_at)
        doctor_id = None
        try:
            with self.store.transaction():
                appointment = self._locked(appointment_id)
                identity = authorize(identity, appointment, (Role.PATIENT, Role.ADMIN))
                if appointment.status not in RESCHEDULABLE:
                    raise NotReschedulable(f'Appointment is already {appointment.status}.')
                if not self._outside_lead_time(appointment.start_at):
                    raise NotReschedulable(
                        f'Appointments can only be moved up to {self._lead_minutes()} minutes before they start.'
                    )
                self._check_lead_time(start_at)
                doctor_id = appointment.doctor_id
                self.store.claim_doctor(doctor_id)
                doctor = self.store.find_doctor(doctor_id, for_update=True)
                self._check_conflicts(doctor, start_at, exclude_id=appointment.pk)

                previous = appointment.start_at
                appointment.start_at = start_at
                self.store.save(appointment, update_fields=['start_at'])
                self._ensure_no_overlap(appointment)
                self.store.record_transition(
                    appointment, appointment.status, appointment.status,
                    operator_id=identity.user_id,
                    reason=f'rescheduled from {previous.isoformat()} to {start_at.isoformat()}',
                )
        except SlotTaken:
            raise self._slot_conflict(doctor_id, start_at)

        logger.info('appointment %s rescheduled to %s', appointment.pk, start_at.isoformat())
        return BookingConfirmation.for_appointment(appointment, self.config.appointment_duration)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get(self, identity: Optional[Identity], appointment_id) -> Appointment:
        appointment = self.store.find_appointment(appointment_id)
        if appointment is None:
            raise AppointmentNotFound()
        authorize(identity, appointment)
        return appointment

    def list_for(
        self,
        identity: Optional[Identity],
        *,
        day: Optional[date] = None,
        patient_name: Optional[str] = None,
        status: Optional[str] = None,
        upcoming: bool = False,
        doctor_id=None,
        doctor_name: Optional[str] = None,
        when: Optional[str] = None,
    ) -> list[Appointment]:
        """Appointments visible to ``identity``.

        Patients see their own, doctors the ones booked with them and
        admins everything (optionally narrowed to ``doctor_id``).
        ``when`` is ``'past'`` (started before now) or ``'future'``.
        """
        identity = require_role(identity)
        filters: dict = {}
        now = self.clock()
        if day is not None:
            filters['start'], filters['end'] = day_bounds(day)
        if upcoming:
            filters['start'] = max(filters.get('start') or now, now)
            filters['statuses'] = UPCOMING_STATUSES
        if when == WHEN_PAST:
            filters['end'] = min(filters.get('end') or now, now)
        elif when == WHEN_FUTURE:
            filters['start'] = max(filters.get('start') or now, now)
        if status:
            filters['statuses'] = [status]

        if identity.role == Role.PATIENT:
            patient = self.store.find_patient_for_user(identity.user_id)
            if patient is None:
                return []
            return self.store.find_appointments_for_patient(patient.pk, doctor_name=doctor_name, **filters)

        if identity.role == Role.DOCTOR:
            doctor = self.store.find_doctor_for_user(identity.user_id)
            if doctor is None:
                return []
            filters['doctor_id'] = doctor.pk
        elif doctor_id is not None:
            filters['doctor_id'] = doctor_id
        return self.store.search_appointments(patient_name=patient_name, doctor_name=doctor_name, **filters)

    def day_summary(self, identity: Optional[Identity], day: date, *, doctor_id=None) -> dict:
        """Per-status counts of a day's appointments for the dashboard."""
        identity = require_role(identity, (Role.DOCTOR, Role.ADMIN))
        doctor = None
        if identity.role == Role.DOCTOR:
            doctor = self.store.find_doctor_for_user(identity.user_id)
            if doctor is None:
                raise DoctorNotFound()
        elif doctor_id is not None:
            doctor = self.store.find_doctor(doctor_id)
            if doctor is None:
                raise DoctorNotFound()

        start, end = day_bounds(day)
        appointments = self.store.search_appointments(
            doctor_id=doctor.pk if doctor else None, start=start, end=end,
        )
        counts = Counter(str(a.status) for a in appointments)
        summary = {
            'date': day.isoformat(),
            'total': len(appointments),
            'byStatus': {str(s): counts.get(str(s), 0) for s in AppointmentStatus},
        }
        if doctor is not None:
            summary['doctorId'] = doctor.pk
            summary['availableSlots'] = self.availability.slots_for(doctor, day)
        return summary

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _lead_minutes(self) -> int:
        return int(self.config.lead_time.total_seconds() // 60)

    def _outside_lead_time(self, start_at: datetime) -> bool:
        return start_at >= self.clock() + self.config.lead_time

    def _check_lead_time(self, start_at: datetime) -> None:
        if not self._outside_lead_time(start_at):
            raise LeadTimeViolation(
                f'Appointments must start at least {self._lead_minutes()} minutes from now.'
            )

    def _patient_for_booking(self, identity: Identity, patient_id) -> Patient:
        if identity.role == Role.PATIENT:
            # never trust a patient id coming from the request
            patient = self.store.find_patient_for_user(identity.user_id)
        elif patient_id is not None:
            patient = self.store.find_patient(patient_id)
        else:
            patient = None
        if patient is None or patient.status != Patient.STATUS_ACTIVE:
            raise PatientNotFound()
        return patient

    def _check_conflicts(self, doctor: Doctor, start_at: datetime, *, exclude_id=None) -> None:
        lo, hi = conflict_window(start_at, self.config)
        nearby = self.store.find_appointments_for_doctor_in_range(doctor.pk, lo, hi, exclude_id=exclude_id)
        if find_conflicts(start_at, nearby, self.config):
            raise self._slot_conflict(doctor.pk, start_at)

    def _ensure_no_overlap(self, appointment: Appointment) -> None:
        # re-read after the write; a hit rolls the whole transaction back
        span = self.config.conflict_span
        if self.store.has_appointment_in_range(
            appointment.doctor_id, appointment.start_at - span, appointment.start_at + span,
            exclude_id=appointment.pk,
        ):
            logger.warning('overlap for doctor %s at %s detected after write', appointment.doctor_id, appointment.start_at)
            raise SlotTaken(f'overlapping appointment for doctor {appointment.doctor_id}')

    def _slot_conflict(self, doctor_id, start_at: datetime) -> SlotConflict:
        day = timezone.localtime(start_at).date()
        return SlotConflict(self.availability.available_slots(doctor_id, day))

    def _locked(self, appointment_id) -> Appointment:
        appointment = self.store.find_appointment(appointment_id, for_update=True)
        if appointment is None:
            raise AppointmentNotFound()
        return appointment

    def _move(self, appointment: Appointment, new_status: str, identity: Identity, reason: str, **changes) -> None:
        previous = appointment.status
        appointment.status = new_status
        for name, value in changes.items():
            setattr(appointment, name, value)
        self.store.save(appointment, update_fields=['status', *changes])
        self.store.record_transition(appointment, previous, new_status, operator_id=identity.user_id, reason=reason)
        logger.info('appointment %s: %s -> %s by user %s', appointment.pk, previous, new_status, identity.user_id)

    def _close(self, identity: Optional[Identity], appointment_id, target: str, require_started: bool) -> Appointment:
        with self.store.transaction():
            appointment = self._locked(appointment_id)
            identity = authorize(identity, appointment, (Role.DOCTOR, Role.ADMIN))
            if not can_transition(appointment.status, target):
                raise TransitionRejected(f'Cannot move appointment from {appointment.status} to {target}.')
            if require_started and appointment.start_at > self.clock():
                raise TransitionRejected('Appointment has not started yet.')
            self._move(appointment, target, identity, str(target))
        return appointment
