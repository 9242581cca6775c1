"""
Django ORM persistence for the appointment workflow.

The workflow never touches the ORM directly; it goes through
:class:`AppointmentStore`, which also owns the write-path guarantee that
at most one live appointment exists per doctor and start instant.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterable, Optional

from django.db import DatabaseError, IntegrityError, OperationalError, transaction
from django.db.models import F

from scheduling.exceptions import StoreUnavailable
from scheduling.models import Appointment, AppointmentStatus, AppointmentTransition, Doctor, Patient

logger = logging.getLogger(__name__)


class SlotTaken(Exception):
    """A concurrent booking won the doctor's slot first."""


@contextmanager
def _db_errors(op: str):
    try:
        yield
    except DatabaseError as exc:
        logger.error('store %s failed: %s', op, exc)
        raise StoreUnavailable() from exc


class AppointmentStore:

    @contextmanager
    def transaction(self):
        """Run the enclosed read-modify-write as one database transaction."""
        try:
            with transaction.atomic():
                yield
        except IntegrityError as exc:
            raise SlotTaken(str(exc)) from exc
        except DatabaseError as exc:
            logger.error('store transaction failed: %s', exc)
            raise StoreUnavailable() from exc

    # ------------------------------------------------------------------
    # Doctors & patients
    # ------------------------------------------------------------------
    def find_doctor(self, doctor_id, *, for_update: bool = False) -> Optional[Doctor]:
        with _db_errors('find_doctor'):
            qs = Doctor.objects.all()
            if for_update:
                # serializes bookings of the same doctor
                qs = qs.select_for_update()
            return qs.filter(pk=doctor_id).first()

    def claim_doctor(self, doctor_id) -> bool:
        """Take the doctor's booking lock by bumping ``booking_version``.

        Must be the first write of a booking transaction.  Returns False
        when the doctor does not exist.  Raises :class:`SlotTaken` when
        SQLite reports the database locked by a concurrent booking.
        """
        try:
            with transaction.atomic():
                updated = Doctor.objects.filter(pk=doctor_id).update(booking_version=F('booking_version') + 1)
        except OperationalError as exc:
            if 'locked' not in str(exc).lower():
                logger.error('store claim_doctor failed: %s', exc)
                raise StoreUnavailable() from exc
            logger.info('doctor %s is being booked concurrently', doctor_id)
            raise SlotTaken(str(exc)) from exc
        except DatabaseError as exc:
            logger.error('store claim_doctor failed: %s', exc)
            raise StoreUnavailable() from exc
        return updated > 0

    def find_doctor_for_user(self, user_id) -> Optional[Doctor]:
        with _db_errors('find_doctor_for_user'):
            return Doctor.objects.filter(user_id=user_id).first()

    def find_patient(self, patient_id) -> Optional[Patient]:
        with _db_errors('find_patient'):
            return Patient.objects.filter(pk=patient_id).first()

    def find_patient_for_user(self, user_id) -> Optional[Patient]:
        with _db_errors('find_patient_for_user'):
            return Patient.objects.filter(user_id=user_id).first()

    # ------------------------------------------------------------------
    # Appointments
    # ------------------------------------------------------------------
    def find_appointment(self, appointment_id, *, for_update: bool = False) -> Optional[Appointment]:
        with _db_errors('find_appointment'):
            qs = Appointment.objects.select_related('doctor', 'patient')
            if for_update:
                qs = qs.select_for_update()
            return qs.filter(pk=appointment_id).first()

    def find_appointments_for_doctor_in_range(
        self,
        doctor_id,
        start: datetime,
        end: datetime,
        *,
        exclude_id=None,
    ) -> list[Appointment]:
        """Appointments of ``doctor_id`` starting within ``[start, end)``."""
        with _db_errors('find_appointments_for_doctor_in_range'):
            qs = Appointment.objects.filter(
                doctor_id=doctor_id, start_at__gte=start, start_at__lt=end,
            ).exclude(status=AppointmentStatus.CANCELLED)
            if exclude_id is not None:
                qs = qs.exclude(pk=exclude_id)
            return list(qs.order_by('start_at', 'id'))

    def has_appointment_in_range(self, doctor_id, start: datetime, end: datetime, *, exclude_id=None) -> bool:
        """Whether a live appointment of ``doctor_id`` starts strictly between ``start`` and ``end``."""
        with _db_errors('has_appointment_in_range'):
            qs = Appointment.objects.filter(
                doctor_id=doctor_id, start_at__gt=start, start_at__lt=end,
            ).exclude(status=AppointmentStatus.CANCELLED)
            if exclude_id is not None:
                qs = qs.exclude(pk=exclude_id)
            return qs.exists()

    def find_appointments_for_patient(
        self,
        patient_id,
        *,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        statuses: Optional[Iterable[str]] = None,
        doctor_name: Optional[str] = None,
    ) -> list[Appointment]:
        return self.search_appointments(
            patient_id=patient_id, start=start, end=end, statuses=statuses, doctor_name=doctor_name,
        )

    def search_appointments(
        self,
        *,
        doctor_id=None,
        patient_id=None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        patient_name: Optional[str] = None,
        doctor_name: Optional[str] = None,
        statuses: Optional[Iterable[str]] = None,
    ) -> list[Appointment]:
        with _db_errors('search_appointments'):
            qs = Appointment.objects.select_related('doctor', 'patient')
            if doctor_id is not None:
                qs = qs.filter(doctor_id=doctor_id)
            if patient_id is not None:
                qs = qs.filter(patient_id=patient_id)
            if start is not None:
                qs = qs.filter(start_at__gte=start)
            if end is not None:
                qs = qs.filter(start_at__lt=end)
            if patient_name:
                qs = qs.filter(patient__name__icontains=patient_name)
            if doctor_name:
                qs = qs.filter(doctor__name__icontains=doctor_name)
            if statuses:
                qs = qs.filter(status__in=list(statuses))
            return list(qs.order_by('start_at', 'id'))

    def save(self, appointment: Appointment, *, update_fields: Optional[list[str]] = None) -> Appointment:
        """Insert or update ``appointment``.

        Raises :class:`SlotTaken` when the doctor/start uniqueness
        constraint rejects the write.
        """
        if update_fields is not None and 'updated_at' not in update_fields:
            update_fields = [*update_fields, 'updated_at']
        try:
            # savepoint, so a lost race leaves the outer transaction usable
            with transaction.atomic():
                appointment.save(update_fields=update_fields)
        except IntegrityError as exc:
            logger.info('slot already taken for doctor=%s at %s', appointment.doctor_id, appointment.start_at)
            raise SlotTaken(str(exc)) from exc
        except DatabaseError as exc:
            logger.error('store save failed: %s', exc)
            raise StoreUnavailable() from exc
        return appointment

    def record_transition(
        self,
        appointment: Appointment,
        from_status: Optional[str],
        to_status: str,
        *,
        operator_id=None,
        reason: str = '',
    ) -> AppointmentTransition:
        with _db_errors('record_transition'):
            return AppointmentTransition.objects.create(
                appointment=appointment,
                from_status=from_status,
                to_status=to_status,
                operator_id=operator_id,
                reason=reason[:255],
            )
