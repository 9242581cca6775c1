"""
Prescriptions written by a doctor for one of their appointments.

Each appointment carries at most one prescription.  The appointment's
doctor (or an admin) writes, edits and removes it; its patient may read
it.  Ownership goes through the same guard as appointments.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Callable, Optional

from django.db import IntegrityError, transaction
from django.utils import timezone

from scheduling.exceptions import AppointmentNotFound, PrescriptionExists, PrescriptionNotFound
from scheduling.models import Appointment, Prescription, Role
from scheduling.services.guard import authorize, require_role
from scheduling.services.tokens import Identity
from scheduling.services.workflow import clean_text

logger = logging.getLogger(__name__)

WRITERS = (Role.DOCTOR, Role.ADMIN)

EDITABLE = ('medication_name', 'dosage', 'instructions', 'status', 'refills_remaining')


class PrescriptionService:

    def __init__(self, today: Callable[[], date] = timezone.localdate):
        self.today = today

    def create(
        self,
        identity: Optional[Identity],
        appointment_id,
        *,
        medication_name: str,
        dosage: str,
        instructions: str = '',
        refills_remaining: int = 0,
        prescribed_on: Optional[date] = None,
    ) -> Prescription:
        appointment = Appointment.objects.select_related('doctor', 'patient').filter(pk=appointment_id).first()
        if appointment is None:
            raise AppointmentNotFound()
        identity = authorize(identity, appointment, WRITERS)
        if Prescription.objects.filter(appointment=appointment).exists():
            raise PrescriptionExists()
        try:
            with transaction.atomic():
                prescription = Prescription.objects.create(
                    appointment=appointment,
                    doctor=appointment.doctor,
                    patient=appointment.patient,
                    medication_name=clean_text(medication_name),
                    dosage=clean_text(dosage),
                    instructions=clean_text(instructions),
                    refills_remaining=refills_remaining,
                    prescribed_on=prescribed_on or self.today(),
                )
        except IntegrityError:
            raise PrescriptionExists()
        logger.info('prescription %s written for appointment %s by user %s',
                    prescription.pk, appointment.pk, identity.user_id)
        return prescription

    def get(self, identity: Optional[Identity], prescription_id) -> Prescription:
        prescription = self._find(pk=prescription_id)
        authorize(identity, prescription)
        return prescription

    def for_appointment(self, identity: Optional[Identity], appointment_id) -> Prescription:
        prescription = self._find(appointment_id=appointment_id)
        authorize(identity, prescription)
        return prescription

    def update(self, identity: Optional[Identity], prescription_id, **changes) -> Prescription:
        prescription = self._find(pk=prescription_id)
        identity = authorize(identity, prescription, WRITERS)
        fields = []
        for name in EDITABLE:
            if name not in changes:
                continue
            value = changes[name]
            if isinstance(value, str):
                value = clean_text(value)
            setattr(prescription, name, value)
            fields.append(name)
        if fields:
            prescription.save(update_fields=[*fields, 'updated_at'])
            logger.info('prescription %s updated by user %s: %s', prescription.pk, identity.user_id, fields)
        return prescription

    def delete(self, identity: Optional[Identity], prescription_id) -> None:
        prescription = self._find(pk=prescription_id)
        identity = authorize(identity, prescription, WRITERS)
        prescription.delete()
        logger.info('prescription %s deleted by user %s', prescription_id, identity.user_id)

    def list_for(self, identity: Optional[Identity], *, status: Optional[str] = None,
                 medication: Optional[str] = None) -> list[Prescription]:
        """Prescriptions visible to ``identity``, newest first."""
        identity = require_role(identity)
        qs = Prescription.objects.select_related('doctor', 'patient')
        if identity.role == Role.PATIENT:
            qs = qs.filter(patient__user_id=identity.user_id)
        elif identity.role == Role.DOCTOR:
            qs = qs.filter(doctor__user_id=identity.user_id)
        if status:
            qs = qs.filter(status=status)
        if medication:
            qs = qs.filter(medication_name__icontains=medication)
        return list(qs.order_by('-prescribed_on', '-id'))

    def _find(self, **lookup) -> Prescription:
        prescription = Prescription.objects.select_related('doctor', 'patient').filter(**lookup).first()
        if prescription is None:
            raise PrescriptionNotFound()
        return prescription
