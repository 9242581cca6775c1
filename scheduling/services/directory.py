"""
Doctor directory and patient self-registration.

Patients look doctors up here to find the ``doctorId`` they book with.
A doctor counts as available in the morning (``AM``) when any label of
their slot template is before noon, and in the afternoon (``PM``) when
any label is at or after noon.
"""
from __future__ import annotations

import logging
from typing import Optional

from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.db.models import Q
from rest_framework.exceptions import ValidationError as DRFValidation

from scheduling.conf import SchedulingConfig
from scheduling.exceptions import PatientExists
from scheduling.models import Doctor, Patient, Role

logger = logging.getLogger(__name__)

User = get_user_model()

TIME_OF_DAY = ('AM', 'PM')


def _hours(doctor: Doctor, config: SchedulingConfig) -> list[int]:
    labels = doctor.available_times or config.slot_template
    return [int(str(label).split(':')[0]) for label in labels]


def offers(doctor: Doctor, time_of_day: str, config: SchedulingConfig) -> bool:
    hours = _hours(doctor, config)
    if time_of_day == 'AM':
        return any(h < 12 for h in hours)
    return any(h >= 12 for h in hours)


def search_doctors(
    *,
    name: Optional[str] = None,
    specialty: Optional[str] = None,
    time_of_day: Optional[str] = None,
    config: Optional[SchedulingConfig] = None,
) -> list[Doctor]:
    """Active doctors matching every given filter, ordered by name."""
    config = config or SchedulingConfig.from_settings()
    qs = Doctor.objects.filter(active=True)
    if name:
        qs = qs.filter(name__icontains=name)
    if specialty:
        qs = qs.filter(specialty__iexact=specialty)
    doctors = list(qs.order_by('name', 'id'))
    if time_of_day:
        doctors = [d for d in doctors if offers(d, time_of_day, config)]
    return doctors


def list_specialties() -> list[str]:
    values = Doctor.objects.filter(active=True).exclude(specialty='').values_list('specialty', flat=True)
    return sorted(set(values), key=str.lower)


def register_patient(*, username, password, name, email='', phone='', address='') -> Patient:
    """Create a patient login and profile.

    Raises :class:`PatientExists` when the username, e-mail or phone is
    already in use.
    """
    try:
        validate_password(password)
    except ValidationError as e:
        raise DRFValidation({'password': e.messages})

    if User.objects.filter(username__iexact=username).exists():
        raise PatientExists()
    taken = Q()
    if email:
        taken |= Q(email__iexact=email)
    if phone:
        taken |= Q(phone=phone)
    if taken and Patient.objects.filter(taken).exists():
        raise PatientExists()

    try:
        with transaction.atomic():
            user = User.objects.create_user(
                username=username, password=password, email=email, first_name=name, role=Role.PATIENT,
            )
            patient = Patient.objects.create(user=user, name=name, email=email, phone=phone, address=address)
    except IntegrityError:
        # lost a race on the username
        raise PatientExists()
    logger.info('patient %s registered as user %s', patient.pk, user.pk)
    return patient
