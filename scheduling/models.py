"""
Database models for the clinic backend.

These models capture the concepts the appointment workflow operates on:
users with a closed set of roles, doctors with their weekly slot
template, patients, appointments and the audit trail of every status
change an appointment goes through.
"""
from __future__ import annotations

from datetime import datetime, timedelta

from django.conf import settings
from django.contrib.auth.models import AbstractUser
from django.core.exceptions import ValidationError
from django.db import models


class Role(models.TextChoices):
    PATIENT = 'patient', 'Patient'
    DOCTOR = 'doctor', 'Doctor'
    ADMIN = 'admin', 'Administrator'


class User(AbstractUser):
    """Custom user model carrying the caller's role.

    The role is what the token issued at login carries; ownership of
    appointments is resolved through the linked :class:`Doctor` or
    :class:`Patient` profile.
    """
    role = models.CharField(max_length=10, choices=Role.choices, default=Role.PATIENT)

    def __str__(self) -> str:
        return f"{self.username} ({self.role})"


def validate_slot_labels(value) -> None:
    if not isinstance(value, list):
        raise ValidationError('slot template must be a list of "HH:MM" labels')
    for label in value:
        try:
            datetime.strptime(str(label), '%H:%M')
        except ValueError:
            raise ValidationError(f'invalid slot label: {label!r}')


class Doctor(models.Model):
    """A bookable practitioner.

    ``available_times`` is the doctor's fixed weekday template of
    half-hour slot labels.  An empty template means the clinic default
    from ``settings.SCHEDULING['SLOT_TEMPLATE']`` applies.
    """
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='doctor_profile'
    )
    name = models.CharField(max_length=100)
    specialty = models.CharField(max_length=100, blank=True)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=20, blank=True)
    available_times = models.JSONField(default=list, blank=True, validators=[validate_slot_labels])
    # inactive doctors keep their history but cannot be booked
    active = models.BooleanField(default=True, db_index=True)
    # bumped by every booking write so concurrent bookings of one doctor serialize
    booking_version = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"Dr. {self.name} ({self.specialty or 'general'})"


class Patient(models.Model):
    STATUS_ACTIVE = 'active'
    STATUS_SUSPENDED = 'suspended'
    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Active'),
        (STATUS_SUSPENDED, 'Suspended'),
    ]
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='patient_profile'
    )
    name = models.CharField(max_length=100)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=20, blank=True)
    address = models.CharField(max_length=255, blank=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_ACTIVE, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return self.name


class AppointmentStatus(models.TextChoices):
    SCHEDULED = 'scheduled', 'Scheduled'
    CONFIRMED = 'confirmed', 'Confirmed'
    COMPLETED = 'completed', 'Completed'
    CANCELLED = 'cancelled', 'Cancelled'
    NO_SHOW = 'no_show', 'No-show'


class Appointment(models.Model):
    """A booked visit of a patient with a doctor.

    Only the start instant is stored; the end is always derived from the
    configured appointment duration.  Appointments are never deleted,
    cancelling one only changes its status.
    """
    doctor = models.ForeignKey(Doctor, on_delete=models.PROTECT, related_name='appointments')
    patient = models.ForeignKey(Patient, on_delete=models.PROTECT, related_name='appointments')
    start_at = models.DateTimeField()
    status = models.CharField(
        max_length=16, choices=AppointmentStatus.choices, default=AppointmentStatus.SCHEDULED, db_index=True
    )
    notes = models.TextField(blank=True)
    cancellation_reason = models.TextField(blank=True, null=True)
    cancelled_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            # one live appointment per doctor and start bucket
            models.UniqueConstraint(
                fields=['doctor', 'start_at'],
                condition=~models.Q(status='cancelled'),
                name='uniq_active_doctor_slot',
            ),
        ]
        indexes = [
            models.Index(fields=['doctor', 'start_at'], name='appt_doctor_start_idx'),
            models.Index(fields=['patient', 'start_at'], name='appt_patient_start_idx'),
        ]

    def ends_at(self, duration: timedelta) -> datetime:
        return self.start_at + duration

    def __str__(self) -> str:
        return f"Appointment #{self.pk} d={self.doctor_id} p={self.patient_id} @ {self.start_at:%Y-%m-%d %H:%M} [{self.status}]"


class AppointmentTransition(models.Model):
    """Records a status change (or a reschedule) of an appointment."""
    appointment = models.ForeignKey(Appointment, related_name='transitions', on_delete=models.CASCADE)
    from_status = models.CharField(max_length=16, null=True, blank=True)
    to_status = models.CharField(max_length=16)
    operator = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL,
        related_name='appointment_transitions',
    )
    timestamp = models.DateTimeField(auto_now_add=True)
    reason = models.CharField(max_length=255, blank=True)

    class Meta:
        indexes = [models.Index(fields=['appointment', 'timestamp'], name='appt_transition_ts_idx')]

    def __str__(self) -> str:
        return f"{self.appointment_id}: {self.from_status} → {self.to_status}"


class Prescription(models.Model):
    """Medication a doctor prescribed during an appointment (one per appointment)."""
    STATUS_ACTIVE = 'active'
    STATUS_COMPLETED = 'completed'
    STATUS_DISCONTINUED = 'discontinued'
    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Active'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_DISCONTINUED, 'Discontinued'),
    ]
    appointment = models.OneToOneField(Appointment, on_delete=models.PROTECT, related_name='prescription')
    doctor = models.ForeignKey(Doctor, on_delete=models.PROTECT, related_name='prescriptions')
    patient = models.ForeignKey(Patient, on_delete=models.PROTECT, related_name='prescriptions')
    medication_name = models.CharField(max_length=200)
    dosage = models.CharField(max_length=100)
    instructions = models.TextField(blank=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_ACTIVE, db_index=True)
    refills_remaining = models.PositiveIntegerField(default=0)
    prescribed_on = models.DateField()
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [models.Index(fields=['patient', 'prescribed_on'], name='rx_patient_date_idx')]

    def __str__(self) -> str:
        return f"{self.medication_name} {self.dosage} for {self.patient_id}"
