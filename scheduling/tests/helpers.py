from datetime import datetime, time

from django.utils import timezone

from scheduling.models import Appointment, AppointmentStatus, Doctor, Patient, Role, User


def at(day, hour, minute=0):
    """Aware datetime for ``hour:minute`` on ``day`` in the clinic time zone."""
    return timezone.make_aware(datetime.combine(day, time(hour, minute)))


def make_doctor(username='dr_a', name='Dr. A', available_times=None, active=True, specialty=''):
    user = User.objects.create_user(username=username, password='P@ssw0rd1', role=Role.DOCTOR)
    return Doctor.objects.create(
        user=user, name=name, specialty=specialty, available_times=available_times or [], active=active,
    )


def make_patient(username='patient_a', name='Patient A', status=Patient.STATUS_ACTIVE):
    user = User.objects.create_user(username=username, password='P@ssw0rd1', role=Role.PATIENT)
    return Patient.objects.create(user=user, name=name, status=status)


def make_appointment(doctor, patient, start_at, status=AppointmentStatus.SCHEDULED):
    return Appointment.objects.create(doctor=doctor, patient=patient, start_at=start_at, status=status)
