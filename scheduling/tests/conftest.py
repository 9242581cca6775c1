from datetime import timedelta

import pytest
from django.utils import timezone

from scheduling.models import Role, User
from scheduling.services.tokens import Identity
from scheduling.services.workflow import AppointmentWorkflow

from .helpers import make_doctor, make_patient


@pytest.fixture
def now():
    return timezone.now().replace(second=0, microsecond=0)


@pytest.fixture
def workflow(now):
    return AppointmentWorkflow(clock=lambda: now)


@pytest.fixture
def day():
    """A day far enough ahead that every slot is outside the lead time."""
    return timezone.localdate() + timedelta(days=7)


@pytest.fixture
def doctor(db):
    return make_doctor(available_times=['09:00', '09:30', '10:00', '10:30', '11:00'])


@pytest.fixture
def other_doctor(db):
    return make_doctor(username='dr_b', name='Dr. B', available_times=['09:00', '09:30'])


@pytest.fixture
def patient(db):
    return make_patient()


@pytest.fixture
def other_patient(db):
    return make_patient(username='patient_b', name='Patient B')


@pytest.fixture
def admin_user(db):
    return User.objects.create_user(username='admin1', password='P@ssw0rd1', role=Role.ADMIN)


@pytest.fixture
def as_patient(patient):
    return Identity.for_user(patient.user)


@pytest.fixture
def as_other_patient(other_patient):
    return Identity.for_user(other_patient.user)


@pytest.fixture
def as_doctor(doctor):
    return Identity.for_user(doctor.user)


@pytest.fixture
def as_other_doctor(other_doctor):
    return Identity.for_user(other_doctor.user)


@pytest.fixture
def as_admin(admin_user):
    return Identity.for_user(admin_user)
