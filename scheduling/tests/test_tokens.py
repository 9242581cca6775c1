import pytest
from rest_framework_simplejwt.tokens import AccessToken

from scheduling.exceptions import Unauthenticated, Unauthorized
from scheduling.models import Role
from scheduling.services.guard import authorize, owns, require_role
from scheduling.services.tokens import Authenticator, Identity

from .helpers import at, make_appointment

pytestmark = pytest.mark.django_db


def test_issued_access_token_carries_role(doctor):
    tokens = Authenticator().issue_tokens(doctor.user)
    identity = Authenticator().identity_from_token(tokens['access'])
    assert identity == Identity(role=Role.DOCTOR, user_id=doctor.user_id)
    assert not identity.is_admin


@pytest.mark.parametrize('token', ['', 'not-a-jwt', 'a.b.c'])
def test_garbage_tokens_are_rejected(token):
    with pytest.raises(Unauthenticated):
        Authenticator().identity_from_token(token)


def test_refresh_token_is_not_an_access_token(patient):
    tokens = Authenticator().issue_tokens(patient.user)
    with pytest.raises(Unauthenticated):
        Authenticator().identity_from_token(tokens['refresh'])


def test_token_without_role_is_rejected(patient):
    token = str(AccessToken.for_user(patient.user))
    with pytest.raises(Unauthenticated):
        Authenticator().identity_from_token(token)


def test_require_role():
    with pytest.raises(Unauthenticated):
        require_role(None)
    with pytest.raises(Unauthorized):
        require_role(Identity(Role.DOCTOR, 1), (Role.PATIENT,))
    assert require_role(Identity(Role.ADMIN, 1)).is_admin


def test_ownership(doctor, patient, as_patient, as_other_patient, as_doctor, as_other_doctor, as_admin, day):
    appt = make_appointment(doctor, patient, at(day, 9, 0))
    assert owns(as_patient, appt)
    assert owns(as_doctor, appt)
    assert owns(as_admin, appt)
    assert not owns(as_other_patient, appt)
    assert not owns(as_other_doctor, appt)
    with pytest.raises(Unauthorized):
        authorize(as_other_patient, appt)
