"""
Error taxonomy of the appointment workflow and the unified API
exception handler.

Every failure the workflow can signal is an ``APIException`` subclass
with a stable ``default_code`` and HTTP status, so the REST layer maps
errors to responses deterministically.
"""
from __future__ import annotations

import logging

from rest_framework import status
from rest_framework.exceptions import APIException, NotAuthenticated, PermissionDenied

logger = logging.getLogger(__name__)


class SchedulingError(APIException):
    """Base class for failures raised by the appointment workflow."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Scheduling request failed.'
    default_code = 'scheduling_error'

    def payload(self) -> dict:
        """Extra fields merged into the error body."""
        return {}


class Unauthenticated(SchedulingError, NotAuthenticated):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = 'Authentication credentials were not provided or are invalid.'
    default_code = 'unauthenticated'


class Unauthorized(SchedulingError, PermissionDenied):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'You are not allowed to act on this appointment.'
    default_code = 'unauthorized'


class DoctorNotFound(SchedulingError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Doctor not found or not accepting appointments.'
    default_code = 'doctor_not_found'


class PatientNotFound(SchedulingError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Patient not found.'
    default_code = 'patient_not_found'


class AppointmentNotFound(SchedulingError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Appointment not found.'
    default_code = 'appointment_not_found'


class PrescriptionNotFound(SchedulingError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Prescription not found.'
    default_code = 'prescription_not_found'


class PatientExists(SchedulingError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'A patient with this username, email or phone already exists.'
    default_code = 'patient_exists'


class PrescriptionExists(SchedulingError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'A prescription already exists for this appointment.'
    default_code = 'prescription_exists'


class LeadTimeViolation(SchedulingError):
    default_detail = 'Appointments must be booked further in advance.'
    default_code = 'lead_time_violation'


class SlotConflict(SchedulingError):
    """The doctor already has an appointment too close to the requested time.

    Carries the slots still available that day so callers can offer
    alternatives.
    """
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Doctor already has an appointment at this time.'
    default_code = 'slot_conflict'

    def __init__(self, available_slots=(), detail=None):
        super().__init__(detail)
        self.available_slots = list(available_slots)

    def payload(self) -> dict:
        return {'availableSlots': self.available_slots}


class TransitionRejected(SchedulingError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'This status change is not allowed.'
    default_code = 'transition_rejected'


class NotCancellable(TransitionRejected):
    default_detail = 'Appointment can no longer be cancelled.'
    default_code = 'not_cancellable'


class NotConfirmable(TransitionRejected):
    default_detail = 'Appointment cannot be confirmed.'
    default_code = 'not_confirmable'


class NotReschedulable(TransitionRejected):
    default_detail = 'Appointment can no longer be rescheduled.'
    default_code = 'not_reschedulable'


class StoreUnavailable(SchedulingError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = 'Appointment storage is temporarily unavailable.'
    default_code = 'store_unavailable'


# DRF's own codes, renamed to the workflow's vocabulary
_CODE_ALIASES = {
    'not_authenticated': 'unauthenticated',
    'authentication_failed': 'unauthenticated',
    'permission_denied': 'unauthorized',
}


def api_exception_handler(exc, context):
    # rest_framework.views loads the authentication classes, which import this module
    from rest_framework.response import Response
    from rest_framework.views import exception_handler as drf_exception_handler

    resp = drf_exception_handler(exc, context)
    if resp is None:
        logger.exception('unhandled error in %s', context.get('view'), exc_info=exc)
        return Response({'ok': False, 'error': {'code': 'server_error', 'message': str(exc)}}, status=500)

    if isinstance(resp.data, dict):
        detail = resp.data.get('detail') or resp.data
    else:
        detail = resp.data
    code = getattr(exc, 'default_code', None) or 'api_error'
    error = {'code': _CODE_ALIASES.get(code, code), 'message': detail}
    if isinstance(exc, SchedulingError):
        error.update(exc.payload())
    # keep status and headers (WWW-Authenticate) from the DRF response
    resp.data = {'ok': False, 'error': error}
    return resp
