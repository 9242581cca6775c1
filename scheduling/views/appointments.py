"""
Appointment endpoints.

Thin wrappers around :class:`~scheduling.services.workflow.AppointmentWorkflow`:
each view validates its input, calls one workflow operation with the
caller's :class:`~scheduling.services.tokens.Identity` (``request.auth``)
and renders the result.  Workflow errors are rendered by
``scheduling.exceptions.api_exception_handler``.
"""
from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from scheduling.serializers.appointments import (
    AppointmentListQuerySerializer,
    AppointmentSerializer,
    AvailabilityQuerySerializer,
    BookAppointmentSerializer,
    CancelSerializer,
    CloseAppointmentSerializer,
    RescheduleSerializer,
)
from scheduling.services.workflow import AppointmentWorkflow


def _appointment(appt, workflow: AppointmentWorkflow) -> dict:
    return AppointmentSerializer(appt, context={'duration': workflow.config.appointment_duration}).data


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def doctor_availability(request, doctor_id: int):
    q = AvailabilityQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    day = q.validated_data['date']
    slots = AppointmentWorkflow().available_slots(doctor_id, day)
    return Response({'ok': True, 'doctorId': doctor_id, 'date': day.isoformat(), 'slots': slots})


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def appointments(request):
    if request.method == 'POST':
        return _book(request)

    q = AppointmentListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    workflow = AppointmentWorkflow()
    items = workflow.list_for(
        request.auth,
        day=vd.get('date'),
        patient_name=vd.get('patientName'),
        status=vd.get('status'),
        upcoming=vd.get('upcoming', False),
        doctor_id=vd.get('doctorId'),
        doctor_name=vd.get('doctorName'),
        when=vd.get('when'),
    )
    total = len(items)
    page = vd.get('page', 1)
    page_size = vd.get('pageSize', 20)
    start = (page - 1) * page_size
    data = [_appointment(a, workflow) for a in items[start:start + page_size]]
    return Response({'ok': True, 'data': data, 'pagination': {'total': total, 'page': page, 'pageSize': page_size}})


def _book(request):
    s = BookAppointmentSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    confirmation = AppointmentWorkflow().book(
        request.auth,
        doctor_id=vd['doctorId'],
        start_at=vd['startAt'],
        notes=vd.get('notes', ''),
        patient_id=vd.get('patientId'),
    )
    return Response({'ok': True, **confirmation.as_dict()}, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def appointment_detail(request, appointment_id: int):
    workflow = AppointmentWorkflow()
    appt = workflow.get(request.auth, appointment_id)
    return Response({'ok': True, 'data': _appointment(appt, workflow)})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def appointment_cancel(request, appointment_id: int):
    s = CancelSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    workflow = AppointmentWorkflow()
    appt = workflow.cancel(request.auth, appointment_id, reason=s.validated_data.get('reason'))
    return Response({'ok': True, 'data': _appointment(appt, workflow)})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def appointment_confirm(request, appointment_id: int):
    workflow = AppointmentWorkflow()
    appt = workflow.confirm(request.auth, appointment_id)
    return Response({'ok': True, 'data': _appointment(appt, workflow)})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def appointment_reschedule(request, appointment_id: int):
    s = RescheduleSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    confirmation = AppointmentWorkflow().reschedule(request.auth, appointment_id, start_at=s.validated_data['startAt'])
    return Response({'ok': True, **confirmation.as_dict()})


def _require_started(request) -> bool:
    s = CloseAppointmentSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    # only admins may close an appointment ahead of its start
    return not (s.validated_data['force'] and request.auth.is_admin)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def appointment_complete(request, appointment_id: int):
    workflow = AppointmentWorkflow()
    appt = workflow.complete(request.auth, appointment_id, require_started=_require_started(request))
    return Response({'ok': True, 'data': _appointment(appt, workflow)})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def appointment_no_show(request, appointment_id: int):
    workflow = AppointmentWorkflow()
    appt = workflow.mark_no_show(request.auth, appointment_id, require_started=_require_started(request))
    return Response({'ok': True, 'data': _appointment(appt, workflow)})
