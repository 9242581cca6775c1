"""
Prescription endpoints.

Doctors write one prescription per appointment; patients read the ones
written for them.  Scoping and ownership live in
:class:`~scheduling.services.prescriptions.PrescriptionService`.
"""
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from scheduling.serializers.prescriptions import (
    PrescriptionCreateSerializer,
    PrescriptionListQuerySerializer,
    PrescriptionSerializer,
    PrescriptionUpdateSerializer,
)
from scheduling.services.prescriptions import PrescriptionService


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def prescriptions(request):
    if request.method == 'POST':
        s = PrescriptionCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        vd = s.validated_data
        rx = PrescriptionService().create(
            request.auth,
            vd['appointmentId'],
            medication_name=vd['medicationName'],
            dosage=vd['dosage'],
            instructions=vd.get('instructions', ''),
            refills_remaining=vd['refillsRemaining'],
            prescribed_on=vd.get('prescriptionDate'),
        )
        return Response({'ok': True, 'data': PrescriptionSerializer(rx).data}, status=status.HTTP_201_CREATED)

    q = PrescriptionListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    items = PrescriptionService().list_for(
        request.auth, status=q.validated_data.get('status'), medication=q.validated_data.get('medication'),
    )
    return Response({'ok': True, 'data': PrescriptionSerializer(items, many=True).data})


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def prescription_detail(request, prescription_id: int):
    service = PrescriptionService()
    if request.method == 'DELETE':
        service.delete(request.auth, prescription_id)
        return Response({'ok': True})

    if request.method == 'PATCH':
        s = PrescriptionUpdateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        rx = service.update(request.auth, prescription_id, **s.changes())
        return Response({'ok': True, 'data': PrescriptionSerializer(rx).data})

    rx = service.get(request.auth, prescription_id)
    return Response({'ok': True, 'data': PrescriptionSerializer(rx).data})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def appointment_prescription(request, appointment_id: int):
    rx = PrescriptionService().for_appointment(request.auth, appointment_id)
    return Response({'ok': True, 'data': PrescriptionSerializer(rx).data})
