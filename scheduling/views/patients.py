"""
Patient self-registration.
"""
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from scheduling.serializers.directory import PatientRegisterSerializer
from scheduling.services.directory import register_patient


@api_view(['POST'])
@permission_classes([AllowAny])
def patient_register(request):
    """Create a patient account; the caller logs in afterwards with the same credentials."""
    s = PatientRegisterSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    patient = register_patient(**s.validated_data)
    return Response({'ok': True, 'patientId': patient.pk, 'userId': patient.user_id}, status=status.HTTP_201_CREATED)
