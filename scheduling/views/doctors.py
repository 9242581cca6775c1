"""
Doctor directory: search active doctors and list their specialties.
"""
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from scheduling.serializers.directory import DoctorSearchQuerySerializer, DoctorSerializer
from scheduling.services.directory import list_specialties, search_doctors


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def doctor_list(request):
    """Query params: ``name`` (contains), ``specialty`` (exact, any case), ``time`` (AM|PM)."""
    q = DoctorSearchQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    doctors = search_doctors(name=vd.get('name'), specialty=vd.get('specialty'), time_of_day=vd.get('time'))
    return Response({'ok': True, 'data': DoctorSerializer(doctors, many=True).data})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def doctor_specialties(request):
    return Response({'ok': True, 'data': list_specialties()})
