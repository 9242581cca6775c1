"""
Dashboard endpoint.

Per-status appointment counts for one day.  Doctors see their own
schedule, including the slots still open; admins see the whole clinic
unless they pick a doctor with ``doctorId``.
"""
from __future__ import annotations

from django.utils import timezone
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from scheduling.permissions import IsDoctorOrAdmin
from scheduling.serializers.appointments import DashboardQuerySerializer
from scheduling.services.workflow import AppointmentWorkflow


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsDoctorOrAdmin])
def day_summary(request):
    q = DashboardQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    day = q.validated_data.get('date') or timezone.localdate()
    summary = AppointmentWorkflow().day_summary(request.auth, day, doctor_id=q.validated_data.get('doctorId'))
    return Response({'ok': True, 'data': summary})
