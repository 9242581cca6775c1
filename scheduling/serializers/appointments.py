import bleach
from rest_framework import serializers

from scheduling.conf import SchedulingConfig
from scheduling.models import AppointmentStatus


class BookAppointmentSerializer(serializers.Serializer):
    doctorId = serializers.IntegerField(min_value=1)
    startAt = serializers.DateTimeField()
    notes = serializers.CharField(required=False, allow_blank=True, max_length=2000)
    patientId = serializers.IntegerField(min_value=1, required=False)

    def validate_notes(self, v):
        return bleach.clean((v or '').strip(), strip=True)


class RescheduleSerializer(serializers.Serializer):
    startAt = serializers.DateTimeField()


class CancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, max_length=255)


class CloseAppointmentSerializer(serializers.Serializer):
    """Body of complete / no-show; admins may skip the has-started check."""
    force = serializers.BooleanField(required=False, default=False)


class AvailabilityQuerySerializer(serializers.Serializer):
    date = serializers.DateField()


class AppointmentListQuerySerializer(serializers.Serializer):
    date = serializers.DateField(required=False)
    patientName = serializers.CharField(max_length=64, required=False)
    status = serializers.ChoiceField(choices=AppointmentStatus.choices, required=False)
    upcoming = serializers.BooleanField(required=False, default=False)
    doctorId = serializers.IntegerField(min_value=1, required=False)
    doctorName = serializers.CharField(max_length=64, required=False)
    when = serializers.ChoiceField(choices=['past', 'future'], required=False)
    page = serializers.IntegerField(min_value=1, required=False)
    pageSize = serializers.IntegerField(min_value=1, max_value=200, required=False)


class DashboardQuerySerializer(serializers.Serializer):
    date = serializers.DateField(required=False)
    doctorId = serializers.IntegerField(min_value=1, required=False)


class AppointmentSerializer(serializers.Serializer):
    """Read-only representation of an appointment."""
    id = serializers.IntegerField()
    doctorId = serializers.IntegerField(source='doctor_id')
    doctorName = serializers.CharField(source='doctor.name')
    patientId = serializers.IntegerField(source='patient_id')
    patientName = serializers.CharField(source='patient.name')
    startAt = serializers.DateTimeField(source='start_at')
    endAt = serializers.SerializerMethodField()
    status = serializers.CharField()
    notes = serializers.CharField()
    cancellationReason = serializers.CharField(source='cancellation_reason')
    cancelledAt = serializers.DateTimeField(source='cancelled_at', allow_null=True)
    createdAt = serializers.DateTimeField(source='created_at')

    def get_endAt(self, obj):
        # the view passes the duration its workflow enforces
        duration = self.context.get('duration') or SchedulingConfig.from_settings().appointment_duration
        return serializers.DateTimeField().to_representation(obj.ends_at(duration))
