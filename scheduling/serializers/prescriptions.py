from rest_framework import serializers

from scheduling.models import Prescription


class PrescriptionCreateSerializer(serializers.Serializer):
    appointmentId = serializers.IntegerField(min_value=1)
    medicationName = serializers.CharField(max_length=200)
    dosage = serializers.CharField(max_length=100)
    instructions = serializers.CharField(required=False, allow_blank=True, max_length=2000)
    refillsRemaining = serializers.IntegerField(required=False, min_value=0, default=0)
    prescriptionDate = serializers.DateField(required=False)


class PrescriptionUpdateSerializer(serializers.Serializer):
    medicationName = serializers.CharField(required=False, max_length=200)
    dosage = serializers.CharField(required=False, max_length=100)
    instructions = serializers.CharField(required=False, allow_blank=True, max_length=2000)
    status = serializers.ChoiceField(choices=Prescription.STATUS_CHOICES, required=False)
    refillsRemaining = serializers.IntegerField(required=False, min_value=0)

    FIELD_MAP = {
        'medicationName': 'medication_name',
        'dosage': 'dosage',
        'instructions': 'instructions',
        'status': 'status',
        'refillsRemaining': 'refills_remaining',
    }

    def changes(self) -> dict:
        return {self.FIELD_MAP[k]: v for k, v in self.validated_data.items()}


class PrescriptionListQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Prescription.STATUS_CHOICES, required=False)
    medication = serializers.CharField(max_length=64, required=False)


class PrescriptionSerializer(serializers.Serializer):
    """Read-only representation of a prescription."""
    id = serializers.IntegerField()
    appointmentId = serializers.IntegerField(source='appointment_id')
    doctorId = serializers.IntegerField(source='doctor_id')
    doctorName = serializers.CharField(source='doctor.name')
    patientId = serializers.IntegerField(source='patient_id')
    patientName = serializers.CharField(source='patient.name')
    medicationName = serializers.CharField(source='medication_name')
    dosage = serializers.CharField()
    instructions = serializers.CharField()
    status = serializers.CharField()
    refillsRemaining = serializers.IntegerField(source='refills_remaining')
    prescriptionDate = serializers.DateField(source='prescribed_on')
