import bleach
from rest_framework import serializers

from scheduling.services.directory import TIME_OF_DAY


class DoctorSearchQuerySerializer(serializers.Serializer):
    name = serializers.CharField(max_length=64, required=False)
    specialty = serializers.CharField(max_length=100, required=False)
    time = serializers.ChoiceField(choices=TIME_OF_DAY, required=False)


class DoctorSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    name = serializers.CharField()
    specialty = serializers.CharField()
    email = serializers.EmailField()
    phone = serializers.CharField()
    availableTimes = serializers.ListField(source='available_times', child=serializers.CharField())


class PatientRegisterSerializer(serializers.Serializer):
    username = serializers.CharField(max_length=150)
    password = serializers.CharField(trim_whitespace=False, write_only=True)
    name = serializers.CharField(max_length=100)
    email = serializers.EmailField(required=False, allow_blank=True)
    phone = serializers.CharField(required=False, allow_blank=True, max_length=20)
    address = serializers.CharField(required=False, allow_blank=True, max_length=255)

    def validate_username(self, v):
        v = (v or '').strip()
        if not v:
            raise serializers.ValidationError('Username may not be blank.')
        return v

    def validate_name(self, v):
        v = bleach.clean((v or '').strip(), strip=True)
        if len(v) < 2:
            raise serializers.ValidationError('Name must be at least 2 characters.')
        return v

    def validate_phone(self, v):
        return bleach.clean((v or '').strip(), strip=True)

    def validate_address(self, v):
        return bleach.clean((v or '').strip(), strip=True)
