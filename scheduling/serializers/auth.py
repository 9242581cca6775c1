from rest_framework import serializers


class LoginSerializer(serializers.Serializer):
    username = serializers.CharField()
    password = serializers.CharField(trim_whitespace=False)

    def validate_username(self, v):
        v = (v or '').strip()
        if not v:
            raise serializers.ValidationError('Username may not be blank.')
        return v

    def validate_password(self, v):
        if not v:
            raise serializers.ValidationError('Password may not be blank.')
        return v
