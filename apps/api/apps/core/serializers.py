"""
Core serializers.
"""
from rest_framework import serializers


class UserProfileSerializer(serializers.Serializer):
    """Authenticated user profile with roles and linked clinical profiles."""
    id = serializers.UUIDField()
    email = serializers.EmailField()
    full_name = serializers.CharField()
    is_active = serializers.BooleanField()
    roles = serializers.ListField(child=serializers.CharField())
    patient_id = serializers.UUIDField(allow_null=True)
    doctor_id = serializers.UUIDField(allow_null=True)
