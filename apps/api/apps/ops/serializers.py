"""
Ops serializers.
"""
from rest_framework import serializers

from .models import AuditLog


class AuditLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = AuditLog
        fields = [
            'id', 'action', 'performed_by_id', 'performed_by_type',
            'performed_by_name', 'entity_type', 'entity_id', 'details',
            'changes_before', 'changes_after', 'ip_address', 'user_agent',
            'severity', 'status', 'error_message', 'timestamp',
        ]
        read_only_fields = fields
