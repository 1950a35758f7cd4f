"""
Ops models: audit_log
"""
import uuid

from django.core.serializers.json import DjangoJSONEncoder
from django.db import models


class AuditActionChoices(models.TextChoices):
    APPOINTMENT_CREATED = 'appointment_created', 'Appointment Created'
    APPOINTMENT_UPDATED = 'appointment_updated', 'Appointment Updated'
    APPOINTMENT_CANCELLED = 'appointment_cancelled', 'Appointment Cancelled'
    APPOINTMENT_RESCHEDULED = 'appointment_rescheduled', 'Appointment Rescheduled'
    APPOINTMENT_DELETED = 'appointment_deleted', 'Appointment Deleted'
    SCHEDULE_UPDATED = 'schedule_updated', 'Schedule Updated'


class PerformerTypeChoices(models.TextChoices):
    PATIENT = 'patient', 'Patient'
    DOCTOR = 'doctor', 'Doctor'
    ADMIN = 'admin', 'Admin'
    STAFF = 'staff', 'Staff'
    SYSTEM = 'system', 'System'


class AuditSeverityChoices(models.TextChoices):
    LOW = 'low', 'Low'
    MEDIUM = 'medium', 'Medium'
    HIGH = 'high', 'High'
    CRITICAL = 'critical', 'Critical'


class AuditStatusChoices(models.TextChoices):
    SUCCESS = 'success', 'Success'
    FAILED = 'failed', 'Failed'
    WARNING = 'warning', 'Warning'


class AuditLog(models.Model):
    """
    Append-only trail of booking operations.

    Written through DatabaseAuditSink; a failed write never fails the
    operation being audited.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    action = models.CharField(max_length=40, choices=AuditActionChoices.choices)

    # Denormalised performer so entries survive user deletion
    performed_by_id = models.CharField(max_length=64, blank=True, default='')
    performed_by_type = models.CharField(
        max_length=10,
        choices=PerformerTypeChoices.choices,
        default=PerformerTypeChoices.SYSTEM
    )
    performed_by_name = models.CharField(max_length=255, blank=True, default='')

    entity_type = models.CharField(max_length=50)
    entity_id = models.CharField(max_length=64, blank=True, default='')

    details = models.JSONField(default=dict, blank=True, encoder=DjangoJSONEncoder)
    changes_before = models.JSONField(blank=True, null=True, encoder=DjangoJSONEncoder)
    changes_after = models.JSONField(blank=True, null=True, encoder=DjangoJSONEncoder)

    ip_address = models.GenericIPAddressField(blank=True, null=True)
    user_agent = models.CharField(max_length=512, blank=True, default='')

    severity = models.CharField(
        max_length=10,
        choices=AuditSeverityChoices.choices,
        default=AuditSeverityChoices.LOW
    )
    status = models.CharField(
        max_length=10,
        choices=AuditStatusChoices.choices,
        default=AuditStatusChoices.SUCCESS
    )
    error_message = models.TextField(blank=True, default='')
    timestamp = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'audit_log'
        verbose_name = 'Audit Log'
        verbose_name_plural = 'Audit Logs'
        ordering = ['-timestamp']
        indexes = [
            models.Index(fields=['entity_type', 'entity_id'], name='idx_audit_entity'),
            models.Index(fields=['performed_by_id'], name='idx_audit_performer'),
            models.Index(fields=['action'], name='idx_audit_action'),
            models.Index(fields=['timestamp'], name='idx_audit_timestamp'),
        ]

    def __str__(self):
        who = self.performed_by_name or self.performed_by_type
        return f"{self.action} on {self.entity_type}[{self.entity_id[:8]}] by {who}"
