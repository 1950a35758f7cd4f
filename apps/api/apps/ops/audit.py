"""
Audit sink for booking operations.

Services build an ``AuditEntry`` and hand it to a sink. The database sink
stores it as an ``AuditLog`` row; a storage failure is logged and counted
but never propagated to the caller.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from django.db import DatabaseError, transaction

from apps.authz.models import RoleChoices
from apps.core.observability import log_domain_event, metrics
from apps.core.observability.logging import get_sanitized_logger

from .models import AuditLog, AuditSeverityChoices, AuditStatusChoices, PerformerTypeChoices

logger = get_sanitized_logger(__name__)

# First matching role wins when a user holds several
_ROLE_TO_PERFORMER = [
    (RoleChoices.ADMIN, PerformerTypeChoices.ADMIN),
    (RoleChoices.DOCTOR, PerformerTypeChoices.DOCTOR),
    (RoleChoices.STAFF, PerformerTypeChoices.STAFF),
    (RoleChoices.PATIENT, PerformerTypeChoices.PATIENT),
]


@dataclass
class AuditEntry:
    action: str
    entity_type: str
    entity_id: str = ''
    performed_by_id: str = ''
    performed_by_type: str = PerformerTypeChoices.SYSTEM
    performed_by_name: str = ''
    details: Dict[str, Any] = field(default_factory=dict)
    changes_before: Optional[Dict[str, Any]] = None
    changes_after: Optional[Dict[str, Any]] = None
    severity: str = AuditSeverityChoices.LOW
    status: str = AuditStatusChoices.SUCCESS
    error_message: str = ''

    @classmethod
    def for_user(cls, user, **kwargs):
        """Build an entry whose performer fields are taken from ``user``."""
        if user is None or not getattr(user, 'is_authenticated', False):
            return cls(**kwargs)

        roles = user.role_names
        performer_type = PerformerTypeChoices.SYSTEM
        for role, mapped in _ROLE_TO_PERFORMER:
            if role in roles:
                performer_type = mapped
                break

        return cls(
            performed_by_id=str(user.id),
            performed_by_type=performer_type,
            performed_by_name=user.full_name,
            **kwargs
        )


class DatabaseAuditSink:
    """
    Stores audit entries in the audit_log table.

    Args:
        request: optional Django/DRF request; its client address and
            user agent are stamped onto every entry.
    """

    def __init__(self, request=None):
        self.ip_address = None
        self.user_agent = ''
        if request is not None:
            self.ip_address = request.META.get('REMOTE_ADDR') or None
            self.user_agent = request.META.get('HTTP_USER_AGENT', '')[:512]

    def append(self, entry):
        """Persist ``entry``. Returns the AuditLog row, or None on failure."""
        try:
            with transaction.atomic():
                record = AuditLog.objects.create(
                    action=entry.action,
                    performed_by_id=entry.performed_by_id,
                    performed_by_type=entry.performed_by_type,
                    performed_by_name=entry.performed_by_name,
                    entity_type=entry.entity_type,
                    entity_id=entry.entity_id,
                    details=entry.details,
                    changes_before=entry.changes_before,
                    changes_after=entry.changes_after,
                    ip_address=self.ip_address,
                    user_agent=self.user_agent,
                    severity=entry.severity,
                    status=entry.status,
                    error_message=entry.error_message,
                )
        except DatabaseError as exc:
            metrics.auditlog_write_failures_total.inc()
            logger.error(
                'Audit log write failed',
                exc_info=True,
                extra={
                    'event': 'audit_log_write_failed',
                    'action': entry.action,
                    'entity_type': entry.entity_type,
                    'entity_id': entry.entity_id,
                }
            )
            log_domain_event(
                'audit_log_write_failed',
                entity_type=entry.entity_type,
                entity_id=entry.entity_id,
                result='warning',
                action=entry.action,
                error=str(exc),
            )
            return None

        metrics.auditlog_created_total.labels(
            action=entry.action,
            severity=entry.severity,
        ).inc()
        return record


def entity_audit_trail(entity_type, entity_id, limit=50):
    """Most recent audit entries for one entity, newest first."""
    return list(
        AuditLog.objects.filter(
            entity_type=entity_type,
            entity_id=str(entity_id),
        ).order_by('-timestamp')[:limit]
    )
