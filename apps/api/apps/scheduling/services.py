"""
Booking orchestrator.

Coordinates patients, doctor calendars and appointment records, and writes
the audit trail for every booking operation. Domain errors propagate to
the caller unchanged; only the audit write is log-and-continue.
"""
import uuid
from typing import Any, Dict, Optional

from django.core.exceptions import ValidationError
from django.db import transaction

from apps.authz.models import RoleChoices
from apps.core.observability import metrics
from apps.core.observability.events import (
    log_appointment_cancelled,
    log_appointment_created,
    log_appointment_rescheduled,
    log_appointment_transition,
    log_booking_failed,
)
from apps.core.observability.logging import get_sanitized_logger
from apps.ops.audit import AuditEntry, DatabaseAuditSink
from apps.ops.models import AuditActionChoices, AuditSeverityChoices, AuditStatusChoices

from .calendar import clinic_today, to_calendar_day
from .exceptions import (
    BookingConflictError,
    BookingError,
    BookingValidationError,
    InactiveResourceError,
    NotFoundError,
)
from .models import (
    Appointment,
    AppointmentStatusChoices,
    AppointmentTypeChoices,
    CancelledByChoices,
    Doctor,
    Patient,
)

logger = get_sanitized_logger(__name__)

UPCOMING_STATUSES = [
    AppointmentStatusChoices.SCHEDULED,
    AppointmentStatusChoices.CONFIRMED,
]

HISTORY_STATUSES = [
    AppointmentStatusChoices.COMPLETED,
    AppointmentStatusChoices.CANCELLED,
    AppointmentStatusChoices.NO_SHOW,
]


def cancelled_by_for_user(user):
    """Map the acting user's roles onto the cancelled_by vocabulary."""
    roles = user.role_names if user is not None and user.is_authenticated else set()
    if RoleChoices.ADMIN in roles or RoleChoices.STAFF in roles:
        return CancelledByChoices.ADMIN
    if RoleChoices.DOCTOR in roles:
        return CancelledByChoices.DOCTOR
    return CancelledByChoices.PATIENT


class AppointmentService:
    """
    Appointment booking operations.

    Args:
        audit_sink: object with ``append(AuditEntry)``; defaults to the
            database-backed sink.
    """

    # Fields an administrator may edit directly; status goes through the
    # state machine.
    UPDATABLE_FIELDS = [
        'diagnosis',
        'prescription',
        'notes',
        'follow_up_required',
        'follow_up_date',
        'payment_id',
        'notification_sent',
        'reminder_sent',
    ]

    def __init__(self, audit_sink=None):
        self.audit_sink = audit_sink or DatabaseAuditSink()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _audit(self, performed_by, **kwargs):
        self.audit_sink.append(AuditEntry.for_user(performed_by, **kwargs))

    def _audit_failed_create(self, data, performed_by, error_message):
        self._audit(
            performed_by,
            action=AuditActionChoices.APPOINTMENT_CREATED,
            entity_type='Appointment',
            details={
                'patient_id': str(data.get('patient_id') or ''),
                'doctor_id': str(data.get('doctor_id') or ''),
                'appointment_date': str(data.get('appointment_date') or ''),
                'time_slot': data.get('time_slot'),
            },
            severity=AuditSeverityChoices.MEDIUM,
            status=AuditStatusChoices.FAILED,
            error_message=error_message,
        )

    @staticmethod
    def _uuid_filter(filters, key):
        value = filters[key]
        try:
            return uuid.UUID(str(value))
        except ValueError:
            raise BookingValidationError(
                f'Invalid {key} filter: {value!r}',
                errors={key: ['Must be a valid UUID.']}
            )

    @staticmethod
    def _get_patient(patient_id):
        try:
            return Patient.objects.get(pk=patient_id)
        except (Patient.DoesNotExist, ValidationError, ValueError, TypeError):
            raise NotFoundError('Patient not found')

    @staticmethod
    def _get_doctor(doctor_id, require_active=False):
        try:
            doctor = Doctor.objects.get(pk=doctor_id)
        except (Doctor.DoesNotExist, ValidationError, ValueError, TypeError):
            raise NotFoundError('Doctor not found')
        if require_active and not doctor.is_active:
            raise InactiveResourceError('Doctor is not currently accepting appointments')
        return doctor

    @staticmethod
    def _lock_appointment(appointment_id):
        """Fetch an appointment row locked for update. Call inside atomic()."""
        try:
            return Appointment.objects.select_for_update().get(pk=appointment_id)
        except (Appointment.DoesNotExist, ValidationError, ValueError, TypeError):
            raise NotFoundError('Appointment not found')

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    @metrics.track_duration(metrics.appointment_booking_duration_seconds)
    def create_appointment(self, data: Dict[str, Any], performed_by=None) -> Appointment:
        """
        Book an appointment.

        ``data`` keys: patient_id, doctor_id, appointment_date, time_slot,
        reason, appointment_type (optional), symptoms (optional).
        """
        try:
            patient = self._get_patient(data.get('patient_id'))
            doctor = self._get_doctor(data.get('doctor_id'), require_active=True)
            appointment = Appointment.book(
                patient=patient,
                doctor=doctor,
                appointment_date=data.get('appointment_date'),
                time_slot=data.get('time_slot'),
                reason=data.get('reason'),
                appointment_type=data.get('appointment_type') or AppointmentTypeChoices.CONSULTATION,
                symptoms=data.get('symptoms'),
            )
        except BookingError as exc:
            metrics.appointments_booked_total.labels(result='failure').inc()
            if isinstance(exc, BookingConflictError):
                metrics.appointment_booking_conflicts_total.inc()
            log_booking_failed(
                data.get('doctor_id'),
                data.get('appointment_date'),
                data.get('time_slot'),
                exc.code,
                result='conflict' if isinstance(exc, BookingConflictError) else 'failure',
            )
            self._audit_failed_create(data, performed_by, exc.message)
            raise
        except Exception as exc:
            metrics.appointments_booked_total.labels(result='failure').inc()
            logger.error(
                'Unexpected error while booking appointment',
                exc_info=True,
                extra={'event': 'appointment_booking_error', 'doctor_id': str(data.get('doctor_id') or '')}
            )
            self._audit_failed_create(data, performed_by, str(exc))
            raise

        metrics.appointments_booked_total.labels(result='success').inc()
        log_appointment_created(appointment)
        self._audit(
            performed_by,
            action=AuditActionChoices.APPOINTMENT_CREATED,
            entity_type='Appointment',
            entity_id=str(appointment.id),
            details={
                'patient_id': str(patient.id),
                'doctor_id': str(doctor.id),
                'appointment_date': appointment.appointment_date.isoformat(),
                'time_slot': appointment.time_slot,
                'appointment_type': appointment.appointment_type,
            },
            severity=AuditSeverityChoices.LOW,
        )
        return appointment

    def update_appointment(self, appointment_id, data: Dict[str, Any], performed_by=None) -> Appointment:
        """Administrative edit of clinical/follow-up/notification fields and status."""
        unknown = set(data) - set(self.UPDATABLE_FIELDS) - {'status', 'cancellation_reason'}
        if unknown:
            raise BookingValidationError(
                'These fields cannot be updated: ' + ', '.join(sorted(unknown)),
                errors={name: ['Field is read-only.'] for name in sorted(unknown)}
            )

        with transaction.atomic():
            appointment = self._lock_appointment(appointment_id)
            before = appointment.snapshot()

            changed = [name for name in self.UPDATABLE_FIELDS if name in data]
            for name in changed:
                setattr(appointment, name, data[name])
            if changed:
                appointment.save(update_fields=changed + ['updated_at'])

            new_status = data.get('status')
            if new_status and new_status != appointment.status:
                from_status = appointment.status
                appointment.transition_status(
                    new_status,
                    reason=data.get('cancellation_reason', ''),
                    cancelled_by=cancelled_by_for_user(performed_by),
                )
                metrics.appointment_transitions_total.labels(
                    from_status=from_status, to_status=new_status
                ).inc()
                log_appointment_transition(appointment, from_status, new_status)

        self._audit(
            performed_by,
            action=AuditActionChoices.APPOINTMENT_UPDATED,
            entity_type='Appointment',
            entity_id=str(appointment.id),
            changes_before=before,
            changes_after=appointment.snapshot(),
            severity=AuditSeverityChoices.LOW,
        )
        return self.get_appointment(appointment.id)

    def cancel_appointment(self, appointment_id, reason='', cancelled_by=CancelledByChoices.PATIENT,
                           performed_by=None) -> Appointment:
        """Cancel an appointment and release its slot."""
        with transaction.atomic():
            appointment = self._lock_appointment(appointment_id)
            appointment.cancel(reason, cancelled_by)

        metrics.appointment_cancellations_total.labels(cancelled_by=cancelled_by).inc()
        log_appointment_cancelled(appointment, cancelled_by)
        self._audit(
            performed_by,
            action=AuditActionChoices.APPOINTMENT_CANCELLED,
            entity_type='Appointment',
            entity_id=str(appointment.id),
            details={
                'reason': reason,
                'cancelled_by': cancelled_by,
                'appointment_date': appointment.appointment_date.isoformat(),
                'time_slot': appointment.time_slot,
            },
            severity=AuditSeverityChoices.MEDIUM,
        )
        return self.get_appointment(appointment.id)

    def reschedule_appointment(self, appointment_id, new_date, new_time_slot, performed_by=None) -> Appointment:
        """
        Move an appointment to another date/slot.

        The old record is cancelled with reason "Rescheduled" and a new
        record is created; both happen in one transaction.
        """
        with transaction.atomic():
            old = self._lock_appointment(appointment_id)
            new = old.reschedule(new_date, new_time_slot)

        metrics.appointment_cancellations_total.labels(cancelled_by=CancelledByChoices.PATIENT).inc()
        metrics.appointments_booked_total.labels(result='success').inc()
        log_appointment_rescheduled(old, new)
        self._audit(
            performed_by,
            action=AuditActionChoices.APPOINTMENT_RESCHEDULED,
            entity_type='Appointment',
            entity_id=str(new.id),
            details={
                'old_appointment_id': str(old.id),
                'new_appointment_id': str(new.id),
                'old_date': old.appointment_date.isoformat(),
                'old_time_slot': old.time_slot,
                'new_date': new.appointment_date.isoformat(),
                'new_time_slot': new.time_slot,
            },
            severity=AuditSeverityChoices.LOW,
        )
        return self.get_appointment(new.id)

    def transition_status(self, appointment_id, new_status, performed_by=None, reason='') -> Appointment:
        """Confirm, start, complete, mark no-show (or cancel) an appointment."""
        appointment = None
        try:
            with transaction.atomic():
                appointment = self._lock_appointment(appointment_id)
                from_status = appointment.status
                before = appointment.snapshot()
                appointment.transition_status(
                    new_status,
                    reason=reason,
                    cancelled_by=cancelled_by_for_user(performed_by),
                )
        except BookingError as exc:
            if appointment is not None:
                log_appointment_transition(
                    appointment, appointment.status, new_status,
                    result='blocked', error_code=exc.code,
                )
            raise

        metrics.appointment_transitions_total.labels(
            from_status=from_status, to_status=new_status
        ).inc()
        log_appointment_transition(appointment, from_status, new_status)

        action = AuditActionChoices.APPOINTMENT_UPDATED
        if new_status == AppointmentStatusChoices.CANCELLED:
            action = AuditActionChoices.APPOINTMENT_CANCELLED
            metrics.appointment_cancellations_total.labels(cancelled_by=appointment.cancelled_by).inc()
        self._audit(
            performed_by,
            action=action,
            entity_type='Appointment',
            entity_id=str(appointment.id),
            changes_before=before,
            changes_after=appointment.snapshot(),
            severity=AuditSeverityChoices.LOW,
        )
        return self.get_appointment(appointment.id)

    def delete_appointment(self, appointment_id, performed_by=None) -> None:
        """Hard delete. Frees the slot when the record was occupying it."""
        with transaction.atomic():
            appointment = self._lock_appointment(appointment_id)
            before = appointment.snapshot()
            entity_id = str(appointment.id)
            doctor = appointment.doctor
            occupies_slot = appointment.status != AppointmentStatusChoices.CANCELLED
            appointment_date, time_slot = appointment.appointment_date, appointment.time_slot

            appointment.delete()
            if occupies_slot:
                doctor.release_slot(appointment_date, time_slot)

        logger.info(
            'Appointment deleted',
            extra={'event': 'appointment_deleted', 'appointment_id': entity_id}
        )
        self._audit(
            performed_by,
            action=AuditActionChoices.APPOINTMENT_DELETED,
            entity_type='Appointment',
            entity_id=entity_id,
            changes_before=before,
            severity=AuditSeverityChoices.HIGH,
        )

    def add_doctor_schedule(self, doctor_id, date, time_labels, performed_by=None):
        """Add (or extend) one day of a doctor's calendar."""
        doctor = self._get_doctor(doctor_id)
        schedule = doctor.add_day_schedule(date, time_labels)

        self._audit(
            performed_by,
            action=AuditActionChoices.SCHEDULE_UPDATED,
            entity_type='Doctor',
            entity_id=str(doctor.id),
            details={
                'date': schedule.date.isoformat(),
                'time_slots': list(schedule.slots.values_list('time', flat=True)),
            },
            severity=AuditSeverityChoices.LOW,
        )
        return schedule

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_appointment(self, appointment_id) -> Appointment:
        try:
            return Appointment.objects.select_related('patient', 'doctor').get(pk=appointment_id)
        except (Appointment.DoesNotExist, ValidationError, ValueError, TypeError):
            raise NotFoundError('Appointment not found')

    def get_doctor_schedule(self, doctor_id, date) -> Dict[str, Any]:
        """Doctor summary plus the available slot labels for ``date``."""
        doctor = self._get_doctor(doctor_id)
        day = to_calendar_day(date)
        return {
            'doctor': {
                'id': doctor.id,
                'name': doctor.full_name,
                'specialty': doctor.specialty,
                'consultation_fee': doctor.consultation_fee,
            },
            'date': day,
            'available_slots': [slot.time for slot in doctor.get_available_slots(day)],
        }

    def get_all_appointments(self, filters: Optional[Dict[str, Any]] = None):
        """
        Appointments matching ``filters`` (patient, doctor, status,
        start_date, end_date), newest date first.
        """
        filters = filters or {}
        qs = Appointment.objects.select_related('patient', 'doctor')

        if filters.get('patient'):
            qs = qs.filter(patient_id=self._uuid_filter(filters, 'patient'))
        if filters.get('doctor'):
            qs = qs.filter(doctor_id=self._uuid_filter(filters, 'doctor'))
        if filters.get('status'):
            qs = qs.filter(status=filters['status'])
        if filters.get('start_date'):
            qs = qs.filter(appointment_date__gte=to_calendar_day(filters['start_date']))
        if filters.get('end_date'):
            qs = qs.filter(appointment_date__lte=to_calendar_day(filters['end_date']))

        return qs.order_by('-appointment_date', 'time_slot')

    def get_upcoming_appointments(self, patient_id):
        patient = self._get_patient(patient_id)
        return Appointment.objects.select_related('patient', 'doctor').filter(
            patient=patient,
            appointment_date__gte=clinic_today(),
            status__in=UPCOMING_STATUSES,
        ).order_by('appointment_date', 'time_slot')

    def get_appointment_history(self, patient_id):
        patient = self._get_patient(patient_id)
        return Appointment.objects.select_related('patient', 'doctor').filter(
            patient=patient,
            status__in=HISTORY_STATUSES,
        ).order_by('-appointment_date', '-time_slot')
