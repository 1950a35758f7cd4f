"""
Domain events logging helpers.

Provides structured event logging for booking operations.
"""
from typing import Dict, Optional
from .logging import get_sanitized_logger, sanitize_dict

logger = get_sanitized_logger(__name__)


def log_domain_event(
    event_name: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    entity_ids: Optional[Dict[str, str]] = None,
    result: str = 'success',
    **extra_fields
):
    """
    Log a domain event with structured data.

    Args:
        event_name: Name of the event (e.g., 'appointment_created')
        entity_type: Type of entity (e.g., 'Appointment', 'Doctor')
        entity_id: ID of primary entity
        entity_ids: Dictionary of related entity IDs
        result: Result of operation (success, failure, etc.)
        **extra_fields: Additional fields to log (will be sanitized)

    Example:
        log_domain_event(
            'appointment_created',
            entity_type='Appointment',
            entity_id=str(appointment.id),
            entity_ids={'doctor_id': str(appointment.doctor_id)},
            result='success',
            time_slot='09:00-09:30'
        )
    """
    event_data = {
        'event': event_name,
        'result': result,
    }

    if entity_type:
        event_data['entity_type'] = entity_type

    if entity_id:
        event_data['entity_id'] = entity_id

    if entity_ids:
        event_data.update(entity_ids)

    event_data.update(sanitize_dict(extra_fields))

    if result in ['failure', 'error']:
        logger.error(f'Domain event: {event_name}', extra=event_data)
    elif result in ['warning', 'blocked', 'conflict']:
        logger.warning(f'Domain event: {event_name}', extra=event_data)
    else:
        logger.info(f'Domain event: {event_name}', extra=event_data)


def _appointment_ids(appointment):
    return {
        'appointment_id': str(appointment.id),
        'patient_id': str(appointment.patient_id),
        'doctor_id': str(appointment.doctor_id),
    }


def log_appointment_created(appointment, **extra):
    """Log a successfully stored appointment."""
    log_domain_event(
        'appointment_created',
        entity_type='Appointment',
        entity_id=str(appointment.id),
        entity_ids=_appointment_ids(appointment),
        result='success',
        appointment_date=appointment.appointment_date.isoformat(),
        time_slot=appointment.time_slot,
        **extra
    )


def log_booking_failed(doctor_id, appointment_date, time_slot, error_code, result='failure'):
    """Log a rejected booking attempt."""
    log_domain_event(
        'appointment_booking_failed',
        entity_type='Doctor',
        entity_id=str(doctor_id) if doctor_id else None,
        result=result,
        appointment_date=str(appointment_date),
        time_slot=time_slot,
        error_code=error_code,
    )


def log_appointment_cancelled(appointment, cancelled_by):
    """Log an appointment cancellation."""
    log_domain_event(
        'appointment_cancelled',
        entity_type='Appointment',
        entity_id=str(appointment.id),
        entity_ids=_appointment_ids(appointment),
        result='success',
        cancelled_by=cancelled_by,
    )


def log_appointment_rescheduled(old_appointment, new_appointment):
    """Log a reschedule, linking the cancelled record to its replacement."""
    log_domain_event(
        'appointment_rescheduled',
        entity_type='Appointment',
        entity_id=str(new_appointment.id),
        entity_ids={
            'old_appointment_id': str(old_appointment.id),
            'new_appointment_id': str(new_appointment.id),
        },
        result='success',
        old_date=old_appointment.appointment_date.isoformat(),
        old_time_slot=old_appointment.time_slot,
        new_date=new_appointment.appointment_date.isoformat(),
        new_time_slot=new_appointment.time_slot,
    )


def log_appointment_transition(appointment, from_status, to_status, result='success', **extra):
    """Log appointment status transition event."""
    log_domain_event(
        'appointment_transition',
        entity_type='Appointment',
        entity_id=str(appointment.id),
        entity_ids={'appointment_id': str(appointment.id)},
        result=result,
        from_status=from_status,
        to_status=to_status,
        **extra
    )


def log_slot_reservation_failed(appointment, error):
    """
    Log a slot that could not be marked unavailable after its appointment
    was stored. The appointment stays valid; the partial unique constraint
    still prevents a second booking of the same slot.
    """
    log_domain_event(
        'calendar_slot_reservation_failed',
        entity_type='Appointment',
        entity_id=str(appointment.id),
        entity_ids=_appointment_ids(appointment),
        result='warning',
        appointment_date=appointment.appointment_date.isoformat(),
        time_slot=appointment.time_slot,
        error=str(error),
    )
