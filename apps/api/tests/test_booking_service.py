"""
Tests for AppointmentService (booking orchestrator).

Reproduces the end-to-end booking scenarios with dates relative to today:
1. book an available slot
2. second booking of the same slot fails
3. cancel frees the slot
4. the freed slot can be booked by another patient
5. a past date fails validation before any slot lookup
6. reschedule cancels the old record and books the new slot
"""
from datetime import timedelta
from unittest.mock import patch

import pytest

from apps.ops.models import AuditActionChoices
from apps.scheduling.exceptions import (
    AlreadyCancelledError,
    BookingConflictError,
    BookingValidationError,
    InactiveResourceError,
    InvalidStateError,
    NotFoundError,
    SlotUnavailableError,
)
from apps.scheduling.models import Appointment, Doctor, Slot


def available_times(doctor, day):
    return [slot.time for slot in doctor.get_available_slots(day)]


@pytest.mark.django_db
class TestBookingScenarios:

    def test_full_booking_scenario(self, service, patient, other_patient, doctor, future_day, next_future_day):
        # 1. Book the first slot
        first = service.create_appointment({
            'patient_id': patient.id,
            'doctor_id': doctor.id,
            'appointment_date': future_day,
            'time_slot': '09:00',
            'reason': 'Annual physical checkup',
        })
        assert first.status == 'scheduled'
        assert '09:00' not in available_times(doctor, future_day)

        # 2. Same slot, different patient
        second_request = {
            'patient_id': other_patient.id,
            'doctor_id': doctor.id,
            'appointment_date': future_day,
            'time_slot': '09:00',
            'reason': 'Follow-up visit today',
        }
        with pytest.raises((SlotUnavailableError, BookingConflictError)):
            service.create_appointment(second_request)

        # 3. Cancel frees the slot
        cancelled = service.cancel_appointment(first.id, reason='Patient unavailable', cancelled_by='patient')
        assert cancelled.status == 'cancelled'
        assert '09:00' in available_times(doctor, future_day)

        # 4. Freed slot can be booked
        fourth = service.create_appointment(second_request)
        assert fourth.status == 'scheduled'

        # 6. Reschedule to the next day at 10:00
        new = service.reschedule_appointment(fourth.id, next_future_day, '10:00')
        fourth.refresh_from_db()

        assert fourth.status == 'cancelled'
        assert fourth.cancellation_reason == 'Rescheduled'
        assert new.status == 'scheduled'
        assert new.appointment_date == next_future_day
        assert new.time_slot == '10:00'
        assert '09:00' in available_times(doctor, future_day)
        assert '10:00' not in available_times(doctor, next_future_day)

    def test_past_date_fails_before_slot_lookup(self, service, booking_data, yesterday):
        with patch.object(Doctor, 'get_available_slots') as lookup:
            with pytest.raises(BookingValidationError):
                service.create_appointment(booking_data(appointment_date=yesterday))

        lookup.assert_not_called()
        assert Appointment.objects.count() == 0


@pytest.mark.django_db
class TestCreateAppointment:

    def test_unknown_patient(self, service, booking_data):
        with pytest.raises(NotFoundError) as exc:
            service.create_appointment(booking_data(patient_id='00000000-0000-0000-0000-000000000000'))

        assert exc.value.message == 'Patient not found'

    def test_malformed_ids_are_not_found(self, service, booking_data):
        with pytest.raises(NotFoundError):
            service.create_appointment(booking_data(doctor_id='not-a-uuid'))

    def test_inactive_doctor(self, service, booking_data, inactive_doctor):
        with pytest.raises(InactiveResourceError):
            service.create_appointment(booking_data(doctor_id=inactive_doctor.id))

    def test_success_is_audited_with_low_severity(self, service, audit_sink, booking_data):
        appointment = service.create_appointment(booking_data())

        entry = audit_sink.entries[-1]
        assert entry.action == AuditActionChoices.APPOINTMENT_CREATED
        assert entry.entity_id == str(appointment.id)
        assert entry.severity == 'low'
        assert entry.status == 'success'

    def test_failure_is_audited_then_reraised(self, service, audit_sink, booking_data):
        with pytest.raises(BookingValidationError):
            service.create_appointment(booking_data(reason='short'))

        entry = audit_sink.entries[-1]
        assert entry.action == AuditActionChoices.APPOINTMENT_CREATED
        assert entry.severity == 'medium'
        assert entry.status == 'failed'
        assert 'Reason' in entry.error_message

    def test_performer_is_taken_from_user(self, service, audit_sink, booking_data, staff_user):
        service.create_appointment(booking_data(), performed_by=staff_user)

        entry = audit_sink.entries[-1]
        assert entry.performed_by_id == str(staff_user.id)
        assert entry.performed_by_type == 'staff'
        assert entry.performed_by_name == 'Sam Staff'

    def test_conflict_increments_metric(self, service, booking_data, other_patient):
        service.create_appointment(booking_data())
        stale_view = [Slot(time='09:00', is_available=True)]

        with patch.object(Doctor, 'get_available_slots', return_value=stale_view), \
                patch('apps.scheduling.services.metrics') as mock_metrics:
            with pytest.raises(BookingConflictError):
                service.create_appointment(booking_data(patient_id=other_patient.id))

        mock_metrics.appointment_booking_conflicts_total.inc.assert_called_once()
        mock_metrics.appointments_booked_total.labels.assert_called_with(result='failure')

    def test_audit_sink_failure_does_not_break_booking(self, booking_data):
        from apps.ops.audit import DatabaseAuditSink
        from apps.scheduling.services import AppointmentService
        from django.db import DatabaseError

        service = AppointmentService(audit_sink=DatabaseAuditSink())
        with patch('apps.ops.audit.AuditLog.objects.create', side_effect=DatabaseError('disk full')):
            appointment = service.create_appointment(booking_data())

        assert Appointment.objects.filter(pk=appointment.pk).exists()

    def test_unexpected_error_is_audited_then_reraised(self, service, audit_sink, booking_data):
        from django.db import DatabaseError

        with patch.object(Appointment, 'book', side_effect=DatabaseError('db down')), \
                patch('apps.scheduling.services.metrics') as mock_metrics:
            with pytest.raises(DatabaseError):
                service.create_appointment(booking_data())

        entry = audit_sink.entries[-1]
        assert entry.action == AuditActionChoices.APPOINTMENT_CREATED
        assert entry.severity == 'medium'
        assert entry.status == 'failed'
        assert entry.error_message == 'db down'
        mock_metrics.appointments_booked_total.labels.assert_called_with(result='failure')
        mock_metrics.appointment_booking_conflicts_total.inc.assert_not_called()


@pytest.mark.django_db
class TestCancelAndReschedule:

    def test_cancel_unknown_appointment(self, service):
        with pytest.raises(NotFoundError):
            service.cancel_appointment('00000000-0000-0000-0000-000000000000', reason='x')

    def test_cancel_twice(self, service, appointment):
        service.cancel_appointment(appointment.id, reason='Patient unavailable')

        with pytest.raises(AlreadyCancelledError):
            service.cancel_appointment(appointment.id, reason='Again')

    def test_cancel_completed_does_not_touch_calendar(self, service, appointment, doctor, future_day):
        for next_status in ['confirmed', 'in_progress', 'completed']:
            service.transition_status(appointment.id, next_status)

        with pytest.raises(InvalidStateError):
            service.cancel_appointment(appointment.id, reason='Too late')

        assert '09:00' not in available_times(doctor, future_day)

    def test_cancel_is_audited_with_medium_severity(self, service, audit_sink, appointment):
        service.cancel_appointment(appointment.id, reason='Patient unavailable', cancelled_by='doctor')

        entry = audit_sink.entries[-1]
        assert entry.action == AuditActionChoices.APPOINTMENT_CANCELLED
        assert entry.severity == 'medium'
        assert entry.details['cancelled_by'] == 'doctor'

    def test_cancel_returns_populated_summaries(self, service, appointment, patient, doctor):
        result = service.cancel_appointment(appointment.id, reason='Patient unavailable')

        assert result.patient == patient
        assert result.doctor == doctor

    def test_reschedule_audit_references_both_records(self, service, audit_sink, appointment, next_future_day):
        new = service.reschedule_appointment(appointment.id, next_future_day, '11:00')

        entry = audit_sink.entries[-1]
        assert entry.action == AuditActionChoices.APPOINTMENT_RESCHEDULED
        assert entry.details['old_appointment_id'] == str(appointment.id)
        assert entry.details['new_appointment_id'] == str(new.id)
        assert entry.details['new_time_slot'] == '11:00'

    def test_reschedule_to_missing_schedule_keeps_original(self, service, appointment, future_day):
        with pytest.raises(SlotUnavailableError):
            service.reschedule_appointment(appointment.id, future_day + timedelta(days=20), '09:00')

        appointment.refresh_from_db()
        assert appointment.status == 'scheduled'

    def test_reschedule_cancelled_appointment_fails(self, service, appointment, next_future_day):
        service.cancel_appointment(appointment.id, reason='Patient unavailable')

        with pytest.raises(AlreadyCancelledError):
            service.reschedule_appointment(appointment.id, next_future_day, '10:00')


@pytest.mark.django_db
class TestUpdateAndDelete:

    def test_update_clinical_fields_records_before_and_after(self, service, audit_sink, appointment):
        updated = service.update_appointment(appointment.id, {
            'diagnosis': 'Hypertension',
            'follow_up_required': True,
        })

        assert updated.diagnosis == 'Hypertension'
        assert updated.follow_up_required is True
        entry = audit_sink.entries[-1]
        assert entry.action == AuditActionChoices.APPOINTMENT_UPDATED
        assert entry.changes_before['diagnosis'] == ''
        assert entry.changes_after['diagnosis'] == 'Hypertension'

    def test_update_status_goes_through_state_machine(self, service, appointment):
        with pytest.raises(InvalidStateError):
            service.update_appointment(appointment.id, {'status': 'completed'})

        updated = service.update_appointment(appointment.id, {'status': 'confirmed'})
        assert updated.status == 'confirmed'

    def test_update_to_cancelled_releases_slot(self, service, appointment, doctor, future_day):
        service.update_appointment(appointment.id, {'status': 'cancelled', 'cancellation_reason': 'Duplicate'})

        assert '09:00' in available_times(doctor, future_day)

    def test_update_rejects_booking_fields(self, service, appointment):
        with pytest.raises(BookingValidationError):
            service.update_appointment(appointment.id, {'time_slot': '10:00'})

    def test_delete_releases_slot_and_audits_high(self, service, audit_sink, appointment, doctor, future_day):
        service.delete_appointment(appointment.id)

        assert not Appointment.objects.filter(pk=appointment.pk).exists()
        assert '09:00' in available_times(doctor, future_day)
        assert audit_sink.entries[-1].action == AuditActionChoices.APPOINTMENT_DELETED
        assert audit_sink.entries[-1].severity == 'high'

    def test_delete_cancelled_does_not_free_rebooked_slot(self, service, appointment, booking_data,
                                                          other_patient, doctor, future_day):
        service.cancel_appointment(appointment.id, reason='Patient unavailable')
        service.create_appointment(booking_data(patient_id=other_patient.id, reason='Follow-up visit today'))

        service.delete_appointment(appointment.id)

        assert '09:00' not in available_times(doctor, future_day)


@pytest.mark.django_db
class TestTransitions:

    def test_transition_audits_status_change(self, service, audit_sink, appointment):
        service.transition_status(appointment.id, 'confirmed')

        entry = audit_sink.entries[-1]
        assert entry.changes_before['status'] == 'scheduled'
        assert entry.changes_after['status'] == 'confirmed'

    def test_invalid_transition_logs_blocked_event(self, service, appointment):
        with patch('apps.scheduling.services.log_appointment_transition') as log_event:
            with pytest.raises(InvalidStateError):
                service.transition_status(appointment.id, 'completed')

        assert log_event.call_args.kwargs['result'] == 'blocked'

    def test_cancel_by_transition_uses_actor_role(self, service, appointment, doctor_user):
        result = service.transition_status(appointment.id, 'cancelled', performed_by=doctor_user, reason='Sick')

        assert result.status == 'cancelled'
        assert result.cancelled_by == 'doctor'


@pytest.mark.django_db
class TestQueries:

    def test_doctor_schedule_projection(self, service, appointment, doctor, future_day):
        projection = service.get_doctor_schedule(doctor.id, future_day)

        assert projection['doctor']['name'] == 'Dr. Gregory House'
        assert projection['doctor']['specialty'] == 'cardiology'
        assert projection['date'] == future_day
        assert projection['available_slots'] == ['09:30', '10:00']

    def test_add_doctor_schedule_is_audited(self, service, audit_sink, doctor, future_day):
        day = future_day + timedelta(days=5)
        schedule = service.add_doctor_schedule(doctor.id, day, ['08:00', '08:30'])

        assert schedule.date == day
        assert audit_sink.entries[-1].action == AuditActionChoices.SCHEDULE_UPDATED
        assert audit_sink.entries[-1].details['time_slots'] == ['08:00', '08:30']

    def test_get_appointment_not_found(self, service):
        with pytest.raises(NotFoundError) as exc:
            service.get_appointment('00000000-0000-0000-0000-000000000000')

        assert exc.value.message == 'Appointment not found'

    def test_filters_and_ordering(self, service, booking_data, doctor, future_day, next_future_day):
        early = service.create_appointment(booking_data())
        late = service.create_appointment(booking_data(appointment_date=next_future_day, time_slot='11:00'))
        service.cancel_appointment(early.id, reason='Patient unavailable')

        assert list(service.get_all_appointments()) == [late, early]
        assert list(service.get_all_appointments({'status': 'cancelled'})) == [early]
        assert list(service.get_all_appointments({'start_date': next_future_day})) == [late]
        assert list(service.get_all_appointments({'end_date': future_day.isoformat()})) == [early]
        assert list(service.get_all_appointments({'doctor': doctor.id})) == [late, early]

    @pytest.mark.parametrize('key', ['patient', 'doctor'])
    def test_malformed_id_filter_is_a_validation_error(self, service, key):
        with pytest.raises(BookingValidationError) as exc:
            service.get_all_appointments({key: 'not-a-uuid'})

        assert list(exc.value.errors) == [key]

    def test_upcoming_and_history(self, service, booking_data, patient, next_future_day):
        first = service.create_appointment(booking_data(time_slot='10:00'))
        second = service.create_appointment(booking_data(time_slot='09:00'))
        third = service.create_appointment(booking_data(appointment_date=next_future_day, time_slot='09:00'))
        service.cancel_appointment(third.id, reason='Patient unavailable')

        upcoming = list(service.get_upcoming_appointments(patient.id))
        history = list(service.get_appointment_history(patient.id))

        assert upcoming == [second, first]
        assert history == [third]
