"""
Tests for the doctor availability calendar.

Covers calendar-day matching, schedule creation/merging, and the
book/release slot primitives.
"""
from datetime import date, datetime, timedelta

import pytest
import pytz
from django.test import override_settings

from apps.scheduling.calendar import (
    clinic_today,
    ensure_bookable_in_future,
    slot_start,
    to_calendar_day,
    validate_time_label,
)
from apps.scheduling.exceptions import (
    BookingValidationError,
    NotFoundError,
    SlotUnavailableError,
)
from apps.scheduling.models import DaySchedule, Slot


class TestCalendarDay:
    """Day matching is done on civil dates."""

    def test_date_is_returned_unchanged(self):
        assert to_calendar_day(date(2025, 12, 1)) == date(2025, 12, 1)

    def test_naive_datetime_uses_its_own_date(self):
        assert to_calendar_day(datetime(2025, 12, 1, 23, 59)) == date(2025, 12, 1)

    def test_iso_strings(self):
        assert to_calendar_day('2025-12-01') == date(2025, 12, 1)
        assert to_calendar_day('2025-12-01T08:15:00') == date(2025, 12, 1)

    @override_settings(CLINIC_TIME_ZONE='America/New_York')
    def test_aware_datetime_is_converted_to_clinic_time_zone(self):
        """04:30 UTC on March 2nd is still March 1st in New York."""
        value = datetime(2025, 3, 2, 4, 30, tzinfo=pytz.utc)
        assert to_calendar_day(value) == date(2025, 3, 1)

    @pytest.mark.parametrize('value', ['not-a-date', '2025-13-45', None, 42])
    def test_invalid_values_raise_validation_error(self, value):
        with pytest.raises(BookingValidationError):
            to_calendar_day(value)


class TestTimeLabels:

    @pytest.mark.parametrize('label', ['00:00', '09:30', '23:59'])
    def test_valid_labels(self, label):
        assert validate_time_label(label) == label

    @pytest.mark.parametrize('label', ['9:00', '24:00', '09:60', '0900', '', None])
    def test_invalid_labels(self, label):
        with pytest.raises(BookingValidationError):
            validate_time_label(label)

    @override_settings(CLINIC_TIME_ZONE='Europe/Madrid')
    def test_slot_start_is_localised_to_clinic(self):
        start = slot_start(date(2025, 7, 1), '09:00')
        assert start.astimezone(pytz.utc).hour == 7  # CEST is UTC+2


class TestFutureBookingGuard:

    def test_past_date_rejected(self):
        with pytest.raises(BookingValidationError) as exc:
            ensure_bookable_in_future(clinic_today() - timedelta(days=1), '09:00')
        assert 'appointment_date' in exc.value.errors

    def test_started_slot_today_rejected(self):
        with pytest.raises(BookingValidationError) as exc:
            ensure_bookable_in_future(clinic_today(), '00:00')
        assert 'time_slot' in exc.value.errors

    def test_tomorrow_accepted(self):
        ensure_bookable_in_future(clinic_today() + timedelta(days=1), '00:00')


@pytest.mark.django_db
class TestDaySchedule:

    def test_add_day_schedule_creates_available_slots(self, doctor, future_day):
        slots = doctor.get_available_slots(future_day)

        assert [s.time for s in slots] == ['09:00', '09:30', '10:00']
        assert all(s.is_available for s in slots)

    def test_available_slots_are_ordered_by_time(self, doctor, future_day):
        day = future_day + timedelta(days=10)
        doctor.add_day_schedule(day, ['14:00', '08:00', '11:30'])

        assert [s.time for s in doctor.get_available_slots(day)] == ['08:00', '11:30', '14:00']

    def test_unscheduled_day_has_no_slots(self, doctor, future_day):
        assert doctor.get_available_slots(future_day + timedelta(days=30)) == []

    def test_lookup_accepts_strings_and_datetimes(self, doctor, future_day):
        as_string = doctor.get_available_slots(future_day.isoformat())
        as_datetime = doctor.get_available_slots(datetime.combine(future_day, datetime.min.time()))

        assert [s.time for s in as_string] == ['09:00', '09:30', '10:00']
        assert [s.time for s in as_datetime] == ['09:00', '09:30', '10:00']

    def test_same_date_twice_merges_labels(self, doctor, future_day):
        doctor.book_slot(future_day, '09:00')

        doctor.add_day_schedule(future_day, ['09:00', '11:00'])

        assert DaySchedule.objects.filter(doctor=doctor, date=future_day).count() == 1
        times = list(
            Slot.objects.filter(day__doctor=doctor, day__date=future_day)
            .order_by('time').values_list('time', 'is_available')
        )
        # Existing 09:00 keeps its booked state; 11:00 is appended
        assert times == [('09:00', False), ('09:30', True), ('10:00', True), ('11:00', True)]

    def test_duplicate_labels_in_one_call_are_collapsed(self, doctor, future_day):
        day = future_day + timedelta(days=3)
        doctor.add_day_schedule(day, ['09:00', '09:00'])

        assert Slot.objects.filter(day__doctor=doctor, day__date=day).count() == 1

    def test_empty_label_list_rejected(self, doctor, future_day):
        with pytest.raises(BookingValidationError):
            doctor.add_day_schedule(future_day + timedelta(days=3), [])

    def test_invalid_label_rejected_without_partial_write(self, doctor, future_day):
        day = future_day + timedelta(days=3)
        with pytest.raises(BookingValidationError):
            doctor.add_day_schedule(day, ['09:00', 'nine'])

        assert not DaySchedule.objects.filter(doctor=doctor, date=day).exists()


@pytest.mark.django_db
class TestSlotBooking:

    def test_book_slot_marks_unavailable(self, doctor, future_day):
        slot = doctor.book_slot(future_day, '09:30')

        assert slot.is_available is False
        assert '09:30' not in [s.time for s in doctor.get_available_slots(future_day)]

    def test_book_slot_without_schedule_raises_not_found(self, doctor, future_day):
        with pytest.raises(NotFoundError):
            doctor.book_slot(future_day + timedelta(days=30), '09:00')

    def test_book_unknown_slot_raises_unavailable(self, doctor, future_day):
        with pytest.raises(SlotUnavailableError):
            doctor.book_slot(future_day, '15:00')

    def test_book_slot_twice_raises_unavailable(self, doctor, future_day):
        doctor.book_slot(future_day, '09:00')

        with pytest.raises(SlotUnavailableError):
            doctor.book_slot(future_day, '09:00')

    def test_release_slot_is_idempotent(self, doctor, future_day):
        doctor.book_slot(future_day, '09:00')

        first = doctor.release_slot(future_day, '09:00')
        second = doctor.release_slot(future_day, '09:00')

        assert first.is_available is True
        assert second.is_available is True
        assert [s.time for s in doctor.get_available_slots(future_day)] == ['09:00', '09:30', '10:00']

    def test_release_missing_slot_or_day_is_noop(self, doctor, future_day):
        assert doctor.release_slot(future_day, '18:00') is None
        assert doctor.release_slot(future_day + timedelta(days=30), '09:00') is None
