"""
Calendar-day helpers for doctor availability.

All availability matching happens on civil dates in the clinic time zone.
Slot labels are ``HH:MM`` strings (e.g. ``"09:30"``).
"""
import re
from datetime import date, datetime, time

import pytz
from django.conf import settings
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from .exceptions import BookingValidationError

TIME_LABEL_RE = re.compile(r'^([01]\d|2[0-3]):([0-5]\d)$')


def clinic_timezone():
    """Time zone the clinic's calendar days are expressed in."""
    return pytz.timezone(getattr(settings, 'CLINIC_TIME_ZONE', settings.TIME_ZONE))


def clinic_today():
    """Today's calendar date at the clinic."""
    return timezone.now().astimezone(clinic_timezone()).date()


def to_calendar_day(value):
    """
    Normalise ``value`` to a calendar ``date``.

    Accepts ``date``, ``datetime`` and ISO-8601 strings. Aware datetimes are
    converted to the clinic time zone before the date is taken, so
    ``2025-03-01T23:30:00-05:00`` and ``2025-03-02T04:30:00Z`` land on the
    same day for a clinic in New York.
    """
    if isinstance(value, datetime):
        if timezone.is_aware(value):
            value = value.astimezone(clinic_timezone())
        return value.date()

    if isinstance(value, date):
        return value

    if isinstance(value, str):
        raw = value.strip()
        try:
            parsed = parse_date(raw)
            if parsed is not None:
                return parsed
            parsed_dt = parse_datetime(raw)
        except ValueError:
            parsed_dt = None
        if parsed_dt is not None:
            return to_calendar_day(parsed_dt)

    raise BookingValidationError(
        f'Invalid date: {value!r}',
        errors={'date': ['Expected an ISO-8601 date (YYYY-MM-DD).']}
    )


def validate_time_label(label):
    """Return ``label`` if it is a well-formed ``HH:MM`` slot label."""
    if not isinstance(label, str) or not TIME_LABEL_RE.match(label):
        raise BookingValidationError(
            f'Invalid time slot label: {label!r}',
            errors={'time_slot': ['Expected HH:MM (24h).']}
        )
    return label


def slot_start(day, label):
    """Aware datetime at which the slot ``label`` starts on ``day``."""
    match = TIME_LABEL_RE.match(validate_time_label(label))
    naive = datetime.combine(day, time(int(match.group(1)), int(match.group(2))))
    return clinic_timezone().localize(naive)


def ensure_bookable_in_future(day, label):
    """
    Reject dates in the past and slots that have already started.

    Runs before any calendar lookup so a stale request never reaches the
    availability check.
    """
    if day < clinic_today():
        raise BookingValidationError(
            'Appointment date must be in the future',
            errors={'appointment_date': ['Date is in the past.']}
        )
    if slot_start(day, label) <= timezone.now():
        raise BookingValidationError(
            'Appointment time slot has already started',
            errors={'time_slot': ['Slot start is not in the future.']}
        )
