"""
Scheduling models: patient, doctor, doctor_day_schedule, doctor_slot, appointment
"""
import uuid
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import DatabaseError, IntegrityError, models, transaction
from django.db.models import Q
from django.utils import timezone

from apps.core.observability import metrics
from apps.core.observability.events import log_slot_reservation_failed
from apps.core.observability.logging import get_sanitized_logger

from .calendar import (
    TIME_LABEL_RE,
    ensure_bookable_in_future,
    to_calendar_day,
    validate_time_label,
)
from .exceptions import (
    AlreadyCancelledError,
    BookingConflictError,
    BookingError,
    BookingValidationError,
    InvalidStateError,
    NotFoundError,
    SlotUnavailableError,
)

logger = get_sanitized_logger(__name__)


# ============================================================================
# Choices
# ============================================================================

class SpecialtyChoices(models.TextChoices):
    CARDIOLOGY = 'cardiology', 'Cardiology'
    NEUROLOGY = 'neurology', 'Neurology'
    PEDIATRICS = 'pediatrics', 'Pediatrics'
    ORTHOPEDICS = 'orthopedics', 'Orthopedics'
    DERMATOLOGY = 'dermatology', 'Dermatology'
    GENERAL = 'general', 'General'
    ONCOLOGY = 'oncology', 'Oncology'
    PSYCHIATRY = 'psychiatry', 'Psychiatry'


class GenderChoices(models.TextChoices):
    MALE = 'male', 'Male'
    FEMALE = 'female', 'Female'
    OTHER = 'other', 'Other'


class AppointmentTypeChoices(models.TextChoices):
    CONSULTATION = 'consultation', 'Consultation'
    FOLLOW_UP = 'follow_up', 'Follow-up'
    EMERGENCY = 'emergency', 'Emergency'
    CHECKUP = 'checkup', 'Checkup'


class AppointmentStatusChoices(models.TextChoices):
    """
    Appointment lifecycle states.

    scheduled -> confirmed -> in_progress -> completed
    scheduled|confirmed -> cancelled | no_show
    """
    SCHEDULED = 'scheduled', 'Scheduled'
    CONFIRMED = 'confirmed', 'Confirmed'
    IN_PROGRESS = 'in_progress', 'In-Progress'
    COMPLETED = 'completed', 'Completed'
    CANCELLED = 'cancelled', 'Cancelled'
    NO_SHOW = 'no_show', 'No-Show'


class CancelledByChoices(models.TextChoices):
    PATIENT = 'patient', 'Patient'
    DOCTOR = 'doctor', 'Doctor'
    ADMIN = 'admin', 'Admin'


# ============================================================================
# People
# ============================================================================

class Patient(models.Model):
    """
    Patient profile. Optionally linked to a login account.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='patient_profile'
    )

    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    email = models.EmailField(unique=True)
    phone = models.CharField(max_length=50)
    date_of_birth = models.DateField(blank=True, null=True)
    gender = models.CharField(
        max_length=10,
        choices=GenderChoices.choices,
        blank=True,
        default=''
    )
    health_card_number = models.CharField(max_length=50, unique=True)
    blood_type = models.CharField(max_length=5, blank=True, default='')
    allergies = models.JSONField(default=list, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'patient'
        verbose_name = 'Patient'
        verbose_name_plural = 'Patients'
        ordering = ['last_name', 'first_name']
        indexes = [
            models.Index(fields=['last_name', 'first_name'], name='idx_patient_name'),
        ]

    def __str__(self):
        return self.full_name

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"


class Doctor(models.Model):
    """
    Doctor profile and owner of the availability calendar.

    The calendar is a set of DaySchedule rows (one per civil date), each
    holding HH:MM slots. ``book_slot`` is the only code path that marks a
    slot occupied; ``release_slot`` is its idempotent inverse.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='doctor_profile'
    )

    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    email = models.EmailField(unique=True)
    phone = models.CharField(max_length=50)
    specialty = models.CharField(max_length=20, choices=SpecialtyChoices.choices)
    license_number = models.CharField(max_length=50, unique=True)
    qualification = models.CharField(max_length=255)
    experience_years = models.PositiveIntegerField(default=0)
    department = models.CharField(max_length=100, blank=True, default='')
    consultation_fee = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0'))]
    )
    hospital_affiliation = models.CharField(max_length=255, blank=True, default='')
    rating = models.DecimalField(
        max_digits=2,
        decimal_places=1,
        default=Decimal('0.0'),
        validators=[MinValueValidator(Decimal('0')), MaxValueValidator(Decimal('5'))]
    )
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'doctor'
        verbose_name = 'Doctor'
        verbose_name_plural = 'Doctors'
        ordering = ['last_name', 'first_name']
        indexes = [
            models.Index(fields=['specialty'], name='idx_doctor_specialty'),
            models.Index(fields=['is_active'], name='idx_doctor_active'),
        ]

    def __str__(self):
        return self.full_name

    @property
    def full_name(self):
        return f"Dr. {self.first_name} {self.last_name}"

    # ------------------------------------------------------------------
    # Availability calendar
    # ------------------------------------------------------------------

    def _day_schedule(self, day, for_update=False):
        qs = self.day_schedules.filter(date=to_calendar_day(day))
        if for_update:
            qs = qs.select_for_update()
        return qs.first()

    def get_available_slots(self, day):
        """Available slots for ``day`` ordered by time; [] when unscheduled."""
        schedule = self._day_schedule(day)
        if schedule is None:
            return []
        return list(schedule.slots.filter(is_available=True).order_by('time'))

    def book_slot(self, day, time_label):
        """
        Mark the slot occupied.

        Raises:
            NotFoundError: no schedule for that date
            SlotUnavailableError: slot missing or already occupied
        """
        schedule = self._day_schedule(day)
        if schedule is None:
            raise NotFoundError('No schedule found for this date')

        # Conditional update so two concurrent flips cannot both succeed
        updated = schedule.slots.filter(
            time=time_label, is_available=True
        ).update(is_available=False)
        if not updated:
            raise SlotUnavailableError()

        return schedule.slots.get(time=time_label)

    def release_slot(self, day, time_label):
        """Mark the slot available again. Never raises for missing slots."""
        schedule = self._day_schedule(day)
        if schedule is None:
            return None
        schedule.slots.filter(time=time_label, is_available=False).update(is_available=True)
        return schedule.slots.filter(time=time_label).first()

    def add_day_schedule(self, day, time_labels):
        """
        Create (or extend) the schedule for ``day`` with available slots.

        Labels already present on that date keep their current availability.
        """
        if not time_labels:
            raise BookingValidationError(
                'At least one time slot is required',
                errors={'time_slots': ['This list may not be empty.']}
            )
        labels = []
        for label in time_labels:
            validate_time_label(label)
            if label not in labels:
                labels.append(label)

        with transaction.atomic():
            schedule, _ = DaySchedule.objects.get_or_create(
                doctor=self, date=to_calendar_day(day)
            )
            existing = set(schedule.slots.values_list('time', flat=True))
            Slot.objects.bulk_create([
                Slot(day=schedule, time=label)
                for label in labels if label not in existing
            ])
        return schedule


class DaySchedule(models.Model):
    """One civil date of a doctor's calendar."""
    doctor = models.ForeignKey(
        'Doctor',
        on_delete=models.CASCADE,
        related_name='day_schedules'
    )
    date = models.DateField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'doctor_day_schedule'
        verbose_name = 'Day Schedule'
        verbose_name_plural = 'Day Schedules'
        ordering = ['date']
        constraints = [
            models.UniqueConstraint(fields=['doctor', 'date'], name='uniq_doctor_day_schedule'),
        ]

    def __str__(self):
        return f"{self.doctor} - {self.date.isoformat()}"


class Slot(models.Model):
    """A bookable HH:MM label within a DaySchedule."""
    day = models.ForeignKey(
        'DaySchedule',
        on_delete=models.CASCADE,
        related_name='slots'
    )
    time = models.CharField(max_length=5)
    is_available = models.BooleanField(default=True)

    class Meta:
        db_table = 'doctor_slot'
        verbose_name = 'Slot'
        verbose_name_plural = 'Slots'
        ordering = ['time']
        constraints = [
            models.UniqueConstraint(fields=['day', 'time'], name='uniq_day_slot_time'),
        ]

    def __str__(self):
        state = 'available' if self.is_available else 'booked'
        return f"{self.time} ({state})"


# ============================================================================
# Appointment
# ============================================================================

class Appointment(models.Model):
    """
    A patient's booking of one doctor slot on one date.

    BUSINESS RULE: at most one non-cancelled appointment per
    (doctor, appointment_date, time_slot). Enforced by the partial unique
    constraint below; the slot availability check runs first.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    patient = models.ForeignKey(
        'Patient',
        on_delete=models.PROTECT,
        related_name='appointments'
    )
    doctor = models.ForeignKey(
        'Doctor',
        on_delete=models.PROTECT,
        related_name='appointments'
    )
    appointment_date = models.DateField()
    time_slot = models.CharField(max_length=5)
    reason = models.TextField()
    symptoms = models.JSONField(default=list, blank=True)
    appointment_type = models.CharField(
        max_length=20,
        choices=AppointmentTypeChoices.choices,
        default=AppointmentTypeChoices.CONSULTATION
    )
    status = models.CharField(
        max_length=20,
        choices=AppointmentStatusChoices.choices,
        default=AppointmentStatusChoices.SCHEDULED
    )

    # Cancellation
    cancellation_reason = models.TextField(blank=True, default='')
    cancelled_at = models.DateTimeField(blank=True, null=True)
    cancelled_by = models.CharField(
        max_length=10,
        choices=CancelledByChoices.choices,
        blank=True,
        default=''
    )

    # Clinical
    diagnosis = models.TextField(blank=True, default='')
    prescription = models.TextField(blank=True, default='')
    notes = models.TextField(blank=True, default='')
    follow_up_required = models.BooleanField(default=False)
    follow_up_date = models.DateField(blank=True, null=True)

    # Opaque reference owned by the billing system
    payment_id = models.CharField(max_length=100, blank=True, default='')

    notification_sent = models.BooleanField(default=False)
    reminder_sent = models.BooleanField(default=False)

    rescheduled_from = models.ForeignKey(
        'self',
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='rescheduled_to'
    )

    booking_date = models.DateTimeField(default=timezone.now)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'appointment'
        verbose_name = 'Appointment'
        verbose_name_plural = 'Appointments'
        ordering = ['-appointment_date', 'time_slot']
        constraints = [
            models.UniqueConstraint(
                fields=['doctor', 'appointment_date', 'time_slot'],
                condition=~Q(status='cancelled'),
                name='uniq_active_doctor_slot',
            ),
        ]
        indexes = [
            models.Index(fields=['patient', 'appointment_date'], name='idx_appointment_patient_date'),
            models.Index(fields=['doctor', 'appointment_date'], name='idx_appointment_doctor_date'),
            models.Index(fields=['status'], name='idx_appointment_status'),
        ]

    # BUSINESS RULE: Allowed status transitions
    _ALLOWED_TRANSITIONS = {
        'scheduled': ['confirmed', 'cancelled', 'no_show'],
        'confirmed': ['in_progress', 'cancelled', 'no_show'],
        'in_progress': ['completed'],
        'completed': [],  # Terminal state
        'cancelled': [],  # Terminal state
        'no_show': [],    # Terminal state
    }

    # Statuses from which cancel() is refused with InvalidStateError
    _NON_CANCELLABLE = ['in_progress', 'completed', 'no_show']

    SNAPSHOT_FIELDS = [
        'status', 'appointment_date', 'time_slot', 'appointment_type',
        'cancellation_reason', 'cancelled_by', 'diagnosis', 'prescription',
        'notes', 'follow_up_required', 'follow_up_date', 'payment_id',
        'notification_sent', 'reminder_sent',
    ]

    def __str__(self):
        return f"Appointment {self.appointment_date} {self.time_slot} - {self.patient}"

    def clean(self):
        """
        Model-level validation for admin forms.

        BUSINESS RULES:
        1. time_slot is an HH:MM label
        2. reason has the minimum length
        3. a new active appointment must target an available slot
        """
        errors = {}

        if self.time_slot and not TIME_LABEL_RE.match(self.time_slot):
            errors['time_slot'] = 'Time slot must be formatted as HH:MM'

        min_length = settings.APPOINTMENT_REASON_MIN_LENGTH
        if len((self.reason or '').strip()) < min_length:
            errors['reason'] = f'Reason must be at least {min_length} characters'

        if (
            not errors
            and self._state.adding
            and self.doctor_id
            and self.appointment_date
            and self.status != AppointmentStatusChoices.CANCELLED
            and not self._slot_is_available()
        ):
            errors['time_slot'] = SlotUnavailableError.default_message

        if errors:
            raise ValidationError(errors)

    # ------------------------------------------------------------------
    # Persistence hooks
    # ------------------------------------------------------------------

    def save(self, *args, **kwargs):
        """
        Insert hooks:
        - before: the slot must be among the doctor's available slots
          (skipped for records created directly as cancelled)
        - after: flip the slot to occupied; failure is logged, not raised
        """
        is_new = self._state.adding
        occupies_slot = self.status != AppointmentStatusChoices.CANCELLED

        if is_new and occupies_slot and not self._slot_is_available():
            raise SlotUnavailableError()

        super().save(*args, **kwargs)

        if is_new and occupies_slot:
            self._reserve_slot()

    def _slot_is_available(self):
        return any(
            slot.time == self.time_slot
            for slot in self.doctor.get_available_slots(self.appointment_date)
        )

    def _reserve_slot(self):
        try:
            with transaction.atomic():
                self.doctor.book_slot(self.appointment_date, self.time_slot)
        except (BookingError, DatabaseError) as exc:
            metrics.calendar_slot_reservation_failures_total.inc()
            logger.warning(
                'Slot reservation failed after appointment was stored',
                extra={
                    'event': 'calendar_slot_reservation_failed',
                    'appointment_id': str(self.id),
                    'doctor_id': str(self.doctor_id),
                    'error': str(exc),
                }
            )
            log_slot_reservation_failed(self, exc)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @classmethod
    def book(cls, patient, doctor, appointment_date, time_slot, reason,
             appointment_type=AppointmentTypeChoices.CONSULTATION,
             symptoms=None, rescheduled_from=None):
        """
        Create a scheduled appointment for an available slot.

        Raises:
            BookingValidationError: past date/slot, short reason, bad label
            SlotUnavailableError: slot not currently available
            BookingConflictError: a concurrent booking won the slot
        """
        day = to_calendar_day(appointment_date)
        validate_time_label(time_slot)
        ensure_bookable_in_future(day, time_slot)

        min_length = settings.APPOINTMENT_REASON_MIN_LENGTH
        if len((reason or '').strip()) < min_length:
            raise BookingValidationError(
                f'Reason must be at least {min_length} characters',
                errors={'reason': [f'Ensure this field has at least {min_length} characters.']}
            )

        if appointment_type not in AppointmentTypeChoices.values:
            raise BookingValidationError(
                f'Invalid appointment type: {appointment_type}',
                errors={'appointment_type': ['Not a valid choice.']}
            )

        appointment = cls(
            patient=patient,
            doctor=doctor,
            appointment_date=day,
            time_slot=time_slot,
            reason=reason,
            symptoms=list(symptoms or []),
            appointment_type=appointment_type,
            status=AppointmentStatusChoices.SCHEDULED,
            rescheduled_from=rescheduled_from,
        )

        with transaction.atomic():
            # Serialise writers on the same doctor/day where row locks exist
            doctor._day_schedule(day, for_update=True)
            try:
                with transaction.atomic():
                    appointment.save()
            except IntegrityError as exc:
                logger.warning(
                    'Double booking rejected by database constraint',
                    extra={
                        'event': 'appointment_booking_conflict',
                        'doctor_id': str(doctor.id),
                        'appointment_date': day.isoformat(),
                        'time_slot': time_slot,
                    }
                )
                raise BookingConflictError() from exc

        return appointment

    def cancel(self, reason='', cancelled_by=CancelledByChoices.PATIENT):
        """
        Cancel the appointment and free its slot.

        Raises:
            AlreadyCancelledError: appointment is already cancelled
            InvalidStateError: appointment is in progress, completed or no-show
        """
        if self.status == AppointmentStatusChoices.CANCELLED:
            raise AlreadyCancelledError()
        if self.status in self._NON_CANCELLABLE:
            raise InvalidStateError(
                f'Cannot cancel a {self.get_status_display().lower()} appointment'
            )
        if cancelled_by not in CancelledByChoices.values:
            raise BookingValidationError(
                f'Invalid cancelled_by: {cancelled_by}',
                errors={'cancelled_by': ['Not a valid choice.']}
            )

        with transaction.atomic():
            self.status = AppointmentStatusChoices.CANCELLED
            self.cancellation_reason = reason or ''
            self.cancelled_at = timezone.now()
            self.cancelled_by = cancelled_by
            self.save(update_fields=[
                'status', 'cancellation_reason', 'cancelled_at', 'cancelled_by', 'updated_at'
            ])
            self.doctor.release_slot(self.appointment_date, self.time_slot)

        return self

    def reschedule(self, new_date, new_time_slot):
        """
        Cancel this appointment (reason "Rescheduled") and book a replacement.

        Both steps share one transaction: if the new booking fails the
        cancellation is rolled back and this record is left untouched.

        Returns:
            The new Appointment, linked back through ``rescheduled_from``.
        """
        new_day = to_calendar_day(new_date)
        validate_time_label(new_time_slot)
        ensure_bookable_in_future(new_day, new_time_slot)

        try:
            with transaction.atomic():
                self.cancel('Rescheduled', CancelledByChoices.PATIENT)
                return Appointment.book(
                    patient=self.patient,
                    doctor=self.doctor,
                    appointment_date=new_day,
                    time_slot=new_time_slot,
                    reason=self.reason,
                    appointment_type=self.appointment_type,
                    symptoms=self.symptoms,
                    rescheduled_from=self,
                )
        except BookingError:
            if self.status == AppointmentStatusChoices.CANCELLED:
                self.refresh_from_db()
            raise

    def transition_status(self, new_status, reason='', cancelled_by=CancelledByChoices.ADMIN):
        """
        Transition appointment to a new status with validation.

        Entering ``cancelled`` goes through cancel() so the slot is released.

        Raises:
            InvalidStateError: transition not permitted from current status
        """
        if new_status not in AppointmentStatusChoices.values:
            raise BookingValidationError(
                f'Unknown status: {new_status}',
                errors={'status': ['Not a valid choice.']}
            )

        allowed = self._ALLOWED_TRANSITIONS.get(self.status, [])
        if not allowed:
            raise InvalidStateError(
                f'Status "{self.get_status_display()}" is terminal and cannot change'
            )
        if new_status not in allowed:
            raise InvalidStateError(
                f'Transition not allowed: {self.status} -> {new_status}. '
                f'Valid transitions: {", ".join(allowed)}'
            )

        if new_status == AppointmentStatusChoices.CANCELLED:
            return self.cancel(reason, cancelled_by)

        self.status = new_status
        self.save(update_fields=['status', 'updated_at'])
        return self

    def snapshot(self):
        """Field values used for before/after audit entries."""
        return {field: getattr(self, field) for field in self.SNAPSHOT_FIELDS}
