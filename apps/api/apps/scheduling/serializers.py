"""
Scheduling serializers.
"""
from rest_framework import serializers

from .calendar import TIME_LABEL_RE
from .models import (
    Appointment,
    AppointmentStatusChoices,
    AppointmentTypeChoices,
    CancelledByChoices,
    DaySchedule,
    Doctor,
    Patient,
)


def _validate_label(value):
    if not TIME_LABEL_RE.match(value):
        raise serializers.ValidationError('Time slot must be formatted as HH:MM.')
    return value


# ============================================================================
# Summaries (embedded in appointment responses)
# ============================================================================

class PatientSummarySerializer(serializers.ModelSerializer):
    name = serializers.CharField(source='full_name', read_only=True)

    class Meta:
        model = Patient
        fields = ['id', 'name', 'email', 'phone', 'health_card_number']


class DoctorSummarySerializer(serializers.ModelSerializer):
    name = serializers.CharField(source='full_name', read_only=True)

    class Meta:
        model = Doctor
        fields = ['id', 'name', 'specialty', 'consultation_fee']


# ============================================================================
# Profiles
# ============================================================================

class PatientSerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(read_only=True)
    allergies = serializers.ListField(
        child=serializers.CharField(max_length=100),
        required=False
    )

    class Meta:
        model = Patient
        fields = [
            'id', 'user', 'first_name', 'last_name', 'full_name', 'email',
            'phone', 'date_of_birth', 'gender', 'health_card_number',
            'blood_type', 'allergies', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'full_name', 'created_at', 'updated_at']


class DoctorSerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(read_only=True)

    class Meta:
        model = Doctor
        fields = [
            'id', 'user', 'first_name', 'last_name', 'full_name', 'email',
            'phone', 'specialty', 'license_number', 'qualification',
            'experience_years', 'department', 'consultation_fee',
            'hospital_affiliation', 'rating', 'is_active',
            'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'full_name', 'created_at', 'updated_at']


# ============================================================================
# Calendar
# ============================================================================

class SlotListSerializer(serializers.Serializer):
    time = serializers.CharField()
    is_available = serializers.BooleanField()


class DayScheduleSerializer(serializers.ModelSerializer):
    slots = SlotListSerializer(many=True, read_only=True)

    class Meta:
        model = DaySchedule
        fields = ['date', 'slots']


class DayScheduleWriteSerializer(serializers.Serializer):
    date = serializers.DateField()
    time_slots = serializers.ListField(
        child=serializers.CharField(max_length=5, validators=[_validate_label]),
        allow_empty=False
    )


class ScheduleDoctorSerializer(serializers.Serializer):
    id = serializers.UUIDField()
    name = serializers.CharField()
    specialty = serializers.CharField()
    consultation_fee = serializers.DecimalField(max_digits=10, decimal_places=2)


class DoctorScheduleSerializer(serializers.Serializer):
    """Projection returned by GET /doctors/{id}/schedule/?date=..."""
    doctor = ScheduleDoctorSerializer()
    date = serializers.DateField()
    available_slots = serializers.ListField(child=serializers.CharField())


# ============================================================================
# Appointments
# ============================================================================

class AppointmentSerializer(serializers.ModelSerializer):
    """Read serializer with populated patient and doctor summaries."""
    patient = PatientSummarySerializer(read_only=True)
    doctor = DoctorSummarySerializer(read_only=True)

    class Meta:
        model = Appointment
        fields = [
            'id', 'patient', 'doctor', 'appointment_date', 'time_slot',
            'reason', 'symptoms', 'appointment_type', 'status',
            'cancellation_reason', 'cancelled_at', 'cancelled_by',
            'diagnosis', 'prescription', 'notes', 'follow_up_required',
            'follow_up_date', 'payment_id', 'notification_sent',
            'reminder_sent', 'rescheduled_from', 'booking_date',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields


class AppointmentCreateSerializer(serializers.Serializer):
    patient_id = serializers.UUIDField(required=False)
    doctor_id = serializers.UUIDField()
    appointment_date = serializers.DateField()
    time_slot = serializers.CharField(max_length=5, validators=[_validate_label])
    reason = serializers.CharField()
    appointment_type = serializers.ChoiceField(
        choices=AppointmentTypeChoices.choices,
        required=False
    )
    symptoms = serializers.ListField(
        child=serializers.CharField(max_length=255),
        required=False
    )


class AppointmentUpdateSerializer(serializers.Serializer):
    diagnosis = serializers.CharField(required=False, allow_blank=True)
    prescription = serializers.CharField(required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)
    follow_up_required = serializers.BooleanField(required=False)
    follow_up_date = serializers.DateField(required=False, allow_null=True)
    payment_id = serializers.CharField(required=False, allow_blank=True, max_length=100)
    notification_sent = serializers.BooleanField(required=False)
    reminder_sent = serializers.BooleanField(required=False)
    status = serializers.ChoiceField(choices=AppointmentStatusChoices.choices, required=False)
    cancellation_reason = serializers.CharField(required=False, allow_blank=True)


class CancelAppointmentSerializer(serializers.Serializer):
    reason = serializers.CharField(allow_blank=True, default='')
    cancelled_by = serializers.ChoiceField(choices=CancelledByChoices.choices, required=False)


class RescheduleAppointmentSerializer(serializers.Serializer):
    new_date = serializers.DateField()
    new_time_slot = serializers.CharField(max_length=5, validators=[_validate_label])


class TransitionSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=AppointmentStatusChoices.choices)
    reason = serializers.CharField(allow_blank=True, default='')
