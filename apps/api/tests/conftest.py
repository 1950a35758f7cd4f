"""
Global test fixtures for pytest.

Provides reusable fixtures for API and service testing:
- Authenticated API clients by role
- Model instances (Patient, Doctor with a calendar, Appointment)
- An in-memory audit sink for AppointmentService
"""
from datetime import timedelta
from decimal import Decimal

import pytest
from rest_framework.test import APIClient

from apps.authz.models import User, Role, UserRole, RoleChoices
from apps.core.observability.correlation import clear_request_context
from apps.scheduling.calendar import clinic_today
from apps.scheduling.models import Doctor, Patient, SpecialtyChoices
from apps.scheduling.services import AppointmentService


def create_user_with_role(email, role_name, **extra):
    """Helper function to create user with role"""
    user = User.objects.create_user(
        email=email,
        password='testpass123',
        is_active=True,
        **extra
    )
    role, _ = Role.objects.get_or_create(
        name=role_name,
        defaults={'name': role_name}
    )
    UserRole.objects.create(user=user, role=role)
    return user


def client_for(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client


class RecordingAuditSink:
    """Audit sink that keeps entries in memory."""

    def __init__(self):
        self.entries = []

    def append(self, entry):
        self.entries.append(entry)
        return entry

    def actions(self):
        return [entry.action for entry in self.entries]


@pytest.fixture(autouse=True)
def _reset_correlation_context():
    yield
    clear_request_context()


# ============================================================================
# Dates
# ============================================================================

@pytest.fixture
def future_day():
    """A clinic calendar day one week from today."""
    return clinic_today() + timedelta(days=7)


@pytest.fixture
def next_future_day(future_day):
    return future_day + timedelta(days=1)


@pytest.fixture
def yesterday():
    return clinic_today() - timedelta(days=1)


# ============================================================================
# Users & API Clients
# ============================================================================

@pytest.fixture
def api_client():
    """Unauthenticated DRF API client."""
    return APIClient()


@pytest.fixture
def admin_user(db):
    return create_user_with_role(
        'admin@test.com', RoleChoices.ADMIN,
        first_name='Ada', last_name='Admin', is_staff=True, is_superuser=True
    )


@pytest.fixture
def staff_user(db):
    return create_user_with_role('staff@test.com', RoleChoices.STAFF, first_name='Sam', last_name='Staff')


@pytest.fixture
def doctor_user(db):
    return create_user_with_role('doctor@test.com', RoleChoices.DOCTOR, first_name='Gregory', last_name='House')


@pytest.fixture
def patient_user(db):
    return create_user_with_role('patient@test.com', RoleChoices.PATIENT, first_name='John', last_name='Doe')


@pytest.fixture
def admin_client(admin_user):
    """Authenticated API client with Admin role."""
    return client_for(admin_user)


@pytest.fixture
def staff_client(staff_user):
    """Authenticated API client with Staff role."""
    return client_for(staff_user)


@pytest.fixture
def doctor_client(doctor_user, doctor):
    """Authenticated API client with Doctor role (linked to ``doctor``)."""
    return client_for(doctor_user)


@pytest.fixture
def patient_client(patient_user, patient):
    """Authenticated API client with Patient role (linked to ``patient``)."""
    return client_for(patient_user)


# ============================================================================
# Model Fixtures
# ============================================================================

@pytest.fixture
def patient(db, patient_user):
    return Patient.objects.create(
        user=patient_user,
        first_name='John',
        last_name='Doe',
        email='john.doe@example.com',
        phone='+15550000001',
        date_of_birth='1985-04-12',
        gender='male',
        health_card_number='HC-0001',
    )


@pytest.fixture
def other_patient(db):
    return Patient.objects.create(
        first_name='Jane',
        last_name='Roe',
        email='jane.roe@example.com',
        phone='+15550000002',
        health_card_number='HC-0002',
    )


@pytest.fixture
def doctor(db, doctor_user, future_day, next_future_day):
    """
    Active cardiologist with two scheduled days:
    - future_day: 09:00, 09:30, 10:00
    - next_future_day: 09:00, 10:00, 11:00
    """
    doctor = Doctor.objects.create(
        user=doctor_user,
        first_name='Gregory',
        last_name='House',
        email='house@hospital.test',
        phone='+15550000100',
        specialty=SpecialtyChoices.CARDIOLOGY,
        license_number='LIC-100',
        qualification='MD',
        experience_years=12,
        consultation_fee=Decimal('150.00'),
    )
    doctor.add_day_schedule(future_day, ['09:00', '09:30', '10:00'])
    doctor.add_day_schedule(next_future_day, ['09:00', '10:00', '11:00'])
    return doctor


@pytest.fixture
def inactive_doctor(db, future_day):
    doctor = Doctor.objects.create(
        first_name='Retired',
        last_name='Doc',
        email='retired@hospital.test',
        phone='+15550000200',
        specialty=SpecialtyChoices.GENERAL,
        license_number='LIC-200',
        qualification='MD',
        consultation_fee=Decimal('80.00'),
        is_active=False,
    )
    doctor.add_day_schedule(future_day, ['09:00'])
    return doctor


# ============================================================================
# Service Fixtures
# ============================================================================

@pytest.fixture
def audit_sink():
    return RecordingAuditSink()


@pytest.fixture
def service(audit_sink):
    return AppointmentService(audit_sink=audit_sink)


@pytest.fixture
def booking_data(patient, doctor, future_day):
    """Factory for create_appointment payloads; keyword args override defaults."""
    def _make(**overrides):
        data = {
            'patient_id': patient.id,
            'doctor_id': doctor.id,
            'appointment_date': future_day,
            'time_slot': '09:00',
            'reason': 'Annual physical checkup',
        }
        data.update(overrides)
        return data
    return _make


@pytest.fixture
def appointment(service, booking_data):
    """A scheduled appointment at future_day 09:00."""
    return service.create_appointment(booking_data())
