"""
Tests for role bootstrap and the development seed command.
"""
from datetime import timedelta
from io import StringIO

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError

from apps.authz.models import Role, User
from apps.scheduling.calendar import clinic_today
from apps.scheduling.models import DaySchedule, Doctor


def run_seed(*args):
    out = StringIO()
    call_command('seed_admin_doctor', *args, stdout=out)
    return out.getvalue()


@pytest.mark.django_db
class TestRoleBootstrap:

    def test_migration_creates_fixed_roles(self):
        names = set(Role.objects.values_list('name', flat=True))

        assert {'admin', 'doctor', 'staff', 'patient'} <= names


@pytest.mark.django_db
class TestSeedAdminDoctor:

    def test_creates_admin_and_doctor_profile(self):
        output = run_seed('--admin-email', 'Root@Example.com', '--doctor-email', 'jane@example.com')

        admin = User.objects.get(email='root@example.com')
        doctor = Doctor.objects.get(user__email='jane@example.com')
        assert admin.is_superuser
        assert admin.role_names == {'admin'}
        assert doctor.user.role_names == {'doctor'}
        assert doctor.full_name == 'Dr. Jane Smith'
        assert 'Seeding complete' in output

    def test_opens_future_days(self):
        run_seed('--days', '2', '--slots', '08:00', '08:30')

        doctor = Doctor.objects.get(email='doctor@example.com')
        tomorrow = clinic_today() + timedelta(days=1)
        assert [s.time for s in doctor.get_available_slots(tomorrow)] == ['08:00', '08:30']
        assert DaySchedule.objects.filter(doctor=doctor).count() == 2

    def test_rerun_is_a_noop(self):
        run_seed('--days', '1')
        run_seed('--days', '1')

        assert User.objects.filter(email='doctor@example.com').count() == 1
        assert Doctor.objects.count() == 1
        assert DaySchedule.objects.count() == 1

    def test_invalid_slot_label_fails(self):
        with pytest.raises(CommandError):
            run_seed('--days', '1', '--slots', 'noon')

        assert not Doctor.objects.exists()
