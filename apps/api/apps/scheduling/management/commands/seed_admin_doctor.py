"""
Django management command to seed an admin and a doctor for development.

Usage:
    python manage.py seed_admin_doctor
    python manage.py seed_admin_doctor --days 5 --slots 09:00 09:30 10:00

Credentials default to SEED_ADMIN_EMAIL / SEED_ADMIN_PASSWORD and
SEED_DOCTOR_EMAIL / SEED_DOCTOR_PASSWORD.

FOR DEVELOPMENT ONLY - DO NOT USE IN PRODUCTION
"""
import os
from datetime import timedelta
from decimal import Decimal

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from apps.authz.models import Role, RoleChoices, User, UserRole
from apps.scheduling.calendar import clinic_today
from apps.scheduling.exceptions import BookingValidationError
from apps.scheduling.models import Doctor, SpecialtyChoices

DEFAULT_PASSWORD = 'Password123!'
DEFAULT_SLOTS = ['09:00', '09:30', '10:00', '10:30', '11:00', '11:30']


class Command(BaseCommand):
    help = 'Create a development admin and doctor (with profile and optional schedule)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--admin-email',
            default=os.environ.get('SEED_ADMIN_EMAIL', 'admin@example.com'),
        )
        parser.add_argument(
            '--admin-password',
            default=os.environ.get('SEED_ADMIN_PASSWORD', DEFAULT_PASSWORD),
        )
        parser.add_argument(
            '--doctor-email',
            default=os.environ.get('SEED_DOCTOR_EMAIL', 'doctor@example.com'),
        )
        parser.add_argument(
            '--doctor-password',
            default=os.environ.get('SEED_DOCTOR_PASSWORD', DEFAULT_PASSWORD),
        )
        parser.add_argument(
            '--days',
            type=int,
            default=0,
            help='Open this many day schedules starting tomorrow',
        )
        parser.add_argument(
            '--slots',
            nargs='+',
            default=DEFAULT_SLOTS,
            help='HH:MM labels for each opened day',
        )

    def handle(self, *args, **options):
        if options['days'] < 0:
            raise CommandError('--days must be zero or positive')

        with transaction.atomic():
            admin = self._ensure_user(
                options['admin_email'],
                options['admin_password'],
                RoleChoices.ADMIN,
                is_staff=True,
                is_superuser=True,
            )
            doctor_user = self._ensure_user(
                options['doctor_email'],
                options['doctor_password'],
                RoleChoices.DOCTOR,
                first_name='Jane',
                last_name='Smith',
            )
            doctor = self._ensure_doctor_profile(doctor_user)

            today = clinic_today()
            for offset in range(1, options['days'] + 1):
                try:
                    doctor.add_day_schedule(today + timedelta(days=offset), options['slots'])
                except BookingValidationError as exc:
                    raise CommandError(exc.message)

        self.stdout.write('')
        self.stdout.write('=' * 70)
        self.stdout.write(self.style.SUCCESS('Seeding complete. You can login with:'))
        self.stdout.write(f'  Admin:  {admin.email}')
        self.stdout.write(f'  Doctor: {doctor_user.email}')
        if options['days']:
            self.stdout.write(f'  Opened {options["days"]} day(s) with {len(options["slots"])} slot(s) each')
        self.stdout.write('=' * 70)
        self.stdout.write(self.style.WARNING('FOR DEVELOPMENT ONLY'))

    def _ensure_user(self, email, password, role_name, **extra):
        email = email.lower()
        user = User.objects.filter(email=email).first()
        if user:
            self.stdout.write(self.style.WARNING(f'User "{email}" already exists'))
        else:
            user = User.objects.create_user(email=email, password=password, is_active=True, **extra)
            self.stdout.write(self.style.SUCCESS(f'Created {role_name} user "{email}"'))

        role, _ = Role.objects.get_or_create(name=role_name)
        UserRole.objects.get_or_create(user=user, role=role)
        return user

    def _ensure_doctor_profile(self, user):
        doctor = Doctor.objects.filter(user=user).first() or Doctor.objects.filter(email=user.email).first()
        if doctor:
            self.stdout.write(self.style.WARNING(f'Doctor profile already exists for "{user.email}"'))
            return doctor

        doctor = Doctor.objects.create(
            user=user,
            first_name=user.first_name or 'Jane',
            last_name=user.last_name or 'Smith',
            email=user.email,
            phone='+10000000000',
            specialty=SpecialtyChoices.GENERAL,
            license_number='LIC-DEV-0001',
            qualification='MBBS',
            experience_years=8,
            department='General Medicine',
            consultation_fee=Decimal('2500.00'),
        )
        self.stdout.write(self.style.SUCCESS(f'Created Doctor profile for "{user.email}"'))
        return doctor
