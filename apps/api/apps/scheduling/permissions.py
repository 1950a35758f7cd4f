"""
Scheduling permissions for API endpoints.

Role matrix:
- Read: Admin, Doctor, Staff, Patient (patients only see their own records)
- Book, cancel, reschedule: Admin, Doctor, Staff, Patient
- Status transitions, clinical edits: Admin, Doctor, Staff
- Doctor/patient profiles and doctor schedules: Admin, Staff
- Appointment delete and audit trail: Admin only
"""
from rest_framework import permissions

from apps.authz.models import RoleChoices
from apps.authz.permissions import get_user_roles

ALL_ROLES = {RoleChoices.ADMIN, RoleChoices.DOCTOR, RoleChoices.STAFF, RoleChoices.PATIENT}
CARE_TEAM_ROLES = {RoleChoices.ADMIN, RoleChoices.DOCTOR, RoleChoices.STAFF}
MANAGEMENT_ROLES = {RoleChoices.ADMIN, RoleChoices.STAFF}


def is_patient_only(request):
    """True when the user's only clinical role is Patient."""
    roles = get_user_roles(request)
    return RoleChoices.PATIENT in roles and not (roles & CARE_TEAM_ROLES)


class DoctorPermission(permissions.BasePermission):
    """
    Permission for Doctor endpoints.

    - Read (profiles, slots, schedule projection): all roles
    - Create/update profiles, add day schedules: Admin, Staff
    """

    def has_permission(self, request, view):
        user_roles = get_user_roles(request)
        if not user_roles:
            return False

        if request.method in permissions.SAFE_METHODS:
            return bool(user_roles & ALL_ROLES)

        return bool(user_roles & MANAGEMENT_ROLES)


class PatientPermission(permissions.BasePermission):
    """
    Permission for Patient endpoints.

    - Read: all roles; a Patient may only read their own profile
    - Create/update: Admin, Staff
    """

    def has_permission(self, request, view):
        user_roles = get_user_roles(request)
        if not user_roles:
            return False

        if request.method in permissions.SAFE_METHODS:
            return bool(user_roles & ALL_ROLES)

        return bool(user_roles & MANAGEMENT_ROLES)

    def has_object_permission(self, request, view, obj):
        if is_patient_only(request):
            return obj.user_id == request.user.id
        return True


class AppointmentPermission(permissions.BasePermission):
    """
    Permission for Appointment endpoints.

    - Read, create, cancel, reschedule: all roles
    - PATCH (clinical fields) and status transitions: Admin, Doctor, Staff
    - Delete and audit trail: Admin
    """

    PATIENT_ACTIONS = {'list', 'retrieve', 'create', 'cancel', 'reschedule'}

    def has_permission(self, request, view):
        user_roles = get_user_roles(request)
        if not user_roles:
            return False

        action = getattr(view, 'action', None)
        if request.method == 'DELETE' or action == 'audit':
            return RoleChoices.ADMIN in user_roles

        if action in self.PATIENT_ACTIONS:
            return bool(user_roles & ALL_ROLES)

        return bool(user_roles & CARE_TEAM_ROLES)

    def has_object_permission(self, request, view, obj):
        if is_patient_only(request):
            return obj.patient.user_id == request.user.id
        return True
