"""
Scheduling viewsets for Doctor, Patient and Appointment.

Views validate request shape and delegate every booking rule to
AppointmentService; domain errors are rendered by the API exception handler.
"""
from django.db.models import Q
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.response import Response

from apps.core.observability.correlation import set_user_context
from apps.ops.audit import DatabaseAuditSink, entity_audit_trail
from apps.ops.serializers import AuditLogSerializer

from .exceptions import BookingValidationError
from .models import CancelledByChoices, Doctor, Patient
from .permissions import (
    AppointmentPermission,
    DoctorPermission,
    PatientPermission,
    is_patient_only,
)
from .serializers import (
    AppointmentCreateSerializer,
    AppointmentSerializer,
    AppointmentUpdateSerializer,
    CancelAppointmentSerializer,
    DayScheduleSerializer,
    DayScheduleWriteSerializer,
    DoctorScheduleSerializer,
    DoctorSerializer,
    PatientSerializer,
    RescheduleAppointmentSerializer,
    SlotListSerializer,
    TransitionSerializer,
)
from .services import AppointmentService, cancelled_by_for_user


def _required_date_param(request):
    value = request.query_params.get('date')
    if not value:
        raise BookingValidationError(
            'The "date" query parameter is required',
            errors={'date': ['This query parameter is required.']}
        )
    return value


class BookingViewMixin:
    """Shared request setup for scheduling viewsets."""

    def initial(self, request, *args, **kwargs):
        super().initial(request, *args, **kwargs)
        # JWT auth resolves inside DRF, after the correlation middleware ran
        set_user_context(request.user)

    def get_service(self):
        return AppointmentService(audit_sink=DatabaseAuditSink(request=self.request))


class DoctorViewSet(BookingViewMixin, viewsets.ModelViewSet):
    """
    ViewSet for Doctor endpoints.

    Endpoints:
    - GET/POST /api/v1/doctors/
    - GET/PATCH /api/v1/doctors/{id}/
    - GET/POST /api/v1/doctors/{id}/schedule/
    - GET /api/v1/doctors/{id}/slots/?date=YYYY-MM-DD
    """
    serializer_class = DoctorSerializer
    permission_classes = [DoctorPermission]
    http_method_names = ['get', 'post', 'patch', 'head', 'options']

    def get_queryset(self):
        """
        Filters:
        - specialty: exact specialty value
        - is_active: true|false
        - q: name search
        """
        queryset = Doctor.objects.all()

        specialty = self.request.query_params.get('specialty')
        if specialty:
            queryset = queryset.filter(specialty=specialty)

        is_active = self.request.query_params.get('is_active')
        if is_active is not None:
            queryset = queryset.filter(is_active=is_active.lower() == 'true')

        q = self.request.query_params.get('q')
        if q:
            queryset = queryset.filter(
                Q(first_name__icontains=q) | Q(last_name__icontains=q)
            )

        return queryset.order_by('last_name', 'first_name')

    @action(detail=True, methods=['get', 'post'], url_path='schedule')
    def schedule(self, request, pk=None):
        """
        GET  /api/v1/doctors/{id}/schedule/?date=YYYY-MM-DD
            Doctor summary with the available slot labels for the date.

        POST /api/v1/doctors/{id}/schedule/
            {"date": "2025-03-01", "time_slots": ["09:00", "09:30"]}
            Adds the day (or merges new labels into an existing day).
        """
        doctor = self.get_object()
        service = self.get_service()

        if request.method == 'GET':
            projection = service.get_doctor_schedule(doctor.id, _required_date_param(request))
            return Response(DoctorScheduleSerializer(projection).data)

        serializer = DayScheduleWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        schedule = service.add_doctor_schedule(
            doctor.id,
            serializer.validated_data['date'],
            serializer.validated_data['time_slots'],
            performed_by=request.user,
        )
        return Response(DayScheduleSerializer(schedule).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['get'], url_path='slots')
    def slots(self, request, pk=None):
        """GET /api/v1/doctors/{id}/slots/?date=YYYY-MM-DD - available slots."""
        doctor = self.get_object()
        available = doctor.get_available_slots(_required_date_param(request))
        return Response(SlotListSerializer(available, many=True).data)


class PatientViewSet(BookingViewMixin, viewsets.ModelViewSet):
    """
    ViewSet for Patient endpoints.

    Endpoints:
    - GET/POST /api/v1/patients/
    - GET/PATCH /api/v1/patients/{id}/
    - GET /api/v1/patients/{id}/appointments/upcoming/
    - GET /api/v1/patients/{id}/appointments/history/
    """
    serializer_class = PatientSerializer
    permission_classes = [PatientPermission]
    http_method_names = ['get', 'post', 'patch', 'head', 'options']

    def get_queryset(self):
        queryset = Patient.objects.all()

        # Patients only ever see their own profile
        if is_patient_only(self.request):
            queryset = queryset.filter(user=self.request.user)

        q = self.request.query_params.get('q')
        if q:
            queryset = queryset.filter(
                Q(first_name__icontains=q) |
                Q(last_name__icontains=q) |
                Q(email__icontains=q) |
                Q(health_card_number__iexact=q)
            )

        return queryset.order_by('last_name', 'first_name')

    @action(detail=True, methods=['get'], url_path='appointments/upcoming')
    def upcoming(self, request, pk=None):
        patient = self.get_object()
        appointments = self.get_service().get_upcoming_appointments(patient.id)
        return Response(AppointmentSerializer(appointments, many=True).data)

    @action(detail=True, methods=['get'], url_path='appointments/history')
    def history(self, request, pk=None):
        patient = self.get_object()
        appointments = self.get_service().get_appointment_history(patient.id)
        return Response(AppointmentSerializer(appointments, many=True).data)


class AppointmentViewSet(BookingViewMixin, viewsets.ModelViewSet):
    """
    ViewSet for Appointment endpoints.

    Endpoints:
    - GET/POST /api/v1/appointments/
    - GET/PATCH/DELETE /api/v1/appointments/{id}/
    - POST /api/v1/appointments/{id}/cancel/
    - POST /api/v1/appointments/{id}/reschedule/
    - POST /api/v1/appointments/{id}/transition/
    - GET /api/v1/appointments/{id}/audit/
    """
    serializer_class = AppointmentSerializer
    permission_classes = [AppointmentPermission]
    http_method_names = ['get', 'post', 'patch', 'delete', 'head', 'options']

    def get_queryset(self):
        """
        Filters:
        - patient, doctor: UUIDs
        - status: appointment status
        - start_date, end_date: inclusive date range
        """
        params = self.request.query_params
        filters = {
            key: params.get(key)
            for key in ('patient', 'doctor', 'status', 'start_date', 'end_date')
            if params.get(key)
        }
        queryset = self.get_service().get_all_appointments(filters)

        if is_patient_only(self.request):
            queryset = queryset.filter(patient__user=self.request.user)

        return queryset

    def create(self, request, *args, **kwargs):
        """
        POST /api/v1/appointments/

        Patients always book for their own profile; other roles must send
        patient_id.
        """
        serializer = AppointmentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)

        if is_patient_only(request):
            profile = getattr(request.user, 'patient_profile', None)
            if profile is None:
                raise PermissionDenied('No patient profile is linked to this account')
            data['patient_id'] = profile.id
        elif not data.get('patient_id'):
            raise BookingValidationError(
                'patient_id is required',
                errors={'patient_id': ['This field is required.']}
            )

        appointment = self.get_service().create_appointment(data, performed_by=request.user)
        return Response(AppointmentSerializer(appointment).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        """PATCH /api/v1/appointments/{id}/ - clinical fields and status."""
        instance = self.get_object()
        serializer = AppointmentUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        appointment = self.get_service().update_appointment(
            instance.id, serializer.validated_data, performed_by=request.user
        )
        return Response(AppointmentSerializer(appointment).data)

    def destroy(self, request, *args, **kwargs):
        """DELETE /api/v1/appointments/{id}/ - hard delete (Admin only)."""
        instance = self.get_object()
        self.get_service().delete_appointment(instance.id, performed_by=request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=['post'], url_path='cancel')
    def cancel(self, request, pk=None):
        """
        POST /api/v1/appointments/{id}/cancel/

        Request body:
        {
            "reason": "Feeling better",
            "cancelled_by": "patient"   # optional, derived from role
        }
        """
        instance = self.get_object()
        serializer = CancelAppointmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        if is_patient_only(request):
            cancelled_by = CancelledByChoices.PATIENT
        else:
            cancelled_by = serializer.validated_data.get('cancelled_by') or cancelled_by_for_user(request.user)

        appointment = self.get_service().cancel_appointment(
            instance.id,
            reason=serializer.validated_data['reason'],
            cancelled_by=cancelled_by,
            performed_by=request.user,
        )
        return Response(AppointmentSerializer(appointment).data)

    @action(detail=True, methods=['post'], url_path='reschedule')
    def reschedule(self, request, pk=None):
        """
        POST /api/v1/appointments/{id}/reschedule/

        Request body:
        {
            "new_date": "2025-03-02",
            "new_time_slot": "10:00"
        }

        Returns the new appointment (201); the old one is cancelled with
        reason "Rescheduled".
        """
        instance = self.get_object()
        serializer = RescheduleAppointmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        appointment = self.get_service().reschedule_appointment(
            instance.id,
            serializer.validated_data['new_date'],
            serializer.validated_data['new_time_slot'],
            performed_by=request.user,
        )
        return Response(AppointmentSerializer(appointment).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'], url_path='transition')
    def transition_status(self, request, pk=None):
        """
        POST /api/v1/appointments/{id}/transition/

        Request body:
        {
            "status": "confirmed",
            "reason": "..."   # used when cancelling
        }

        Allowed transitions:
        - scheduled -> confirmed | cancelled | no_show
        - confirmed -> in_progress | cancelled | no_show
        - in_progress -> completed
        """
        instance = self.get_object()
        serializer = TransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        appointment = self.get_service().transition_status(
            instance.id,
            serializer.validated_data['status'],
            performed_by=request.user,
            reason=serializer.validated_data['reason'],
        )
        return Response(AppointmentSerializer(appointment).data)

    @action(detail=True, methods=['get'], url_path='audit')
    def audit(self, request, pk=None):
        """GET /api/v1/appointments/{id}/audit/ - audit trail, newest first (Admin only)."""
        instance = self.get_object()
        entries = entity_audit_trail('Appointment', instance.id)
        return Response(AuditLogSerializer(entries, many=True).data)
