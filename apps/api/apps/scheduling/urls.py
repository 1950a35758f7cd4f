"""
Scheduling URLs - Doctors, Patients, Appointments.
"""
from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import AppointmentViewSet, DoctorViewSet, PatientViewSet

router = DefaultRouter()
router.register(r'doctors', DoctorViewSet, basename='doctor')
router.register(r'patients', PatientViewSet, basename='patient')
router.register(r'appointments', AppointmentViewSet, basename='appointment')

urlpatterns = [
    path('', include(router.urls)),
]
