from django.contrib import admin
from .models import Patient, Doctor, DaySchedule, Slot, Appointment


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ['first_name', 'last_name', 'email', 'phone', 'health_card_number', 'created_at']
    list_filter = ['gender']
    search_fields = ['first_name', 'last_name', 'email', 'phone', 'health_card_number']
    readonly_fields = ['id', 'created_at', 'updated_at']
    autocomplete_fields = ['user']

    fieldsets = (
        ('Basic Info', {
            'fields': ('id', 'user', 'first_name', 'last_name', 'date_of_birth', 'gender')
        }),
        ('Contact', {
            'fields': ('email', 'phone')
        }),
        ('Medical', {
            'fields': ('health_card_number', 'blood_type', 'allergies')
        }),
        ('Audit', {
            'fields': ('created_at', 'updated_at')
        }),
    )


class SlotInline(admin.TabularInline):
    model = Slot
    extra = 0


@admin.register(DaySchedule)
class DayScheduleAdmin(admin.ModelAdmin):
    list_display = ['doctor', 'date', 'created_at']
    list_filter = ['date']
    search_fields = ['doctor__first_name', 'doctor__last_name']
    autocomplete_fields = ['doctor']
    inlines = [SlotInline]


@admin.register(Doctor)
class DoctorAdmin(admin.ModelAdmin):
    list_display = ['last_name', 'first_name', 'specialty', 'department', 'consultation_fee', 'is_active']
    list_filter = ['specialty', 'is_active']
    search_fields = ['first_name', 'last_name', 'email', 'license_number']
    readonly_fields = ['id', 'created_at', 'updated_at']
    autocomplete_fields = ['user']


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = ['appointment_date', 'time_slot', 'patient', 'doctor', 'status', 'appointment_type']
    list_filter = ['status', 'appointment_type', 'appointment_date']
    search_fields = ['patient__first_name', 'patient__last_name', 'doctor__last_name']
    readonly_fields = ['id', 'booking_date', 'cancelled_at', 'rescheduled_from', 'created_at', 'updated_at']
    autocomplete_fields = ['patient', 'doctor']
    date_hierarchy = 'appointment_date'
