from django.contrib import admin
from .models import AuditLog


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ['timestamp', 'action', 'entity_type', 'entity_id', 'performed_by_type', 'severity', 'status']
    list_filter = ['action', 'severity', 'status', 'performed_by_type']
    search_fields = ['entity_id', 'performed_by_id', 'performed_by_name']
    readonly_fields = [f.name for f in AuditLog._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
