"""Ops app configuration."""
from django.apps import AppConfig


class OpsConfig(AppConfig):
    """Configuration for ops app."""
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.ops'
    verbose_name = 'Audit Trail'
