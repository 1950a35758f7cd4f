"""
Health check endpoints.

Provides /healthz and /readyz endpoints for monitoring.
"""
import logging

import pytz
from django.conf import settings
from django.db import connection
from django.http import JsonResponse
from django.views import View

logger = logging.getLogger(__name__)


class HealthzView(View):
    """
    Liveness probe. Returns 200 while the process is serving requests.
    """

    def get(self, request):
        health_data = {
            'status': 'ok',
            'service': 'medibook-api',
            'version': getattr(settings, 'VERSION', 'unknown'),
        }

        commit_hash = getattr(settings, 'COMMIT_HASH', None)
        if commit_hash:
            health_data['commit'] = commit_hash

        return JsonResponse(health_data, status=200)


class ReadyzView(View):
    """
    Readiness probe.

    Checks the database connection and that the clinic time zone used for
    calendar-day arithmetic resolves.
    """

    def get(self, request):
        checks = {
            'database': self._check_database(),
            'clinic_time_zone': self._check_time_zone(),
        }

        all_healthy = all(checks.values())

        response_data = {
            'status': 'ready' if all_healthy else 'not_ready',
            'checks': checks,
        }

        return JsonResponse(response_data, status=200 if all_healthy else 503)

    def _check_database(self):
        try:
            with connection.cursor() as cursor:
                cursor.execute('SELECT 1')
                return True
        except Exception as e:
            logger.error(
                'Database health check failed',
                extra={
                    'event': 'health_check_failed',
                    'check': 'database',
                    'error': str(e)
                }
            )
            return False

    def _check_time_zone(self):
        name = getattr(settings, 'CLINIC_TIME_ZONE', settings.TIME_ZONE)
        try:
            pytz.timezone(name)
            return True
        except pytz.UnknownTimeZoneError:
            logger.error(
                'Clinic time zone health check failed',
                extra={
                    'event': 'health_check_failed',
                    'check': 'clinic_time_zone',
                    'time_zone': name,
                }
            )
            return False
