"""
Metrics instrumentation wrapper around the Prometheus client.
"""
import logging
import time
from functools import wraps

from prometheus_client import Counter, Histogram

logger = logging.getLogger(__name__)


class MetricsRegistry:
    """
    Central metrics registry for MediBook.

    Provides typed access to all application metrics.
    """

    def __init__(self):
        """Initialize metrics registry."""
        self._setup_metrics()

    def _create_counter(self, name, description, labels=None):
        """Create a counter metric."""
        return Counter(name, description, labels or [])

    def _create_histogram(self, name, description, labels=None, buckets=None):
        """Create a histogram metric."""
        if buckets:
            return Histogram(name, description, labels or [], buckets=buckets)
        return Histogram(name, description, labels or [])

    def _setup_metrics(self):
        """Setup all application metrics."""

        # ===================================================================
        # HTTP Metrics
        # ===================================================================
        self.http_requests_total = self._create_counter(
            'http_requests_total',
            'Total HTTP requests',
            ['path', 'method', 'status']
        )

        self.exceptions_total = self._create_counter(
            'exceptions_total',
            'Total exceptions',
            ['exception_type', 'location']
        )

        # ===================================================================
        # Booking Metrics
        # ===================================================================
        self.appointments_booked_total = self._create_counter(
            'appointments_booked_total',
            'Appointment booking attempts',
            ['result']  # success, failure
        )

        self.appointment_booking_conflicts_total = self._create_counter(
            'appointment_booking_conflicts_total',
            'Bookings rejected by the double-booking constraint'
        )

        self.appointment_booking_duration_seconds = self._create_histogram(
            'appointment_booking_duration_seconds',
            'Duration of appointment creation',
            buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5]
        )

        self.appointment_cancellations_total = self._create_counter(
            'appointment_cancellations_total',
            'Appointment cancellations',
            ['cancelled_by']
        )

        self.appointment_transitions_total = self._create_counter(
            'appointment_transitions_total',
            'Appointment status transitions',
            ['from_status', 'to_status']
        )

        self.calendar_slot_reservation_failures_total = self._create_counter(
            'calendar_slot_reservation_failures_total',
            'Slot reservations that failed after the appointment was stored'
        )

        # ===================================================================
        # Audit Metrics
        # ===================================================================
        self.auditlog_created_total = self._create_counter(
            'auditlog_created_total',
            'Audit log entries created',
            ['action', 'severity']
        )

        self.auditlog_write_failures_total = self._create_counter(
            'auditlog_write_failures_total',
            'Audit log entries that could not be stored'
        )

    def track_duration(self, histogram_metric):
        """
        Decorator to track function duration.

        Usage:
            @metrics.track_duration(metrics.appointment_booking_duration_seconds)
            def create_appointment(...):
                ...
        """
        def decorator(func):
            @wraps(func)
            def wrapper(*args, **kwargs):
                start_time = time.time()
                try:
                    return func(*args, **kwargs)
                finally:
                    duration = time.time() - start_time
                    histogram_metric.observe(duration)
            return wrapper
        return decorator


# Global metrics instance
metrics = MetricsRegistry()
