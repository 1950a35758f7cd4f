"""
Booking error taxonomy.

Services raise these; the API exception handler maps them to HTTP
responses using ``status_code`` and ``code``.
"""


class BookingError(Exception):
    """Base class for every booking-domain failure."""
    code = 'booking_error'
    status_code = 400
    default_message = 'Booking request failed'

    def __init__(self, message=None, errors=None):
        self.message = message or self.default_message
        self.errors = errors or {}
        super().__init__(self.message)

    def to_dict(self):
        payload = {'error': self.message, 'code': self.code}
        if self.errors:
            payload['errors'] = self.errors
        return payload


class NotFoundError(BookingError):
    code = 'not_found'
    status_code = 404
    default_message = 'Resource not found'


class InactiveResourceError(BookingError):
    code = 'inactive_resource'
    status_code = 409
    default_message = 'Resource is not active'


class BookingValidationError(BookingError):
    code = 'validation_error'
    status_code = 400
    default_message = 'Invalid booking request'


class SlotUnavailableError(BookingError):
    code = 'slot_unavailable'
    status_code = 409
    default_message = 'Selected time slot is not available'


class BookingConflictError(BookingError):
    """Another booking claimed the same doctor, date and slot first."""
    code = 'booking_conflict'
    status_code = 409
    default_message = 'This time slot was just booked by another appointment'


class AlreadyCancelledError(BookingError):
    code = 'already_cancelled'
    status_code = 409
    default_message = 'Appointment already cancelled'


class InvalidStateError(BookingError):
    code = 'invalid_state'
    status_code = 409
    default_message = 'Operation not allowed in the current appointment status'
