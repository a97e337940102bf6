"""
Exceptions raised at the trip ledger boundary.

The calculators never raise for valid numeric input; everything here is
raised by the orchestrator, the transfer coordinator, or the numeric guards
that reject NaN/Infinity before any arithmetic runs.
"""


class LedgerError(Exception):
    """Base exception for trip ledger errors"""
    pass


class ValidationError(LedgerError):
    """Raised when input is malformed or out of range"""

    def __init__(self, message: str, field: str = None):
        super().__init__(message)
        self.field = field


class DuplicateTripError(ValidationError):
    """Raised when a driver already has a trip on the requested date"""

    def __init__(self, driver_id: str, trip_date):
        super().__init__(
            f"Driver {driver_id} already has a trip on {trip_date.isoformat()}",
            field="date",
        )
        self.driver_id = driver_id
        self.trip_date = trip_date


class InvalidReferenceError(LedgerError):
    """Raised when a line item points at an unknown product or driver"""

    def __init__(self, message: str, reference: str = None):
        super().__init__(message)
        self.reference = reference


class NotFoundError(LedgerError):
    """Raised when a trip id does not exist"""
    pass


class PersistenceError(LedgerError):
    """Raised when the store fails; the triggering write has been rolled back"""
    pass
