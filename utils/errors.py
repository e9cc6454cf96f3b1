# utils/errors.py

TRACK_MISMATCH = "track-mismatch"
SKIP_FORBIDDEN = "skip-forbidden"
DEMOTION_FORBIDDEN = "demotion-forbidden"
AGE_BELOW_MINIMUM = "age-below-minimum"
ATTENDANCE_INSUFFICIENT = "attendance-insufficient"
INTERVAL_NOT_MET = "interval-not-met"


class DojoError(Exception):
    """Base error carrying an HTTP status and structured details for the caller."""
    status_code = 400
    reason = None

    def __init__(self, message, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self):
        payload = {'error': self.message}
        if self.reason:
            payload['reason'] = self.reason
        if self.details:
            payload['details'] = self.details
        return payload


class NotFound(DojoError):
    status_code = 404


class ValidationError(DojoError):
    status_code = 400


class RuleViolation(DojoError):
    """A promotion business rule rejected the request."""
    status_code = 400

    def __init__(self, reason, message, **details):
        super().__init__(message, **details)
        self.reason = reason


class StorageError(DojoError):
    status_code = 503


class ConcurrentUpdate(StorageError):
    status_code = 409
