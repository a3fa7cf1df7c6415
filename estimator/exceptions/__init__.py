"""Custom exceptions for the cost estimator application."""

class EstimatorError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        return rv

class ValidationError(EstimatorError):
    """Raised for invalid input, before anything is persisted."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)

class NotFoundError(EstimatorError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)

class PermissionDeniedError(EstimatorError):
    """Raised when there is no authenticated owner or the record belongs to someone else."""
    def __init__(self, message="You are not allowed to access this record"):
        super().__init__(message, 403)

class TransientIOError(EstimatorError):
    """Raised when the persistence layer fails; the operation can be retried."""
    def __init__(self, message="Storage is temporarily unavailable. Please try again later.", payload=None):
        super().__init__(message, 503, payload)
