"""Custom exceptions for the NataPOS application."""

class PosError(Exception):
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

class BusinessLogicError(PosError):
    """Exception raised for business logic violations."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)

class ValidationError(BusinessLogicError):
    """Invalid input caught before any write (empty cart, bad amount...)."""
    def __init__(self, message, payload=None):
        super().__init__(message, 400, payload)

class NotFoundError(PosError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)

class InvalidTransitionError(BusinessLogicError):
    """Raised when an order status change is not an edge of the order workflow."""
    def __init__(self, current, target):
        current = getattr(current, 'value', current)
        target = getattr(target, 'value', target)
        message = f"Cannot move order from '{current}' to '{target}'"
        super().__init__(message, status_code=409, payload={'from': current, 'to': target})

class ConcurrentUpdateError(BusinessLogicError):
    """Raised when a write is based on a stale order version or is already in flight."""
    def __init__(self, message="Order was changed by another terminal, reload and retry"):
        super().__init__(message, status_code=409)

class InsufficientCashError(BusinessLogicError):
    """Raised when the cash handed over does not cover the bill."""
    def __init__(self, received, required):
        message = f"Cash received {received} is less than the total {required}"
        super().__init__(message, status_code=400, payload={'received': str(received), 'required': str(required)})

class NoActiveShiftError(BusinessLogicError):
    """Raised when an operation needs an open shift and there is none."""
    def __init__(self, message="No active shift"):
        super().__init__(message, status_code=409)

class UnauthorizedError(PosError):
    """Raised when no authenticated operator is attached to the request."""
    def __init__(self, message="Not authenticated"):
        super().__init__(message, 401)

class PersistenceError(PosError):
    """Raised when the database rejects or fails a read/write."""
    def __init__(self, message="Could not reach the database, please retry", payload=None):
        super().__init__(message, 503, payload)
