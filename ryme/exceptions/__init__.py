"""Custom exceptions for the order/inventory core."""


class RymeError(Exception):
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


class ValidationError(RymeError):
    """Missing or invalid input; always raised before any write."""
    def __init__(self, message, payload=None):
        super().__init__(message, 400, payload)


class NotFoundError(RymeError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)


class ConflictError(RymeError):
    """The requested transition conflicts with the current state (e.g. already paid)."""
    def __init__(self, message, payload=None):
        super().__init__(message, 409, payload)


class InsufficientStockError(RymeError):
    """Raised when an operation fails due to lack of stock."""
    def __init__(self, product_name, required, available):
        self.product_name = product_name
        self.required = int(required)
        self.available = int(available)
        message = (
            f"Insufficient stock for {product_name}: "
            f"required {self.required}, available {self.available}"
        )
        super().__init__(message, status_code=409, payload={
            'product_name': product_name,
            'required': self.required,
            'available': self.available,
        })
