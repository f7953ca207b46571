"""
Domain exceptions raised by services and translated to HTTP responses in main.
"""

class DomainError(Exception):
    status_code = 400
    error_type = "domain_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

class InvalidInputError(DomainError):
    status_code = 400
    error_type = "validation_error"

class NotFoundError(DomainError):
    status_code = 404
    error_type = "not_found"

class ConflictError(DomainError):
    status_code = 409
    error_type = "conflict"

class PaymentGatewayError(DomainError):
    status_code = 502
    error_type = "payment_gateway_error"
