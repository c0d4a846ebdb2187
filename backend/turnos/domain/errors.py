class DomainError(Exception):
    """Base class for errors the HTTP layer translates into client-facing responses."""


class InvalidInputError(DomainError):
    pass


class ConflictError(DomainError):
    pass


class PolicyViolationError(DomainError):
    pass


class PaymentRejectedError(DomainError):
    pass


class UnavailableError(DomainError):
    pass


class PaymentGatewayError(RuntimeError):
    """Raised when the payment provider cannot be reached or answers with an error."""
