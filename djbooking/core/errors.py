"""Domain errors raised by the booking services.

Each error carries the HTTP status it maps to and a user-safe message; the
API layer turns them into ``{"detail": message}`` responses.
"""


class BookingError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(BookingError):
    status_code = 400


class AuthorizationError(BookingError):
    status_code = 403


class NotFoundError(BookingError):
    status_code = 404


class PaymentSignatureError(BookingError):
    """Signature on a payment callback does not match the order/payment pair."""

    status_code = 400


class BusinessRuleError(BookingError):
    status_code = 409


class DuplicateStatusError(BusinessRuleError):
    pass


class TooLateToModifyError(BusinessRuleError):
    pass


class InvalidTransitionError(BusinessRuleError):
    pass


class ConcurrentUpdateError(BusinessRuleError):
    """The booking changed between read and write."""


class GatewayError(BookingError):
    status_code = 502


class RefundFailedError(GatewayError):
    pass
