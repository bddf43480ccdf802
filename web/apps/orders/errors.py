"""Domain errors raised by the orders engine.

Every error is a ``ValueError`` whose message is a short upper-case code
(``ORDER_NOT_FOUND``, ``INVALID_TRANSITION`` ...), so callers can keep
matching on ``str(exc)`` while views translate ``status_code`` into the
HTTP response. None of these errors is retried.
"""


class OrderError(ValueError):
    """Base class for order domain errors.

    Attributes:
        code: Short machine-readable error code (also the exception message).
        status_code: HTTP status the API layer answers with.
        message: Optional human-readable explanation.
    """

    code = "ORDER_ERROR"
    status_code = 400

    def __init__(self, code: str | None = None, message: str | None = None):
        self.code = code or self.code
        self.message = message
        super().__init__(self.code)


class OrderNotFound(OrderError):
    """The order id or order number does not resolve."""

    code = "ORDER_NOT_FOUND"
    status_code = 404


class BadRequest(OrderError):
    code = "BAD_REQUEST"
    status_code = 400


class InvalidTransition(BadRequest):
    """A confirm or cancel was attempted from a status that forbids it."""

    code = "INVALID_TRANSITION"

    def __init__(self, transition, current_status, message: str | None = None):
        self.transition = transition
        self.current_status = current_status
        super().__init__(message=message)


class CancellationDisabled(InvalidTransition):
    code = "CANCELLATION_DISABLED"


class EditingDisabled(BadRequest):
    code = "EDITING_DISABLED"


class OrderConflict(OrderError):
    """The order changed status between the read and the conditional write."""

    code = "ORDER_STATUS_CONFLICT"
    status_code = 409


class DuplicateOrderNumber(OrderError):
    """The insert lost a race for an order number that looked free."""

    code = "ORDER_NUMBER_TAKEN"
    status_code = 409


class OrderNumberUnavailable(OrderError):
    """No free order number was found within the configured attempts."""

    code = "ORDER_NUMBER_UNAVAILABLE"
    status_code = 409
