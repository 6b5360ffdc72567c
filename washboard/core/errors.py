from fastapi import status


class ServiceError(Exception):
    """Expected failure with a stable reason code.

    Raised by the component that detects the condition and turned into the
    JSON error envelope by the handlers in ``washboard.core.exceptions``.
    Callers branch on ``code``; ``message`` is for humans only.
    """

    code = "SERVER_ERROR"
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Request could not be processed"

    def __init__(self, message: str | None = None, headers: dict[str, str] | None = None) -> None:
        self.message = message or self.message
        self.headers = headers
        super().__init__(self.message)


class InvalidToken(ServiceError):
    code = "INVALID_TOKEN"
    message = "Invalid token format"


class InvalidBookingId(ServiceError):
    code = "INVALID_BOOKING_ID"
    message = "Invalid booking ID format"


class MissingFields(ServiceError):
    code = "MISSING_FIELDS"
    message = "Missing required fields"


class InvalidStatus(ServiceError):
    code = "INVALID_STATUS"
    message = "Invalid status"


class InvalidPosition(ServiceError):
    code = "INVALID_POSITION"
    message = "Position is outside the current queue"


class MissingCancelReason(ServiceError):
    code = "MISSING_CANCEL_REASON"
    message = "Cancellation reason required"


class InvalidBranch(ServiceError):
    code = "INVALID_BRANCH"
    status_code = status.HTTP_404_NOT_FOUND
    message = "Branch not found"


class ShopClosed(ServiceError):
    code = "SHOP_CLOSED"
    status_code = status.HTTP_409_CONFLICT
    message = "The shop is currently closed"


class InvalidTransition(ServiceError):
    code = "INVALID_TRANSITION"
    status_code = status.HTTP_409_CONFLICT
    message = "Status change is not allowed"


class BookingNotFound(ServiceError):
    code = "BOOKING_NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND
    message = "Booking not found"


class Forbidden(ServiceError):
    code = "FORBIDDEN"
    status_code = status.HTTP_403_FORBIDDEN
    message = "Access denied"


class NotAuthenticated(ServiceError):
    code = "NOT_AUTHENTICATED"
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Could not validate credentials"


class InvalidCredentials(ServiceError):
    code = "INVALID_CREDENTIALS"
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Invalid username or password"


class UsernameTaken(ServiceError):
    code = "USERNAME_TAKEN"
    status_code = status.HTTP_409_CONFLICT
    message = "Username already exists in this branch"


class RateLimited(ServiceError):
    code = "RATE_LIMIT_EXCEEDED"
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    message = "Too many requests. Please try again later."


class ConcurrencyConflict(ServiceError):
    code = "CONCURRENCY_CONFLICT"
    status_code = status.HTTP_409_CONFLICT
    message = "The queue is being updated. Retry the request."


class LinkError(ServiceError):
    """Magic link rejected.

    The three reasons share one status so that responses cannot be used to
    probe which tokens exist.
    """

    status_code = status.HTTP_200_OK
    message = "Invalid or expired link"


class LinkNotFound(LinkError):
    code = "NOT_FOUND"


class LinkExpired(LinkError):
    code = "EXPIRED"


class LinkAlreadyUsed(LinkError):
    code = "ALREADY_USED"
