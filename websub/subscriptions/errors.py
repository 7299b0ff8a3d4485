"""Error taxonomy for the subscriber core.

Each error carries the HTTP status the boundary answers with. Nothing in the
core retries a failed attempt; hubs re-issue verifications and operators
re-issue subscribe requests.
"""

from fastapi import status


class WebSubError(Exception):
    """Base class for subscriber errors."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = "", **context: object) -> None:
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__
        self.context = context


class DiscoveryFailed(WebSubError):
    """The topic resource advertises no usable self/hub link pair."""

    status_code = status.HTTP_404_NOT_FOUND


class InvalidRequest(WebSubError):
    """A required parameter is missing or malformed."""

    status_code = status.HTTP_400_BAD_REQUEST


class SubscriptionNotFound(WebSubError):
    """No stored subscription matches the callback."""

    status_code = status.HTTP_404_NOT_FOUND


class StateMismatch(WebSubError):
    """The requested mode or topic does not fit the subscription's state."""

    status_code = status.HTTP_404_NOT_FOUND


class NotificationRejected(WebSubError):
    """A content notification could not be matched to its subscription."""

    status_code = status.HTTP_404_NOT_FOUND


class TransportFailure(WebSubError):
    """The HTTP client or the database failed underneath us."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
