from fastapi import status


class LendingError(Exception):
    """Base exception for lending rule violations.

    Each subclass carries the HTTP status the API answers with; the
    message becomes the ``error`` field of the JSON body.
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class Unauthorized(LendingError):
    """No signed-in caller."""

    status_code = status.HTTP_401_UNAUTHORIZED


class Forbidden(LendingError):
    """Caller is not the owner or renter the action requires."""

    status_code = status.HTTP_403_FORBIDDEN


class NotFound(LendingError):
    """Book or open rental does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class BadRequest(LendingError):
    """Request is missing required data."""

    status_code = status.HTTP_400_BAD_REQUEST


class Conflict(LendingError):
    """Action clashes with current state, e.g. renting a rented book."""

    status_code = status.HTTP_400_BAD_REQUEST
