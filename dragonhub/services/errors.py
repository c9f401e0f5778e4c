"""Errors raised by the event plan workflow.

Each carries the HTTP status the API layer maps it to.
"""


class EventPlanError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(EventPlanError):
    """A required field is missing or malformed."""

    status_code = 400


class AuthError(EventPlanError):
    """The caller may not perform the requested operation."""

    status_code = 403


class NotFoundError(EventPlanError):
    """The referenced plan, member, task or resource does not exist."""

    status_code = 404


class InvalidStateError(EventPlanError):
    """The operation is not legal from the plan's current status."""

    status_code = 409
