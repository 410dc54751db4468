"""
Business-rule errors raised by the service layer.

Routers never translate these by hand; main.py registers a single handler
that renders ``{"detail": ..., "code": ...}`` with the class's status code.
"""


class TimeTrackingError(Exception):
    status_code = 400
    code = "error"
    default_message = "Request could not be processed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"detail": self.message, "code": self.code}


class ValidationError(TimeTrackingError):
    status_code = 400
    code = "validation_error"
    default_message = "Invalid data"

    def __init__(self, message: str | None = None, fields: dict | None = None):
        super().__init__(message)
        self.fields = fields or {}

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.fields:
            data["fields"] = self.fields
        return data


class NotFoundError(TimeTrackingError):
    status_code = 404
    code = "not_found"
    default_message = "Not found"


class ForbiddenError(TimeTrackingError):
    status_code = 403
    code = "forbidden"
    default_message = "Access denied"


class InvalidStateError(TimeTrackingError):
    status_code = 409
    code = "invalid_state"
    default_message = "Operation not allowed in the current state"


class EmptyWeekError(TimeTrackingError):
    status_code = 409
    code = "empty_week"
    default_message = "There are no time entries for this week"


class AlreadySubmittedError(TimeTrackingError):
    status_code = 409
    code = "already_submitted"
    default_message = "The week has already been submitted"


class AlreadyApprovedError(TimeTrackingError):
    status_code = 409
    code = "already_approved"
    default_message = "The week has already been approved"


class WeekLockedError(TimeTrackingError):
    status_code = 409
    code = "week_locked"
    default_message = "The week is locked for editing"
