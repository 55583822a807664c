"""Typed failures raised by the stores and the auth gate.

Each error carries the HTTP status and a short machine-readable code that
``app.py`` renders as a JSON body.
"""


class TrackerError(Exception):
    status_code = 400
    code = "error"
    message = "Request failed"

    def __init__(self, message=None):
        super().__init__(message or self.message)
        self.message = message or self.message

    def to_dict(self):
        return {"error": self.code, "message": self.message}


class DuplicateUsername(TrackerError):
    status_code = 409
    code = "duplicate_username"
    message = "Username already taken"


class InvalidCredentials(TrackerError):
    status_code = 401
    code = "invalid_credentials"
    message = "Invalid username or password"


class Unauthenticated(TrackerError):
    status_code = 401
    code = "unauthenticated"
    message = "Please log in"


class Forbidden(TrackerError):
    status_code = 403
    code = "forbidden"
    message = "You don't have permission to do this"


class NotFound(TrackerError):
    status_code = 404
    code = "not_found"
    message = "Not found"


class EmptyAssignment(TrackerError):
    code = "empty_assignment"
    message = "A task needs at least one assigned user"


class InvalidReference(TrackerError):
    code = "invalid_reference"
    message = "Unknown user"


class InvalidRole(TrackerError):
    code = "invalid_role"
    message = "Unknown role"


class MissingField(TrackerError):
    code = "missing_field"
    message = "Required field missing"


class NotAssigned(TrackerError):
    status_code = 403
    code = "not_assigned"
    message = "Only assigned users can complete this task"


class Unavailable(TrackerError):
    status_code = 503
    code = "unavailable"
    message = "Storage unavailable, please try again"
