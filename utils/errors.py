class ParkError(Exception):
    """Base error for booking/payment failures.

    ``kind`` is a stable machine-readable tag returned next to the
    human-readable message; ``status`` is the HTTP status used by the JSON API.
    """

    kind = "error"
    status = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"success": False, "error": self.message, "error_kind": self.kind}


class ValidationError(ParkError):
    kind = "validation_error"
    status = 400


class NotFound(ParkError):
    kind = "not_found"
    status = 404


class Unauthenticated(ParkError):
    kind = "unauthenticated"
    status = 401


class PolicyViolation(ParkError):
    kind = "policy_violation"
    status = 403


class InvalidState(ParkError):
    kind = "invalid_state"
    status = 409


class ServerMisconfigured(ParkError):
    kind = "server_misconfigured"
    status = 500


class UpstreamError(ParkError):
    kind = "upstream_error"
    status = 502


class PersistenceError(ParkError):
    kind = "persistence_error"
    status = 500
