"""
Domain errors raised by the service layer.

Every error carries a short ``key`` naming the entity or field it is
about ("articles", "comment", "title", ...) and a human-readable
``message``.  The HTTP layer turns them into ``{"errors": {key: message}}``
bodies; services never build responses themselves.
"""


class ConduitError(Exception):
    status_code: int = 500

    def __init__(self, key: str, message: str) -> None:
        super().__init__(f"{key}: {message}")
        self.key = key
        self.message = message

    def to_body(self) -> dict:
        return {"errors": {self.key: self.message}}


class ValidationError(ConduitError):
    """Input present but unacceptable (too short, blank, too long)."""

    status_code = 422

    def to_body(self) -> dict:
        return {"errors": {self.key: [self.message]}}


class NotFoundError(ConduitError):
    """Missing or soft-deleted entity."""

    status_code = 404


class ForbiddenError(ConduitError):
    """Authenticated, but not the owner of the entity."""

    status_code = 403


class ConflictError(ConduitError):
    """A uniqueness requirement could not be satisfied."""

    status_code = 409


class UnauthorizedError(ConduitError):
    status_code = 401
