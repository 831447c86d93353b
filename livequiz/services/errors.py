class CoordinatorError(Exception):
    """A rejected action; reported to the originating connection only."""

    code = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class Unauthorized(CoordinatorError):
    code = "unauthorized"


class NotFound(CoordinatorError):
    code = "not_found"


class NotActive(CoordinatorError):
    code = "not_active"


class Duplicate(CoordinatorError):
    code = "duplicate"


class StoreError(Exception):
    """Record store failure; nothing was written for the failing operation."""
