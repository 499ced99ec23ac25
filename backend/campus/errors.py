"""Domain error taxonomy.

Services raise these instead of HTTP exceptions so they stay usable from
scripts and tests; `main.py` maps each class to a status code.
"""


class CampusError(Exception):
    """Base class for errors surfaced to API clients."""
    status_code = 500

    def __init__(self, message: str = "An unexpected error occurred"):
        super().__init__(message)
        self.message = message


class AuthError(CampusError):
    """No valid session, or credentials did not verify."""
    status_code = 401


class PermissionDeniedError(CampusError):
    status_code = 403


class NotFoundError(CampusError, LookupError):
    """Row is missing or not owned by the caller."""
    status_code = 404


class InvalidInputError(CampusError, ValueError):
    status_code = 400


class ConflictError(CampusError):
    """A unique key would be duplicated (e.g. an e-mail already registered)."""
    status_code = 409
