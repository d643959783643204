"""Exception taxonomy shared by the data-access layer and the HTTP surface."""

import json
from typing import Any


class AuthenticationRequiredError(Exception):
    """Raised when an operation needs a signed-in identity and the session has none."""

    def __init__(self, message: str = "User not authenticated"):
        super().__init__(message)


class BackendEnvelopeError(Exception):
    """Raised when a data-API response carries errors/extensions or no data.

    ``detail`` holds the serialized original so callers can surface it.
    """

    def __init__(self, errors: Any = None, extensions: Any = None, operation: str = ""):
        self.errors = errors
        self.extensions = extensions
        self.operation = operation
        payload: dict[str, Any] = {"errors": errors}
        if extensions:
            payload["extensions"] = extensions
        self.detail = json.dumps(payload, default=str)
        prefix = f"{operation}: " if operation else ""
        super().__init__(f"{prefix}{self.detail}")


class PropertyNotFoundError(BackendEnvelopeError):
    """A get returned neither data nor errors."""

    def __init__(self, property_id: str):
        self.property_id = property_id
        super().__init__(operation=f"Property {property_id} not found")


class DataIntegrityError(Exception):
    """User-record resolution produced an unexpected cardinality or shape."""


class StorageAccessDeniedError(PermissionError):
    """Object storage access rule rejected the caller."""

    def __init__(self, action: str, path: str):
        self.action = action
        self.path = path
        super().__init__(f"Not allowed to {action} {path}")


class StorageCleanupError(Exception):
    """One or more stored objects could not be removed."""

    def __init__(self, failed_paths: list[str]):
        self.failed_paths = failed_paths
        super().__init__(f"Failed to remove {len(failed_paths)} object(s): {', '.join(failed_paths)}")


# ---------------------------------------------------------------------------
# Auth provider
# ---------------------------------------------------------------------------


class AuthError(Exception):
    """Base class for auth provider failures."""

    status_code = 400


class InvalidCredentialsError(AuthError):
    status_code = 401


class UserExistsError(AuthError):
    status_code = 409


class UserNotFoundError(AuthError):
    status_code = 404


class UserNotConfirmedError(AuthError):
    status_code = 403


class CodeMismatchError(AuthError):
    status_code = 400
