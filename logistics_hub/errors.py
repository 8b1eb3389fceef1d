from __future__ import annotations


class NotFoundError(LookupError):
    """Raised when a requested record does not exist."""

    def __init__(self, entity: str, key: str) -> None:
        super().__init__(f"{entity} not found: {key}")
        self.entity = entity
        self.key = key


class AuthError(Exception):
    """Raised when a request cannot be authenticated or authorized."""

    def __init__(self, message: str, *, status_code: int = 401, redirect_to: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.redirect_to = redirect_to


class IntegrationNotConfigured(RuntimeError):
    """Raised when a vendor secret is missing from configuration."""


class VendorError(RuntimeError):
    """Raised when a vendor API cannot be reached."""
