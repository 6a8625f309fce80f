from __future__ import annotations

from typing import Optional


class AQLError(Exception):
    """Base class for errors raised by the service layer."""


class ConfigError(AQLError):
    """Missing or malformed configuration. Fatal for CLIs (exit code 1)."""


class BackendError(AQLError):
    """A query against the hosted backend or reporting API failed."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        code: Optional[str] = None,
        details: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code
        self.details = details

    def __str__(self) -> str:
        parts = [self.message]
        if self.code:
            parts.append(f"code={self.code}")
        if self.status is not None:
            parts.append(f"status={self.status}")
        return " ".join(parts)


class NotFoundError(BackendError):
    """A single-row read matched no rows (PostgREST code PGRST116)."""


class DataShapeError(AQLError):
    """A stored JSON field could not be decoded into the expected shape."""


class PasswordPolicyError(AQLError):
    """A new password does not satisfy the password rules."""

    def __init__(self, errors) -> None:
        super().__init__(", ".join(errors))
        self.errors = list(errors)
