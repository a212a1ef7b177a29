"""Base exception classes for radius-gen-acct.

Every error carries a machine-readable ``code``, a human ``message`` and a
``details`` dict that is logged alongside it.
"""

from typing import Any


class RadgenError(Exception):
    """Base exception for all radius-gen-acct errors."""

    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.code}: {self.message} (details: {self.details})"
        return f"{self.code}: {self.message}"


class ValidationError(RadgenError):
    """Input data failed validation."""

    pass


class ConfigurationError(RadgenError):
    """Run configuration is missing or invalid."""

    pass


class TransportError(RadgenError):
    """A network exchange with the accounting server failed."""

    pass


__all__ = [
    "RadgenError",
    "ValidationError",
    "ConfigurationError",
    "TransportError",
]
