"""Custom exceptions for the accounting load generator.

All exceptions carry a code, a message and a details dict so that fatal
errors can be logged with enough context to act on.
"""

from radgen.exceptions.base import (
    ConfigurationError,
    RadgenError,
    TransportError,
    ValidationError,
)
from radgen.exceptions.dispatch import (
    ConfigValidationError,
    ExchangeFailure,
    ExchangeTimeoutError,
    InvalidAddressError,
    InvalidReplyError,
    MalformedCustomFieldError,
)

__all__ = [
    # Base exceptions
    "RadgenError",
    "ValidationError",
    "ConfigurationError",
    "TransportError",
    # Specific exceptions
    "ConfigValidationError",
    "MalformedCustomFieldError",
    "InvalidAddressError",
    "ExchangeFailure",
    "ExchangeTimeoutError",
    "InvalidReplyError",
]
