"""Dispatch-specific exceptions.

All of these are fatal to a run: the engine stops issuing requests, cancels
in-flight exchanges and re-raises the first one to the caller.
"""

from radgen.exceptions.base import ConfigurationError, TransportError, ValidationError


class ConfigValidationError(ConfigurationError):
    """Raised when startup parameters are missing or out of range."""

    pass


class MalformedCustomFieldError(ValidationError):
    """Raised when a --custom-fields segment is not ``ID=VALUE`` with a numeric ID."""

    pass


class InvalidAddressError(ValidationError):
    """Raised when the NAS address cannot be parsed as an IPv4 address."""

    pass


class ExchangeFailure(TransportError):
    """Raised when an Accounting-Request exchange does not complete."""

    pass


class ExchangeTimeoutError(ExchangeFailure):
    """Raised when no valid reply arrives before retransmissions or the deadline run out."""

    pass


class InvalidReplyError(ExchangeFailure):
    """Raised when too many replies fail authenticator or code checks."""

    pass
