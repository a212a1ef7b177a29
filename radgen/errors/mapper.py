"""Error mapping for fatal run errors.

Converts structured RadgenError exceptions into log-ready field dicts with
machine-readable error codes and recovery strategies.
"""

from typing import Any, Dict

from radgen.exceptions import (
    ConfigurationError,
    RadgenError,
    TransportError,
    ValidationError,
)
from radgen.logger import session_logger as logger

# Recovery strategy templates keyed by class-derived error code
RECOVERY_STRATEGIES: Dict[str, str] = {
    # Startup validation
    "CONFIG_VALIDATION": "Check the command-line options: --server and --key are required and --pps must be > 0.",
    "MALFORMED_CUSTOM_FIELD": "Use --custom-fields \"ID=VALUE,ID=VALUE\" with numeric attribute IDs between 1 and 255.",
    "INVALID_ADDRESS": "Pass an IPv4 address to --nas-ip (e.g. 127.0.0.1).",
    # Exchange errors
    "EXCHANGE_TIMEOUT": "The server did not answer in time. Check --server/--port, firewall rules, or raise --retry-int/--max-retry.",
    "INVALID_REPLY": "Replies failed authenticator verification. Check that --key matches the server's shared secret.",
    "EXCHANGE_FAILURE": "Check network reachability of the accounting server and that it listens on the given port.",
}


def get_error_code(error: RadgenError) -> str:
    """Extract error code from exception class name.

    Converts class names like MalformedCustomFieldError to MALFORMED_CUSTOM_FIELD.
    """
    name = error.__class__.__name__
    # Remove 'Error' suffix
    if name.endswith("Error"):
        name = name[:-5]
    # Convert CamelCase to UPPER_SNAKE_CASE
    result = []
    for i, char in enumerate(name):
        if char.isupper() and i > 0:
            result.append("_")
        result.append(char.upper())
    return "".join(result)


def get_recovery_strategy(error_code: str, error: RadgenError) -> str:
    """Get recovery strategy for an error.

    Returns specific strategy if available, otherwise a generic one.
    """
    if error_code in RECOVERY_STRATEGIES:
        return RECOVERY_STRATEGIES[error_code]

    # Generic strategies based on error type
    if isinstance(error, ValidationError):
        return "Review the validation error details and correct the input."
    elif isinstance(error, ConfigurationError):
        return "Review the run configuration and try again."
    elif isinstance(error, TransportError):
        return RECOVERY_STRATEGIES["EXCHANGE_FAILURE"]

    return "Review the error message and try again."


def error_to_log_fields(error: RadgenError) -> Dict[str, Any]:
    """Convert an error to the keyword fields logged for a fatal failure."""
    error_code = get_error_code(error)
    fields: Dict[str, Any] = {
        "error_code": error_code,
        "cause": error.code,
        "error": error.message,
        "recovery": get_recovery_strategy(error_code, error),
    }
    if error.details:
        fields["details"] = error.details
    return fields


def log_fatal_error(event: str, error: RadgenError) -> None:
    """Log a run-ending error with its code and recovery hint."""
    logger.error(event, event=event, **error_to_log_fields(error))
