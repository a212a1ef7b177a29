"""Error handling utilities for radius-gen-acct."""

from radgen.errors.mapper import (
    error_to_log_fields,
    get_error_code,
    get_recovery_strategy,
    log_fatal_error,
)

__all__ = [
    "error_to_log_fields",
    "get_error_code",
    "get_recovery_strategy",
    "log_fatal_error",
]
