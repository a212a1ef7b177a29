"""Shared infrastructure for radius-gen-acct: logging, exceptions, rate limiting."""

__version__ = "0.12.3"
