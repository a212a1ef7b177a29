"""RADIUS accounting load generator.

This package turns synthetic call-detail records into a rate-limited stream of
Accounting-Request exchanges against a target server.
"""

from __future__ import annotations

__all__ = []
