"""Local accounting server used by tests and CI-safe runs."""

from __future__ import annotations

__all__ = ["AccountingFixtureServer", "ReceivedRequest"]

from loadgen.fixtures.acct_server import AccountingFixtureServer, ReceivedRequest
