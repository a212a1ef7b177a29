"""Run report rendering."""

from __future__ import annotations

__all__ = ["build_run_report"]

from loadgen.api.report import build_run_report
