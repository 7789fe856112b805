"""Utility functions."""

from asc_readiness.utils.time import (
    ensure_utc,
    format_datetime,
    start_of_day_utc,
    utc_now,
)

__all__ = ["utc_now", "ensure_utc", "start_of_day_utc", "format_datetime"]
