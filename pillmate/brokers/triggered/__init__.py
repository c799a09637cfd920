"""Triggered brokers package."""

from .on_dose_written import on_dose_written

__all__ = [
    "on_dose_written",
]
