"""Error types raised across the analytics engine."""

from __future__ import annotations


class StoreError(RuntimeError):
    """A snapshot, spend or metadata store could not be read."""
