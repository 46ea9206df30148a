"""Contracts for the stores the analytics engine reads from."""

from __future__ import annotations

from datetime import date
from typing import Protocol, Sequence

from crue.models import AdSpendRecord, Scope, ScopeShows, TicketSnapshot


class ScopeStore(Protocol):
    def resolve(self, scope: Scope) -> ScopeShows:
        ...


class SnapshotStore(Protocol):
    def fetch(self, show_ids: Sequence[str], *, reported_until: date | None = None) -> dict[str, list[TicketSnapshot]]:
        """Snapshots per show, ascending by ``reported_at``."""
        ...


class SpendStore(Protocol):
    def fetch(self, scope: ScopeShows, start: date, end: date, *, include_manual: bool = True) -> list[AdSpendRecord]:
        ...
