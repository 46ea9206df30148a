"""Store access for the analytics service."""

from __future__ import annotations

import asyncio
import functools
import logging
from dataclasses import dataclass
from typing import Any, Callable, TypeVar

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from crue.errors import StoreError
from crue.store.base import ScopeStore, SnapshotStore, SpendStore
from crue.store.sql import SqlScopeStore, SqlSnapshotStore, SqlSpendStore
from crue.utils.retry import retry_async

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(slots=True)
class Stores:
    scopes: ScopeStore
    snapshots: SnapshotStore
    spend: SpendStore


def sql_stores(engine: Engine) -> Stores:
    return Stores(
        scopes=SqlScopeStore(engine),
        snapshots=SqlSnapshotStore(engine),
        spend=SqlSpendStore(engine),
    )


@retry_async
async def _in_executor(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))


async def call_store(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Run a blocking store call off the event loop.

    Transient failures are retried; anything left is raised as ``StoreError``.
    """
    try:
        return await _in_executor(func, *args, **kwargs)
    except SQLAlchemyError as exc:
        logger.warning("Store call %s failed: %s", getattr(func, "__qualname__", func), exc)
        raise StoreError(f"store call failed: {exc}") from exc
