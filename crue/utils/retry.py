"""Retry helpers for store calls."""

from __future__ import annotations

import asyncio
import functools
import logging
import random
from collections.abc import Awaitable, Callable

from sqlalchemy.exc import OperationalError

logger = logging.getLogger(__name__)

RETRY_EXCEPTIONS = (OperationalError, OSError, asyncio.TimeoutError)
MAX_ATTEMPTS = 3
BASE_DELAY = 0.5


def retry_async(func: Callable[..., Awaitable]):
    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        delay = BASE_DELAY
        for attempt in range(MAX_ATTEMPTS):
            try:
                return await func(*args, **kwargs)
            except RETRY_EXCEPTIONS as exc:
                if attempt == MAX_ATTEMPTS - 1:
                    raise
                logger.warning("Store call %s failed (%s); retrying", func.__name__, exc)
                await asyncio.sleep(delay + random.random() * delay)
                delay *= 2
    return wrapper
