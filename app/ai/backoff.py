"""Retry logic with specific backoff strategy."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

from app.ai.errors import is_quota_error

T = TypeVar("T")
logger = logging.getLogger(__name__)

DEFAULT_DELAYS: tuple[float, ...] = (5, 20, 50)


async def retry_with_backoff(func: Callable[..., Awaitable[T]], *args, delays: Sequence[float] = DEFAULT_DELAYS, **kwargs) -> T:
  """
  Execute a coroutine function with retries for 429/quota errors.

  Delays: 5s, 20s, 50s. Other errors propagate immediately.
  """
  for attempt, delay in enumerate(delays):
    try:
      return await func(*args, **kwargs)
    except Exception as exc:
      if not is_quota_error(exc):
        raise

      logger.warning("Retry attempt %d/%d needed. Error: %s. Retrying in %ss...", attempt + 1, len(delays), exc, delay)
      await asyncio.sleep(delay)

  # Final attempt
  return await func(*args, **kwargs)
