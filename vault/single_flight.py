"""Keyed single-flight guard: concurrent callers with the same key share one execution."""

import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from common.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class SingleFlight:
    def __init__(self):
        self._inflight: Dict[str, asyncio.Future] = {}
        self._owners: Dict[str, Optional[str]] = {}

    def in_flight(self, key: str) -> bool:
        return key in self._inflight

    def owner_of(self, key: str) -> Optional[str]:
        """Owner recorded by the caller that started the running call for key."""
        return self._owners.get(key)

    async def run(self, key: str, factory: Callable[[], Awaitable[T]], owner: Optional[str] = None) -> T:
        """
        Run factory() unless a call for key is already running, in which
        case wait for that call and return its result (or raise its error).

        owner is recorded only when this call starts a new execution.
        """
        existing = self._inflight.get(key)
        if existing is not None:
            logger.info(f"Joining in-flight call [key={key}]")
            return await asyncio.shield(existing)

        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._inflight[key] = future
        self._owners[key] = owner
        try:
            result: Any = await factory()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
            future.exception()
            raise
        else:
            future.set_result(result)
            return result
        finally:
            self._inflight.pop(key, None)
            self._owners.pop(key, None)
