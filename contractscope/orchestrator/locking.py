"""Single-capacity slot for local inference backends."""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from contractscope.llm.types import ModelConfig

logger = logging.getLogger(__name__)


class LocalModelSlot:
    """
    At most one local-model run at a time; online runs pass straight through.

    Create one per process and inject it wherever runs are started.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    @asynccontextmanager
    async def hold(self, config: ModelConfig) -> AsyncIterator[None]:
        if config.is_online:
            yield
            return
        if self._lock.locked():
            logger.info("Local model busy; waiting for the running analysis to finish")
        async with self._lock:
            logger.debug("Local model slot acquired")
            yield
