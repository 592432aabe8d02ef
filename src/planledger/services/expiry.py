# src/planledger/services/expiry.py
from __future__ import annotations

import asyncio
import uuid
from datetime import datetime
from typing import Callable, List, Optional

from planledger.app_logger import get_logger

from .unit_of_work import UnitOfWork

logger = get_logger(__name__)


class ExpirySweeper:
    """
    Periodically expires OPEN signature packets that are past ``expires_at``.

    ``sweep_once`` is idempotent: a packet already moved (by a reader, a
    signer or another sweeper) is simply skipped.
    """

    def __init__(self, uow_factory: Callable[[], UnitOfWork], interval_seconds: float) -> None:
        self.uow_factory = uow_factory
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    async def sweep_once(self, now: Optional[datetime] = None) -> List[uuid.UUID]:
        async with self.uow_factory() as uow:
            return await uow.signatures.expire_overdue(now)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.sweep_once()
            except Exception:
                # keep the loop alive; the next tick retries
                logger.exception("Signature packet expiry sweep failed")

    def start(self) -> None:
        if self.interval_seconds <= 0 or self._task is not None:
            return
        self._task = asyncio.create_task(self._run(), name="planledger-expiry-sweep")
        logger.info(f"Expiry sweep every {self.interval_seconds}s")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()
