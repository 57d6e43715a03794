"""
Debounced autosave.

Each ``schedule()`` call cancels the pending save and starts a new quiet
period. When it elapses the save callback runs against whatever state is
current at that moment. A failed save is logged and recorded; local state is
left as is, and the next scheduled cycle retries.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

from boq_estimator.config import AUTOSAVE_DEBOUNCE_S
from boq_estimator.services.errors import PersistenceFailure, VersionLocked

logger = logging.getLogger("boq-autosave")


@dataclass
class SaveNotice:
    kind: str          # "persistence_failure" | "version_locked"
    message: str
    at: float


class AutosaveScheduler:
    def __init__(self, save: Callable[[], Awaitable[None]], delay_s: float = AUTOSAVE_DEBOUNCE_S):
        self._save = save
        self.delay_s = delay_s
        self._task: Optional[asyncio.Task] = None
        self.notices: List[SaveNotice] = []
        self.saves_completed = 0

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def schedule(self) -> None:
        """Restart the quiet period. Must be called from inside a running loop."""
        self.cancel()
        self._task = asyncio.get_running_loop().create_task(self._run())

    def cancel(self) -> None:
        if self.pending:
            self._task.cancel()
        self._task = None

    async def flush(self) -> bool:
        """Save immediately, dropping any pending timer. Returns True on success."""
        self.cancel()
        return await self._save_now()

    async def wait(self) -> None:
        """Wait for the pending cycle (if any) to finish."""
        task = self._task
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _run(self) -> None:
        await asyncio.sleep(self.delay_s)
        await self._save_now()

    async def _save_now(self) -> bool:
        start = time.perf_counter()
        try:
            await self._save()
        except PersistenceFailure as e:
            logger.warning("Autosave failed, will retry on next change: %s", e)
            self.notices.append(SaveNotice("persistence_failure", str(e), time.time()))
            return False
        except VersionLocked as e:
            logger.warning("Autosave rejected: %s", e, extra={"version_id": e.version_id})
            self.notices.append(SaveNotice("version_locked", str(e), time.time()))
            return False
        self.saves_completed += 1
        logger.debug("Autosave completed", extra={"duration_ms": round((time.perf_counter() - start) * 1000, 2)})
        return True
