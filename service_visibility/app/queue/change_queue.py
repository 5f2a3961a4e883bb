"""
Debounced, per-role serialized change queue.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Mapping, Optional, Set

from shared.logging import get_logger


@dataclass
class FlushOutcome:
    """Result of flushing one role's pending changes."""
    role_id: str
    success: bool
    changes: Dict[str, bool] = field(default_factory=dict)
    written: Optional[List[str]] = None
    error: Optional[str] = None

    @property
    def skipped(self) -> bool:
        """True when nothing needed to be written."""
        return self.success and self.written is None


FlushHandler = Callable[[str], Awaitable[FlushOutcome]]


class ChangeQueue:
    """Pending change sets with restartable quiet-period timers.

    Every staged intent for a role restarts that role's timer; when it
    fires the flush handler runs under the role's lock, so writes for one
    role never overlap while different roles proceed independently. Only
    the last intent per (role, feature) is kept.
    """

    def __init__(self, flush_handler: FlushHandler, debounce_seconds: float = 1.0):
        self.logger = get_logger("visibility.queue.change_queue")
        self.debounce_seconds = debounce_seconds
        self._flush_handler = flush_handler

        self._pending: Dict[str, Dict[str, bool]] = {}
        self._versions: Dict[str, int] = {}
        self._timers: Dict[str, asyncio.Task] = {}
        self._flush_tasks: Set[asyncio.Task] = set()
        self._locks: Dict[str, asyncio.Lock] = {}

    # Pending state

    def stage(self, role_id: str, feature_id: str, enabled: bool, schedule: bool = True):
        """Record an intent, replacing any earlier one for the same feature."""
        changes = self._pending.setdefault(role_id, {})
        changes.pop(feature_id, None)
        changes[feature_id] = enabled
        self._bump(role_id)

        self.logger.debug(
            "Change staged",
            role_id=role_id,
            feature_id=feature_id,
            enabled=enabled,
            pending=len(changes)
        )

        if schedule:
            self.schedule(role_id)

    def pending_for(self, role_id: str) -> Dict[str, bool]:
        return dict(self._pending.get(role_id, {}))

    def pending_version(self, role_id: str) -> int:
        return self._versions.get(role_id, 0)

    def has_pending(self, role_id: str) -> bool:
        return bool(self._pending.get(role_id))

    def pending_roles(self) -> List[str]:
        return [role_id for role_id, changes in self._pending.items() if changes]

    def acknowledge(self, role_id: str, flushed: Mapping[str, bool]):
        """Drop intents that were persisted; newer intents staged meanwhile survive."""
        changes = self._pending.get(role_id)
        if not changes:
            return

        for feature_id, enabled in flushed.items():
            if changes.get(feature_id) == enabled:
                del changes[feature_id]

        if not changes:
            del self._pending[role_id]
        self._bump(role_id)

    def discard(self, role_id: str) -> int:
        """Cancel the timer and drop every pending intent for a role."""
        self._cancel_timer(role_id)
        dropped = len(self._pending.pop(role_id, {}))
        self._bump(role_id)
        if dropped:
            self.logger.info("Pending changes discarded", role_id=role_id, count=dropped)
        return dropped

    def _bump(self, role_id: str):
        self._versions[role_id] = self._versions.get(role_id, 0) + 1

    # Timers

    def schedule(self, role_id: str):
        """Start, or restart, the quiet-period timer for a role."""
        self._cancel_timer(role_id)
        self._timers[role_id] = asyncio.create_task(self._debounce(role_id))

    def has_timer(self, role_id: str) -> bool:
        return role_id in self._timers

    def _cancel_timer(self, role_id: str):
        timer = self._timers.pop(role_id, None)
        if timer and not timer.done():
            timer.cancel()

    async def _debounce(self, role_id: str):
        await asyncio.sleep(self.debounce_seconds)

        # Past the quiet period; a new toggle starts a fresh timer instead of cancelling this flush
        if self._timers.get(role_id) is asyncio.current_task():
            del self._timers[role_id]

        task = asyncio.create_task(self.flush(role_id))
        self._flush_tasks.add(task)
        task.add_done_callback(self._flush_done)

    def _flush_done(self, task: asyncio.Task):
        self._flush_tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.logger.error("Debounced flush crashed", error=str(error))

    # Flushing

    def lock_for(self, role_id: str) -> asyncio.Lock:
        if role_id not in self._locks:
            self._locks[role_id] = asyncio.Lock()
        return self._locks[role_id]

    async def flush(self, role_id: str) -> Optional[FlushOutcome]:
        """Flush one role now. Returns None when nothing was pending."""
        self._cancel_timer(role_id)
        async with self.lock_for(role_id):
            if not self.has_pending(role_id):
                return None
            return await self._flush_handler(role_id)

    async def flush_all(self) -> List[FlushOutcome]:
        """Flush every role with pending intents concurrently."""
        outcomes = await asyncio.gather(*(self.flush(role_id) for role_id in self.pending_roles()))
        return [outcome for outcome in outcomes if outcome is not None]

    async def run_exclusive(self, role_id: str, operation: Callable[[], Awaitable]):
        """Run an operation in the role's write slot, after any in-flight flush."""
        self._cancel_timer(role_id)
        async with self.lock_for(role_id):
            return await operation()

    async def drain(self):
        """Wait for scheduled timers and the flushes they trigger."""
        while self._timers or self._flush_tasks:
            await asyncio.gather(
                *list(self._timers.values()),
                *list(self._flush_tasks),
                return_exceptions=True
            )

    async def close(self):
        """Cancel timers and wait for in-flight flushes. Pending intents are kept."""
        for role_id in list(self._timers):
            self._cancel_timer(role_id)
        if self._flush_tasks:
            await asyncio.gather(*list(self._flush_tasks), return_exceptions=True)
        self.logger.info("Change queue closed", pending_roles=len(self.pending_roles()))
