"""FIFO queue serializing interactive approval prompts.

The prompt surface can show only one prompt at a time; showing a second one
implicitly cancels the first. Every approval flow, including its follow-up
dialogs, therefore runs as one unit of work through this queue.
"""

import asyncio
import logging
import uuid
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from ..events import ChangeNotifier

logger = logging.getLogger(__name__)


@dataclass
class _QueueEntry:
    id: str
    label: str
    run: Callable[[], Awaitable[Any]]
    future: asyncio.Future
    default: Any


class ApprovalQueue:
    """
    Runs approval units one at a time, first in first out.

    The queue advances only after the current unit settles. A unit that is
    cancelled, times out or whose caller goes away resolves to its default
    value (the deny outcome) instead of hanging.
    """

    def __init__(self, timeout: float | None = None):
        """
        Initialize the queue.

        Args:
            timeout: Seconds a unit may run before it resolves to its default (None = no limit)
        """
        self.timeout = timeout
        self.on_did_change = ChangeNotifier()
        self._entries: deque[_QueueEntry] = deque()
        self._current: _QueueEntry | None = None
        self._worker: asyncio.Task[None] | None = None

    @property
    def pending(self) -> int:
        """Units waiting behind the current one."""
        return len(self._entries)

    @property
    def active_label(self) -> str | None:
        return self._current.label if self._current is not None else None

    def enqueue(self, label: str, run: Callable[[], Awaitable[Any]], default: Any = None) -> tuple[str, asyncio.Future]:
        """
        Add a unit of work to the queue.

        Args:
            label: Human-readable description of the approval
            run: Coroutine function performing the whole approval flow
            default: Result used when the unit is cancelled or times out

        Returns:
            Tuple of (entry id, future resolving to the unit's result)
        """
        loop = asyncio.get_running_loop()
        entry = _QueueEntry(
            id=str(uuid.uuid4()),
            label=label,
            run=run,
            future=loop.create_future(),
            default=default,
        )
        self._entries.append(entry)
        logger.debug("Queued approval %s (%s), %d pending", entry.id, label, len(self._entries))
        self.on_did_change.fire()
        if self._worker is None or self._worker.done():
            self._worker = loop.create_task(self._process())
        return entry.id, entry.future

    async def submit(self, label: str, run: Callable[[], Awaitable[Any]], default: Any = None) -> Any:
        """
        Enqueue a unit and wait for its result.

        If the caller is cancelled, the unit is cancelled too.
        """
        entry_id, future = self.enqueue(label, run, default)
        try:
            return await asyncio.shield(future)
        except asyncio.CancelledError:
            self.cancel(entry_id)
            raise

    def cancel(self, entry_id: str) -> bool:
        """
        Resolve a queued or active unit to its default value.

        Returns:
            True if a unit with this id was found
        """
        current = self._current
        if current is not None and current.id == entry_id:
            if not current.future.done():
                current.future.set_result(current.default)
            return True
        for entry in self._entries:
            if entry.id == entry_id:
                self._entries.remove(entry)
                if not entry.future.done():
                    entry.future.set_result(entry.default)
                self.on_did_change.fire()
                return True
        return False

    def reject_all(self) -> None:
        """Resolve the active unit and everything queued to their defaults."""
        entries = list(self._entries)
        self._entries.clear()
        if self._current is not None:
            entries.append(self._current)
        for entry in entries:
            if not entry.future.done():
                entry.future.set_result(entry.default)
        self.on_did_change.fire()

    async def _process(self) -> None:
        while self._entries:
            entry = self._entries.popleft()
            if entry.future.done():
                continue
            self._current = entry
            self.on_did_change.fire()
            try:
                await self._run_entry(entry)
            finally:
                self._current = None
        self.on_did_change.fire()

    async def _run_entry(self, entry: _QueueEntry) -> None:
        task = asyncio.ensure_future(entry.run())
        done, _ = await asyncio.wait({task, entry.future}, timeout=self.timeout, return_when=asyncio.FIRST_COMPLETED)

        if task in done and not entry.future.done():
            if task.cancelled():
                entry.future.set_result(entry.default)
            elif task.exception() is not None:
                entry.future.set_exception(task.exception())
            else:
                entry.future.set_result(task.result())
            return

        if not task.done():
            task.cancel()
            await asyncio.wait({task})
        elif not task.cancelled() and task.exception() is not None:
            logger.debug("Approval %s failed after it was resolved: %s", entry.id, task.exception())
        if not entry.future.done():
            logger.warning("Approval %s (%s) timed out after %ss", entry.id, entry.label, self.timeout)
            entry.future.set_result(entry.default)
