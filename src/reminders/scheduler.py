"""In-process reminder scheduler for clients.

Mirrors the server sweep with real timers so reminders show up on time
without waiting for the next sweep. It is a convenience notification only:
no quota is checked and nothing is counted, the server sweep stays the
dispatch of record.

The scheduler runs on a single event loop. ``reconcile`` is synchronous, so
no timer callback can run between cancelling the old timers and creating
the new ones.
"""

import asyncio
import logging
from collections.abc import Callable, Hashable, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from functools import partial
from types import TracebackType
from typing import Protocol, Self

from src.reminders.exceptions import SchedulerClosedError
from src.reminders.matcher import Reminderable, effective_offsets, is_eligible, minutes_until_due

logger = logging.getLogger(__name__)

# How late a reminder may be noticed and still be shown (in seconds)
DEFAULT_LATE_GRACE_SECONDS = 60

type TimerKey = tuple[Hashable, int]
type NotifyCallback = Callable[[Reminderable, int, int], None]


class TimerHandle(Protocol):
    """A scheduled callback that can be cancelled."""

    def cancel(self) -> None:
        """Cancel the callback if it has not run yet."""
        ...


class TimerBackend(Protocol):
    """Clock and timer facility the scheduler runs on."""

    def now(self) -> datetime:
        """Current time, timezone-aware."""
        ...

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` after ``delay`` seconds."""
        ...


class AsyncioTimers:
    """Timer backend on an asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Initialise the backend.

        :param loop: Event loop to schedule on (defaults to the running loop).
        """
        self._loop = loop

    def now(self) -> datetime:
        """Current UTC time."""
        return datetime.now(UTC)

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        """Schedule ``callback`` on the loop after ``delay`` seconds."""
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay, callback)


@dataclass
class ScheduledReminder:
    """A pending client-side reminder timer."""

    item_id: Hashable
    offset: int
    fire_at: datetime
    handle: TimerHandle | None = None


class ReminderScheduler:
    """Keeps one timer per (item, offset) for the current item list.

    The timer map belongs to this instance only, so several schedulers can
    run side by side without seeing each other's timers.
    """

    def __init__(
        self,
        notify: NotifyCallback,
        *,
        timers: TimerBackend | None = None,
        late_grace_seconds: int = DEFAULT_LATE_GRACE_SECONDS,
    ) -> None:
        """Initialise the scheduler.

        :param notify: Called as ``notify(item, offset, minutes_until)`` when a
            reminder fires.
        :param timers: Timer backend (defaults to the running asyncio loop).
        :param late_grace_seconds: A reminder whose fire time passed less than
            this long ago is shown straight away instead of being dropped.
        """
        self._notify = notify
        self._backend: TimerBackend = timers or AsyncioTimers()
        self._late_grace = timedelta(seconds=late_grace_seconds)
        self._timers: dict[TimerKey, ScheduledReminder] = {}
        self._consumed: dict[TimerKey, datetime] = {}
        self._closed = False

    @property
    def pending(self) -> dict[TimerKey, datetime]:
        """Fire times of the timers currently held, keyed by (item_id, offset)."""
        return {key: entry.fire_at for key, entry in self._timers.items()}

    @property
    def fired(self) -> frozenset[TimerKey]:
        """Keys of reminders already fired by this scheduler."""
        return frozenset(self._consumed)

    @property
    def closed(self) -> bool:
        """Whether the scheduler has been torn down."""
        return self._closed

    def __len__(self) -> int:
        return len(self._timers)

    def reconcile(self, items: Iterable[Reminderable]) -> None:
        """Replace every held timer with timers for ``items``.

        Disabled or non-pending items get no timers. Offsets already sent
        server-side, or already fired here, are never scheduled again.

        :param items: The current item list.
        :raises SchedulerClosedError: If the scheduler was closed.
        """
        if self._closed:
            raise SchedulerClosedError("Cannot reconcile a closed reminder scheduler")

        self._cancel_all()
        now = self._backend.now()
        current = list(items)
        self._prune_consumed({item.id for item in current}, now)

        for item in current:
            if not is_eligible(item):
                continue

            sent = item.sent_offset_set
            for offset in effective_offsets(item):
                key: TimerKey = (item.id, offset)
                if offset in sent or key in self._consumed or key in self._timers:
                    continue
                self._schedule(item, offset, now)

        logger.debug(f"Reconciled reminder timers: {len(self._timers)} pending")

    def cancel(self, item_id: Hashable, offset: int) -> bool:
        """Cancel one timer.

        :param item_id: Item ID.
        :param offset: Offset in minutes.
        :returns: True if a timer was cancelled.
        """
        entry = self._timers.pop((item_id, offset), None)
        if entry is None:
            return False
        if entry.handle is not None:
            entry.handle.cancel()
        return True

    def close(self) -> None:
        """Tear down the scheduler, cancelling every outstanding timer."""
        self._cancel_all()
        self._closed = True
        logger.debug("Reminder scheduler closed")

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def _prune_consumed(self, current_ids: set[Hashable], now: datetime) -> None:
        """Forget fired reminders of items that left the list and can no longer fire.

        :param current_ids: IDs of the items being reconciled.
        :param now: Current time.
        """
        stale = [
            key
            for key, fire_at in self._consumed.items()
            if key[0] not in current_ids and now - fire_at >= self._late_grace
        ]
        for key in stale:
            del self._consumed[key]

    def _cancel_all(self) -> None:
        for entry in self._timers.values():
            if entry.handle is not None:
                entry.handle.cancel()
        self._timers.clear()

    def _schedule(self, item: Reminderable, offset: int, now: datetime) -> None:
        fire_at = item.due_at - timedelta(minutes=offset)
        delay = (fire_at - now).total_seconds()

        if delay <= 0 and now - fire_at >= self._late_grace:
            return

        entry = ScheduledReminder(item_id=item.id, offset=offset, fire_at=fire_at)
        entry.handle = self._backend.call_later(max(delay, 0.0), partial(self._fire, entry, item))
        self._timers[(item.id, offset)] = entry
        logger.debug(f"Scheduled reminder: item_id={item.id}, offset={offset}, at={fire_at}")

    def _fire(self, entry: ScheduledReminder, item: Reminderable) -> None:
        key: TimerKey = (entry.item_id, entry.offset)
        # A timer that was cancelled or replaced must not fire
        if self._closed or self._timers.get(key) is not entry:
            return

        del self._timers[key]
        self._consumed[key] = entry.fire_at
        offset = entry.offset
        minutes_until = minutes_until_due(item.due_at, self._backend.now())
        logger.info(f"Reminder fired locally: item_id={item.id}, offset={offset}")

        try:
            self._notify(item, offset, minutes_until)
        except Exception:
            logger.exception(f"Reminder notification failed: item_id={item.id}, offset={offset}")
