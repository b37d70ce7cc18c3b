"""Autosave Scheduler — debounces layout mutations and persists them per user.

Each ``(user_id, template_id)`` pair owns an ``AutosaveTimer``. Mutations
are merged into the timer's buffer and the deadline moves forward on every
submit; when it passes, one write persists the latest state per widget.

Timer states:

    IDLE ──submit──▶ PENDING ──deadline──▶ PERSISTING ──▶ IDLE
                        │                      │ (buffer refilled)
                        │                      └──────────▶ PENDING
                        └──reset──▶ CANCELLED ──▶ IDLE

At most one write is in flight per timer. Submits that land while a write
is outstanding extend the buffer for the next window.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable

from ..contracts import AutosaveStatus, LayoutMutation, UserLayoutOverride
from ..errors import DashboardError
from ..utils.logging import get_logger
from .layout_merger import PendingChange, apply_changes, prepare_override, validate_mutation
from .override_store import OverrideStore
from .template_store import TemplateStore

logger = get_logger("engine.autosave")


class TimerState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    PERSISTING = "persisting"
    CANCELLED = "cancelled"


@dataclass
class AutosaveTimer:
    user_id: str
    template_id: str
    state: TimerState = TimerState.IDLE
    buffer: dict[str, PendingChange] = field(default_factory=dict)
    base_version: int | None = None  # overrideVersion read when the window opened
    deadline: float = 0.0
    task: asyncio.Task | None = None
    write_done: asyncio.Event | None = None  # set when the in-flight write finishes
    last_result: UserLayoutOverride | None = None
    last_error: DashboardError | None = None
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class AutosaveScheduler:
    """Coalesces per-user layout edits into single optimistic writes."""

    def __init__(
        self,
        override_store: OverrideStore,
        template_store: TemplateStore,
        interval_ms: int | None = None,
    ):
        self._overrides = override_store
        self._templates = template_store
        self._interval_ms = interval_ms
        self._timers: dict[tuple[str, str], AutosaveTimer] = {}
        self._writes = 0

    def _timer(self, user_id: str, template_id: str) -> AutosaveTimer:
        key = (user_id, template_id)
        timer = self._timers.get(key)
        if timer is None:
            timer = AutosaveTimer(user_id=user_id, template_id=template_id)
            self._timers[key] = timer
        return timer

    def interval_seconds(self, save_interval_ms: int) -> float:
        ms = self._interval_ms if self._interval_ms is not None else save_interval_ms
        return ms / 1000.0

    async def submit(
        self,
        user_id: str,
        template_id: str,
        mutation: LayoutMutation,
        permission_set: Iterable[str] | None = None,
    ) -> AutosaveStatus:
        """Validate and buffer ``mutation``.

        Validation errors raise immediately. With ``autoSave`` disabled on the
        template the change is written before returning.
        """
        template = await self._templates.get(template_id)
        changes = validate_mutation(template, mutation, permission_set)
        interval = self.interval_seconds(template.settings.save_interval)
        loop = asyncio.get_running_loop()

        immediate = not template.settings.auto_save
        key = (user_id, template_id)
        while True:
            timer = self._timer(user_id, template_id)
            async with timer.lock:
                # Discarded while we waited for the lock.
                if self._timers.get(key) is not timer:
                    continue
                if not timer.buffer and timer.write_done is None:
                    timer.base_version = await self._overrides.current_version(user_id, template_id)
                for widget_id, change in changes.items():
                    previous = timer.buffer.get(widget_id)
                    timer.buffer[widget_id] = previous.combine(change) if previous else change
                timer.deadline = loop.time() + interval

                # While a reset is cancelling, edits wait in the buffer without a timer.
                idle = timer.write_done is None and timer.task is None
                if not immediate and idle and timer.state is not TimerState.CANCELLED:
                    timer.state = TimerState.PENDING
                    timer.task = asyncio.create_task(self._run(timer))
                break

        logger.debug("autosave_buffered", user_id=user_id, template_id=template_id,
                     widgets=sorted(changes), pending=len(timer.buffer))

        if immediate:
            try:
                persisted = await self._persist(timer)
            except DashboardError:
                async with timer.lock:
                    timer.last_error = None  # reported to this caller directly
                    self._discard_if_idle(timer)
                raise
            return self.status(user_id, template_id, override=persisted)
        return self.status(user_id, template_id)

    def status(self, user_id: str, template_id: str, override: UserLayoutOverride | None = None) -> AutosaveStatus:
        timer = self._timers.get((user_id, template_id))
        if timer is None:
            return AutosaveStatus(user_id=user_id, template_id=template_id, state=TimerState.IDLE.value,
                                  override=override)
        save_in_ms = None
        if timer.state is TimerState.PENDING:
            remaining = timer.deadline - asyncio.get_running_loop().time()
            save_in_ms = max(0, int(remaining * 1000))
        return AutosaveStatus(
            user_id=user_id,
            template_id=template_id,
            state=timer.state.value,
            pending_widgets=sorted(timer.buffer),
            save_in_ms=save_in_ms,
            override=override,
        )

    def pending(self, user_id: str, template_id: str) -> dict[str, PendingChange]:
        """Buffered changes not yet written, for read-your-writes rendering."""
        timer = self._timers.get((user_id, template_id))
        return dict(timer.buffer) if timer else {}

    async def flush(self, user_id: str, template_id: str) -> UserLayoutOverride | None:
        """Write the buffer now instead of waiting for the deadline.

        Waits for any in-flight write first. A failure of an earlier
        background write is raised here once, so the client learns it must
        re-fetch. Returns the latest override this scheduler stored, or None.
        """
        timer = self._timers.get((user_id, template_id))
        if timer is None:
            return None
        while True:
            async with timer.lock:
                self._cancel_task(timer)
                write_done = timer.write_done
            if write_done is None:
                break
            await write_done.wait()

        try:
            persisted = await self._persist(timer)
        finally:
            async with timer.lock:
                error, timer.last_error = timer.last_error, None
                self._discard_if_idle(timer)
        if persisted is not None:
            return persisted
        if error is not None:
            raise error
        return timer.last_result

    async def reset(self, user_id: str, template_id: str) -> bool:
        """Cancel any pending write and delete the user's override.

        An in-flight write is allowed to land first so it cannot resurrect
        the override after deletion. Returns True if an override existed.
        """
        timer = self._timers.get((user_id, template_id))
        if timer is None:
            existed = await self._overrides.delete(user_id, template_id)
            logger.info("autosave_reset", user_id=user_id, template_id=template_id, existed=existed)
            return existed

        async with timer.lock:
            timer.state = TimerState.CANCELLED
            self._cancel_task(timer)
            timer.buffer.clear()
            write_done = timer.write_done
        if write_done is not None:
            await write_done.wait()

        async with timer.lock:
            self._cancel_task(timer)
            timer.buffer.clear()
            try:
                existed = await self._overrides.delete(user_id, template_id)
            finally:
                timer.state = TimerState.IDLE
                timer.base_version = None
                timer.last_result = None
                timer.last_error = None
                self._discard_if_idle(timer)
        logger.info("autosave_reset", user_id=user_id, template_id=template_id, existed=existed)
        return existed

    async def shutdown(self) -> None:
        """Flush every pending buffer; errors are logged, not raised."""
        for (user_id, template_id), timer in list(self._timers.items()):
            if not timer.buffer and timer.write_done is None:
                continue
            try:
                await self.flush(user_id, template_id)
            except DashboardError as e:
                logger.error("autosave_shutdown_flush_failed", user_id=user_id,
                             template_id=template_id, error=e.message)
        logger.info("autosave_scheduler_stopped", timers=len(self._timers))

    def get_stats(self) -> dict:
        states: dict[str, int] = {}
        for timer in self._timers.values():
            states[timer.state.value] = states.get(timer.state.value, 0) + 1
        return {
            "timers": len(self._timers),
            "states": states,
            "writes": self._writes,
        }

    def _discard_if_idle(self, timer: AutosaveTimer) -> None:
        """Drop a timer with nothing buffered, in flight or left to report.

        Callers hold ``timer.lock``. ``submit`` re-checks the registry after
        taking the lock, so a discarded timer never receives new edits.
        """
        key = (timer.user_id, timer.template_id)
        if (
            timer.state is TimerState.IDLE
            and not timer.buffer
            and timer.write_done is None
            and timer.task is None
            and timer.last_error is None
            and self._timers.get(key) is timer
        ):
            del self._timers[key]

    @staticmethod
    def _cancel_task(timer: AutosaveTimer) -> None:
        if timer.task is not None and timer.task is not asyncio.current_task():
            timer.task.cancel()
        timer.task = None

    async def _run(self, timer: AutosaveTimer) -> None:
        """Sleep until the (moving) deadline passes, then write."""
        loop = asyncio.get_running_loop()
        while True:
            delay = timer.deadline - loop.time()
            if delay <= 0:
                break
            await asyncio.sleep(delay)
        async with timer.lock:
            if timer.task is asyncio.current_task():
                timer.task = None
        try:
            await self._persist(timer)
        except DashboardError as e:
            # Kept on timer.last_error for the next flush() caller.
            logger.debug("autosave_background_write_failed", user_id=timer.user_id, code=e.code)
        except Exception as e:
            logger.error("autosave_unexpected_error", user_id=timer.user_id,
                         template_id=timer.template_id, error=str(e), exc_info=True)

    async def _persist(self, timer: AutosaveTimer) -> UserLayoutOverride | None:
        async with timer.lock:
            if timer.write_done is not None or timer.state is TimerState.CANCELLED:
                return None
            if not timer.buffer:
                timer.state = TimerState.IDLE
                return None
            changes = timer.buffer
            timer.buffer = {}
            expected = timer.base_version
            timer.state = TimerState.PERSISTING
            timer.write_done = asyncio.Event()
            timer.last_error = None

        saved = None
        try:
            if expected is None:
                expected = await self._overrides.current_version(timer.user_id, timer.template_id)
            saved = await self._write(timer, changes, expected)
            return saved
        except DashboardError as e:
            timer.last_error = e
            logger.warning(
                "autosave_write_failed",
                user_id=timer.user_id,
                template_id=timer.template_id,
                code=e.code,
                retryable=e.retryable,
                dropped_widgets=sorted(changes),
            )
            raise
        finally:
            async with timer.lock:
                done = timer.write_done
                timer.write_done = None
                if saved is not None:
                    timer.last_result = saved
                    self._writes += 1
                # A cancelling reset owns the timer from here.
                if timer.state is not TimerState.CANCELLED:
                    if timer.buffer:
                        # Edits that arrived mid-write open the next window.
                        timer.base_version = saved.override_version if saved is not None else None
                        timer.state = TimerState.PENDING
                        if timer.task is None:
                            timer.task = asyncio.create_task(self._run(timer))
                    else:
                        timer.state = TimerState.IDLE
                        timer.base_version = None
                        self._discard_if_idle(timer)
                done.set()

    async def _write(
        self,
        timer: AutosaveTimer,
        changes: dict[str, PendingChange],
        expected_version: int,
    ) -> UserLayoutOverride:
        template = await self._templates.get(timer.template_id)
        current = await self._overrides.get(timer.user_id, timer.template_id)
        if current is None:
            current = UserLayoutOverride(
                user_id=timer.user_id,
                template_id=timer.template_id,
                template_version=template.version,
            )
        else:
            current = prepare_override(template, current)
        updated = apply_changes(current, changes, template.version)
        saved = await self._overrides.save(updated, expected_version)
        logger.info(
            "autosave_persisted",
            user_id=timer.user_id,
            template_id=timer.template_id,
            override_version=saved.override_version,
            widgets=sorted(changes),
        )
        return saved
