# app/services/pipeline_events.py — Non-blocking step/progress event delivery

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
import inspect
import logging
from typing import Any, Callable, Protocol

from app.database import get_supabase_client

logger = logging.getLogger(__name__)

_background_drains: set[asyncio.Task] = set()


@dataclass(frozen=True)
class StepEvent:
    step: str
    timestamp: datetime
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ProgressEvent:
    submission_id: str | None
    step: str
    progress: int


PipelineEvent = StepEvent | ProgressEvent


class PipelineObserver(Protocol):
    """Receives pipeline events. Methods may be plain or async; both are optional."""

    def on_step(self, event: StepEvent) -> Any: ...

    def on_progress(self, event: ProgressEvent) -> Any: ...


class PipelineEventSink:
    """
    Per-run bounded queue between the pipeline and its observers.

    Emitting never blocks: when the queue is full the new event is dropped.
    A background task delivers events in order; observer failures are
    logged and never reach the pipeline.
    """

    def __init__(self, observers: list[Any] | None = None, maxsize: int = 256):
        self.observers = list(observers or [])
        self.dropped = 0
        self._queue: asyncio.Queue[PipelineEvent] = asyncio.Queue(maxsize=maxsize)
        self._consumer: asyncio.Task | None = None

    async def __aenter__(self) -> "PipelineEventSink":
        self.start()
        return self

    async def __aexit__(self, *_exc_info) -> None:
        await self.aclose()

    def start(self) -> None:
        if self._consumer is None:
            self._consumer = asyncio.create_task(self._consume())

    def emit_step(self, step: str, **details: Any) -> None:
        self._emit(StepEvent(step=step, timestamp=datetime.now(timezone.utc), details=details))

    def emit_progress(self, submission_id: str | None, step: str, progress: int) -> None:
        self._emit(ProgressEvent(submission_id=submission_id, step=step, progress=progress))

    def _emit(self, event: PipelineEvent) -> None:
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                "Pipeline event dropped; observer queue full",
                extra={"event_type": type(event).__name__, "dropped": self.dropped},
            )

    async def aclose(self, timeout: float | None = 5.0) -> None:
        """Wait up to `timeout` seconds for queued events, then stop delivery."""
        if self._consumer is None:
            return
        try:
            await asyncio.wait_for(self._queue.join(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Pipeline observers did not drain in time",
                extra={"pending_events": self._queue.qsize(), "dropped": self.dropped},
            )
        self._consumer.cancel()
        try:
            await self._consumer
        except asyncio.CancelledError:
            pass
        self._consumer = None

    def close_in_background(self, timeout: float | None = 5.0) -> asyncio.Task | None:
        """Drain and stop delivery on a detached task so the emitter can return."""
        if self._consumer is None:
            return None
        task = asyncio.create_task(self.aclose(timeout=timeout))
        _background_drains.add(task)
        task.add_done_callback(_background_drains.discard)
        return task

    async def _consume(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self._dispatch(event)
            finally:
                self._queue.task_done()

    async def _dispatch(self, event: PipelineEvent) -> None:
        method = "on_step" if isinstance(event, StepEvent) else "on_progress"
        for observer in self.observers:
            handler = getattr(observer, method, None)
            if handler is None:
                continue
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:  # noqa: BLE001
                logger.exception(
                    "Pipeline observer failed",
                    extra={"observer": type(observer).__name__, "event_type": type(event).__name__},
                )


class LoggingObserver:
    def __init__(self, target: logging.Logger | None = None):
        self.target = target or logger

    def on_step(self, event: StepEvent) -> None:
        self.target.info(
            "Publishing step: %s",
            event.step,
            extra={"step": event.step, "timestamp": event.timestamp.isoformat(), "details": event.details},
        )

    def on_progress(self, event: ProgressEvent) -> None:
        self.target.debug(
            "Publishing progress: %s%%",
            event.progress,
            extra={"submission_id": event.submission_id, "step": event.step, "progress": event.progress},
        )


class CallbackObserver:
    """Adapts a caller's `on_progress(pct)` callback (plain or async)."""

    def __init__(self, on_progress: Callable[[int], Any]):
        self._on_progress = on_progress

    def on_progress(self, event: ProgressEvent) -> Any:
        return self._on_progress(event.progress)


class TimelineObserver:
    """Best-effort persistence of step events. Never raises to callers."""

    table = "app_publishing_events"

    def on_step(self, event: StepEvent) -> None:
        submission_id = event.details.get("submission_id")
        if not submission_id:
            return
        try:
            get_supabase_client().table(self.table).insert(
                {
                    "app_submission_id": submission_id,
                    "step": event.step,
                    "details": {key: value for key, value in event.details.items() if key != "submission_id"},
                    "created_at": event.timestamp.isoformat(),
                }
            ).execute()
        except Exception as exc:  # noqa: BLE001
            logger.exception(
                "Failed to write publishing timeline event",
                extra={"submission_id": submission_id, "step": event.step, "error": str(exc)},
            )


async def drain_background_sinks() -> None:
    """Wait for sinks closed with `close_in_background` on the running loop."""
    loop = asyncio.get_running_loop()
    pending = [task for task in _background_drains if task.get_loop() is loop]
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)
