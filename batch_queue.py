"""
Batch Queue Engine
==================
Sequential processing of a batch with pacing, quota back-off, password
wait and cancellation.

Workflow of one run:
1. Snapshot the ids in IDLE, in insertion order
2. For each id: mark PROCESSING, wait the pacing delay (not for the first
   item), call the processor, apply the outcome
3. A quota signal parks the item back in IDLE and puts the batch in
   COOLDOWN; a timer returns it to IDLE after the cooldown
4. cancel_all() freezes everything: no result arriving later is applied

Exactly one processor call is in flight per engine. Re-entrant calls to
run_queue() while a run is active are folded into one extra pass at the
end of the current run.

The processor is any `async (WorkItem) -> result` callable, so the renamer,
the PDF splitter and the payment-code reader share this engine.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Set

import config
from exceptions import (
    IncorrectPasswordError,
    PasswordRequiredError,
    QuotaExceededError,
)
from models import AnalysisStatus, ItemStore, RunState, SourceFile, WorkItem

logger = logging.getLogger('suop.queue')

Processor = Callable[[WorkItem], Awaitable[Any]]
Unlocker = Callable[[SourceFile, str], Awaitable[SourceFile]]
EventCallback = Callable[[str, dict], None]


class CancellationToken:
    """Abort flag for one run; every suspension point checks it."""

    def __init__(self):
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def sleep(self, seconds: float) -> bool:
        """
        Wait `seconds` unless cancelled first.

        Returns:
            True if the full delay elapsed, False if cancelled
        """
        if self.cancelled:
            return False
        if seconds <= 0:
            return True
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return True
        return False


@dataclass
class BatchContext:
    """Run state of one batch (owned by its engine, never shared)."""
    state: RunState = RunState.IDLE
    token: Optional[CancellationToken] = None
    ready_notification: bool = False
    cooldown_handle: Optional[asyncio.TimerHandle] = None
    rerun_requested: bool = False
    notification_handle: Optional[asyncio.TimerHandle] = None


class BatchQueueEngine:
    """
    Drains IDLE items one at a time.

    Usage:
        engine = BatchQueueEngine(store, processor=extract_item)
        await engine.run_queue()
    """

    def __init__(
        self,
        store: ItemStore,
        processor: Processor,
        unlocker: Optional[Unlocker] = None,
        pacing_delay: float = config.PACING_DELAY_SECONDS,
        cooldown_seconds: float = config.COOLDOWN_SECONDS,
        auto_resume: bool = config.COOLDOWN_AUTO_RESUME,
        ready_seconds: float = config.READY_NOTIFICATION_SECONDS,
        on_event: Optional[EventCallback] = None
    ):
        self.store = store
        self.processor = processor
        self.unlocker = unlocker
        self.pacing_delay = pacing_delay
        self.cooldown_seconds = cooldown_seconds
        self.auto_resume = auto_resume
        self.ready_seconds = ready_seconds
        self.on_event = on_event
        self.context = BatchContext()
        self._background: Set[asyncio.Task] = set()
        self._attempted = 0
        self._in_flight: Optional[asyncio.Future] = None

    # ==========================================================================
    # PROPERTIES
    # ==========================================================================

    @property
    def state(self) -> RunState:
        return self.context.state

    @property
    def is_locked(self) -> bool:
        """New uploads are held back while running or cooling down."""
        return self.context.state is not RunState.IDLE

    @property
    def ready_notification(self) -> bool:
        return self.context.ready_notification

    def dismiss_notification(self) -> None:
        context = self.context
        context.ready_notification = False
        if context.notification_handle is not None:
            context.notification_handle.cancel()
            context.notification_handle = None

    def _emit(self, event: str, **payload) -> None:
        if self.on_event is None:
            return
        try:
            self.on_event(event, payload)
        except Exception as e:
            logger.warning(f"Event callback error ({event}): {e}")

    def _notify_ready(self) -> None:
        """Raise the "ready" flag; it hides itself after `ready_seconds`."""
        self.dismiss_notification()
        self.context.ready_notification = True
        self._emit("ready")

        loop = asyncio.get_running_loop()
        self.context.notification_handle = loop.call_later(
            self.ready_seconds, self.dismiss_notification
        )

    # ==========================================================================
    # RUN
    # ==========================================================================

    async def run_queue(self) -> None:
        """
        Process every item currently in IDLE.

        Safe to call at any time: no-op during cooldown or when nothing is
        IDLE, and folded into the active run when one is in progress.
        """
        context = self.context

        if context.state is RunState.COOLDOWN:
            logger.info("Queue is cooling down, run request ignored")
            return

        if context.state is RunState.RUNNING:
            context.rerun_requested = True
            logger.debug("Run in progress, extra pass scheduled")
            return

        pending = self.store.idle_ids()
        if not pending:
            return

        token = CancellationToken()
        context.token = token
        context.state = RunState.RUNNING
        self.dismiss_notification()
        context.rerun_requested = False
        self._attempted = 0
        self._emit("run_started", total=len(pending))
        logger.info(f"Run started with {len(pending)} item(s)")

        while True:
            halted = await self._drain(pending, token)

            if token.cancelled:
                logger.info("Run cancelled, state frozen")
                return

            if halted:
                return

            if not context.rerun_requested:
                break

            context.rerun_requested = False
            pending = self.store.idle_ids()
            if not pending:
                break
            logger.info(f"Extra pass with {len(pending)} item(s)")

        context.state = RunState.IDLE
        self._emit("run_finished", stats=self.store.stats())
        logger.info("Run finished")
        self._notify_ready()

    async def retry_queue(self) -> None:
        """Pick up IDLE items again (including those parked by a quota pause)."""
        self.dismiss_notification()
        await self.run_queue()

    async def _drain(self, pending: List[str], token: CancellationToken) -> bool:
        """
        Process the snapshot in order.

        Returns:
            True if the run was halted by a quota signal
        """
        for item_id in pending:
            if token.cancelled:
                return False

            item = self.store.get(item_id)
            if item is None or item.status is not AnalysisStatus.IDLE:
                # Deleted, unlocked elsewhere or edited since the snapshot
                continue

            self.store.transition(item_id, AnalysisStatus.PROCESSING)
            self._emit("item_updated", item=item)

            # A call left running by a cancelled run counts as the previous request
            settled = await self._settle_abandoned_call()
            if token.cancelled:
                return False

            if self._attempted > 0 or settled:
                if not await token.sleep(self.pacing_delay):
                    return False

            if self.store.get(item_id) is None:
                logger.debug(f"{item.original_name}: removed while waiting, not sent")
                continue
            self._attempted += 1

            if await self._process_one(item, token):
                return True

        return False

    async def _call_processor(self, item: WorkItem) -> Any:
        call = asyncio.ensure_future(self.processor(item))
        self._in_flight = call
        return await call

    async def _settle_abandoned_call(self) -> bool:
        """
        Wait for a processor call still running from a cancelled run.

        Its result is discarded by the old token; waiting here keeps a
        single extraction in flight per engine.

        Returns:
            True if such a call had to be awaited
        """
        call = self._in_flight
        if call is None or call.done():
            return False
        logger.info("Waiting for an abandoned extraction to finish")
        await asyncio.wait([call])
        return True

    async def _process_one(self, item: WorkItem, token: CancellationToken) -> bool:
        """
        Run the processor for one item and apply its outcome.

        Returns:
            True if a quota signal halted the run
        """
        try:
            result = await self._call_processor(item)
        except PasswordRequiredError:
            if token.cancelled:
                return False
            logger.info(f"{item.original_name}: waiting for password")
            self._apply(item.id, AnalysisStatus.WAITING_PASSWORD)
            return False
        except QuotaExceededError as e:
            if token.cancelled:
                return False
            logger.warning(f"{item.original_name}: quota signal, pausing batch ({e})")
            self._apply(item.id, AnalysisStatus.IDLE)
            self._enter_cooldown(token)
            return True
        except Exception as e:
            if token.cancelled:
                return False
            message = str(e) or config.MSG_ANALYSIS_FAILED
            logger.error(f"{item.original_name}: {message}")
            self._apply(item.id, AnalysisStatus.ERROR, error_message=message)
            return False

        if token.cancelled:
            return False

        if result is None:
            self._apply(item.id, AnalysisStatus.ERROR, error_message=config.MSG_ANALYSIS_FAILED)
            return False

        logger.info(f"{item.original_name}: complete")
        self._apply(item.id, AnalysisStatus.COMPLETE, extracted=result)
        return False

    def _apply(
        self,
        item_id: str,
        status: AnalysisStatus,
        extracted: Any = None,
        error_message: Optional[str] = None
    ) -> None:
        item = self.store.transition(item_id, status, extracted=extracted, error_message=error_message)
        if item is None:
            logger.debug(f"Result for removed item {item_id} discarded")
            return
        self._emit("item_updated", item=item)

    # ==========================================================================
    # COOLDOWN
    # ==========================================================================

    def _enter_cooldown(self, token: CancellationToken) -> None:
        context = self.context
        context.state = RunState.COOLDOWN
        context.rerun_requested = False
        self._emit("cooldown_started", seconds=self.cooldown_seconds)

        loop = asyncio.get_running_loop()
        context.cooldown_handle = loop.call_later(
            self.cooldown_seconds, self._end_cooldown, token
        )

    def _end_cooldown(self, token: CancellationToken) -> None:
        self.context.cooldown_handle = None
        if token.cancelled:
            return

        self.context.state = RunState.IDLE
        logger.info("Cooldown finished, queue released")
        self._emit("cooldown_finished")
        self._notify_ready()

        if self.auto_resume:
            task = asyncio.ensure_future(self.run_queue())
            self._background.add(task)
            task.add_done_callback(self._background.discard)

    # ==========================================================================
    # PASSWORD
    # ==========================================================================

    async def unlock(self, item_id: str, password: str) -> bool:
        """
        Unlock a WAITING_PASSWORD item and send it back through the queue.

        Returns:
            True if the password worked
        """
        item = self.store.get(item_id)
        if item is None or item.status is not AnalysisStatus.WAITING_PASSWORD:
            return False
        if self.unlocker is None:
            raise RuntimeError("No unlock collaborator configured")

        try:
            unlocked = await self.unlocker(item.source_file, password)
        except IncorrectPasswordError:
            if self.store.set_error_message(item_id, config.MSG_INCORRECT_PASSWORD):
                self._emit("item_updated", item=item)
            return False

        item = self.store.get(item_id)
        if item is None or item.status is not AnalysisStatus.WAITING_PASSWORD:
            return False

        self.store.replace_file(item_id, unlocked)
        self._emit("item_updated", item=item)
        logger.info(f"{item.original_name}: unlocked, back in the queue")

        await self.run_queue()
        return True

    # ==========================================================================
    # CANCELLATION
    # ==========================================================================

    def cancel_all(self) -> None:
        """
        Stop everything synchronously.

        The in-flight processor call is not interrupted, but its result is
        discarded and the cooldown timer will not fire.
        """
        context = self.context
        if context.token is not None:
            context.token.cancel()
        if context.cooldown_handle is not None:
            context.cooldown_handle.cancel()
            context.cooldown_handle = None

        context.state = RunState.IDLE
        context.rerun_requested = False
        context.ready_notification = True
        self._emit("cancelled")
        logger.info("Batch cancelled")
