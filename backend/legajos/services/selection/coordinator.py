"""
Legajo Selection Coordinator

Loads a selected record's sub-resources using the cache, the retry
executor, a progress tracker and user notifications. At most one remote
load runs per selector; selecting another record aborts the previous one.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Set
from uuid import uuid4

import structlog
from pydantic import ValidationError

from ...core.abort import AbortController, AbortSignal
from ...core.exceptions import CancellationError, RemoteNotFoundError
from ...core.logging import LogBuffer, LogEntry
from ...domain.entities import (
    Legajo,
    LegajoData,
    LegajoExtendido,
    SelectionState,
    ensure_list,
)
from ...infrastructure.http.fetcher import FetchJson, LegajoEndpoints
from ..cache.ttl_cache import CacheStats, TTLCache
from ..notifications.queue import NotificationQueue
from ..progress.registry import ProgressRegistry, StepStatus
from ..retry.executor import RetryExecutor, RetryOutcome

logger = structlog.get_logger()

# One step per sub-resource, in fetch order
LOAD_STEPS = [
    "Fetching actas",
    "Fetching articulos",
    "Fetching estado history",
    "Fetching giro history",
]

StateListener = Callable[[SelectionState], None]


@dataclass
class _InflightLoad:
    key: str
    task: "asyncio.Task[SelectionState]"
    controller: AbortController


class LegajoSelector:
    """
    Select-and-load workflow for case records.

    Cache hits return immediately with an info notification. Misses run
    a tracked, retried fetch of the four sub-resources and cache the
    combined result. Failures fall back to the bare record and offer a
    retry action.
    """

    def __init__(
        self,
        fetch: FetchJson,
        endpoints: LegajoEndpoints,
        cache: TTLCache[LegajoData],
        retry: RetryExecutor,
        progress: ProgressRegistry,
        notifications: NotificationQueue,
        cache_ttl_seconds: Optional[float] = None,
        enable_cache: bool = True,
        enable_retry: bool = True,
        log_buffer: Optional[LogBuffer] = None,
    ):
        self.fetch = fetch
        self.endpoints = endpoints
        self.cache = cache
        self.retry = retry
        self.progress = progress
        self.notifications = notifications
        self.cache_ttl_seconds = cache_ttl_seconds
        self.enable_cache = enable_cache
        self.enable_retry = enable_retry
        self.log_buffer = log_buffer

        self.state = SelectionState()
        self._listeners: List[StateListener] = []
        self._inflight: Optional[_InflightLoad] = None
        self._background_tasks: Set[asyncio.Task] = set()

    # State

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_state(self, state: SelectionState) -> None:
        self.state = state
        for listener in list(self._listeners):
            listener(state)

    def set_selected(self, legajo: Optional[LegajoExtendido]) -> None:
        self._set_state(self.state.model_copy(update={"legajo_seleccionado": legajo}))

    # Selection

    async def select(self, record: Legajo) -> SelectionState:
        """
        Select a record and load its sub-resources.

        Args:
            record: The selected case record

        Returns:
            Selection state after the load settles
        """
        key = record.cache_key
        inflight = self._inflight
        if inflight is not None and not inflight.task.done():
            if inflight.key == key:
                logger.debug("Joining in-flight load", key=key)
                return await asyncio.shield(inflight.task)
            inflight.controller.abort(reason=f"superseded by {key}")
            logger.info("Aborted in-flight load", key=inflight.key, superseded_by=key)

        if self.enable_cache:
            cached = self.cache.get(key)
            if cached is not None:
                logger.info("Legajo served from cache", key=key)
                self.notifications.info("Data loaded", "Loaded from cache")
                state = SelectionState(
                    legajo_seleccionado=LegajoExtendido.from_data(record, cached),
                    from_cache=True,
                )
                self._set_state(state)
                return state

        controller = AbortController()
        task = asyncio.ensure_future(self._load(record, controller.signal))
        load = _InflightLoad(key=key, task=task, controller=controller)
        self._inflight = load
        try:
            return await task
        finally:
            if self._inflight is load:
                self._inflight = None

    def retry_selection(self, record: Legajo) -> "asyncio.Task[SelectionState]":
        """Re-run select() in the background, e.g. from a notification action."""
        task = asyncio.get_running_loop().create_task(self.select(record))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        return task

    async def _load(self, record: Legajo, signal: AbortSignal) -> SelectionState:
        key = record.cache_key
        tracker_id = f"{key}_{uuid4().hex[:8]}"
        self.progress.create_tracker(
            tracker_id,
            f"Loading legajo {record.id}",
            LOAD_STEPS,
            metadata={"legajo_id": record.id},
        )
        self.progress.start_tracker(tracker_id)
        self._set_state(
            SelectionState(
                legajo_seleccionado=self.state.legajo_seleccionado, is_loading=True
            )
        )
        loading_id = self.notifications.show_progress(
            "Loading legajo", f"Fetching data for legajo {record.id}", 0
        )

        max_attempts = self.retry.policy.max_attempts if self.enable_retry else 1

        def on_retry(attempt: int, error: BaseException) -> None:
            self.notifications.warning(
                "Retrying",
                f"Attempt {attempt + 1} of {max_attempts} for legajo {record.id}: "
                f"{error}",
            )

        try:
            outcome: RetryOutcome[LegajoData] = await self.retry.execute_request(
                lambda: self._fetch_all(record.id, tracker_id, loading_id, signal),
                config={"max_attempts": max_attempts},
                on_retry=on_retry,
            )
        except asyncio.CancelledError:
            self.progress.cancel_tracker(tracker_id)
            self.notifications.remove(loading_id)
            raise

        self.notifications.remove(loading_id)
        if signal.aborted:
            return self._settle_superseded(record, tracker_id, signal)
        if outcome.success:
            return self._settle_success(record, tracker_id, outcome)
        return self._settle_failure(record, tracker_id, outcome)

    def _settle_superseded(
        self, record: Legajo, tracker_id: str, signal: AbortSignal
    ) -> SelectionState:
        # The newer selection owns the cache entry and the shared state
        self.progress.cancel_tracker(tracker_id)
        logger.info("Legajo load aborted", legajo_id=record.id, reason=signal.reason)
        error = CancellationError(reason=signal.reason)
        return SelectionState(
            legajo_seleccionado=LegajoExtendido.fallback(record), error=str(error)
        )

    def _settle_success(
        self, record: Legajo, tracker_id: str, outcome: RetryOutcome[LegajoData]
    ) -> SelectionState:
        data = outcome.value
        try:
            legajo = LegajoExtendido.from_data(record, data)
        except ValidationError as e:
            failed: RetryOutcome[LegajoData] = RetryOutcome(
                success=False,
                attempts=outcome.attempts,
                elapsed=outcome.elapsed,
                error=e,
            )
            return self._settle_failure(record, tracker_id, failed)

        if self.enable_cache:
            self.cache.set(record.cache_key, data, self.cache_ttl_seconds)
        self.progress.complete_tracker(tracker_id, True)
        self.notifications.success("Legajo loaded", data.summary())

        logger.info(
            "Legajo loaded",
            legajo_id=record.id,
            attempts=outcome.attempts,
            elapsed=round(outcome.elapsed, 3),
            **data.counts(),
        )
        state = SelectionState(legajo_seleccionado=legajo)
        self._set_state(state)
        return state

    def _settle_failure(
        self, record: Legajo, tracker_id: str, outcome: RetryOutcome[LegajoData]
    ) -> SelectionState:
        error = outcome.error
        fallback = LegajoExtendido.fallback(record)

        message = str(error) or "Unknown error while loading legajo data"
        tracker = self.progress.get_tracker(tracker_id)
        if tracker is not None:
            for step in tracker.steps:
                if step.status == StepStatus.RUNNING:
                    self.progress.update_step(
                        tracker_id, step.id, step.progress, StepStatus.FAILED, message
                    )
        self.progress.complete_tracker(tracker_id, False)
        self.notifications.show_retry_error(
            "Could not load legajo",
            message,
            on_retry=lambda: self.retry_selection(record),
        )

        logger.error(
            "Legajo load failed",
            legajo_id=record.id,
            attempts=outcome.attempts,
            error=message,
            error_type=type(error).__name__,
        )
        state = SelectionState(legajo_seleccionado=fallback, error=message)
        self._set_state(state)
        return state

    async def _fetch_all(
        self,
        legajo_id: str,
        tracker_id: str,
        loading_id: str,
        signal: AbortSignal,
    ) -> LegajoData:
        signal.throw_if_aborted()

        urls = [
            self.endpoints.actas(legajo_id),
            self.endpoints.articulos(legajo_id),
            self.endpoints.historial_estados(legajo_id),
            self.endpoints.historial_giros(legajo_id),
        ]
        for index in range(len(urls)):
            self.progress.update_step(
                tracker_id, f"step_{index}", 0, StepStatus.RUNNING
            )

        completed = 0

        async def fetch_step(index: int, url: str) -> List[Dict[str, Any]]:
            nonlocal completed
            items = await self._fetch_resource(url, signal)
            self.progress.update_step(
                tracker_id,
                f"step_{index}",
                100,
                StepStatus.COMPLETED,
                metadata={"count": len(items)},
            )
            completed += 1
            self.notifications.update_progress(
                loading_id, round(completed * 100 / len(urls))
            )
            return items

        tasks = [
            asyncio.ensure_future(fetch_step(index, url))
            for index, url in enumerate(urls)
        ]
        try:
            actas, articulos, estados, giros = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            raise

        return LegajoData(
            actas=actas,
            articulos=articulos,
            historial_estados=estados,
            historial_giros=giros,
        )

    async def _fetch_resource(
        self, url: str, signal: AbortSignal
    ) -> List[Dict[str, Any]]:
        try:
            data = await self.fetch(url, signal)
        except RemoteNotFoundError:
            logger.warning("Sub-resource not found, using empty result", url=url)
            return []
        return ensure_list(data)

    # Cache and log helpers for the UI layer

    def clear_cache(self) -> None:
        self.cache.clear()

    def get_cache_stats(self) -> CacheStats:
        return self.cache.get_stats()

    def get_logs(self, level: Optional[str] = None) -> List[LogEntry]:
        if self.log_buffer is None:
            return []
        return self.log_buffer.get_logs(level)

    def clear_logs(self) -> None:
        if self.log_buffer is not None:
            self.log_buffer.clear()
