"""
Progress Tracker Registry

Named multi-step operations with per-step and overall progress.

Tracker state machine:
    idle -> running -> completed | failed | cancelled
    idle -> cancelled
Terminal trackers reject every further mutation.
"""

import asyncio
import copy
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field

from ...constants import get_current_timestamp

logger = structlog.get_logger()

CANCELLED_STEP_ERROR = "Cancelled by user"


class StepStatus(str, Enum):
    """Progress step status."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class TrackerStatus(str, Enum):
    """Progress tracker status."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (
            TrackerStatus.COMPLETED,
            TrackerStatus.FAILED,
            TrackerStatus.CANCELLED,
        )


class ProgressConfig(BaseModel):
    """Progress registry configuration."""

    model_config = ConfigDict(extra="forbid")

    max_trackers: int = Field(default=10, ge=1, le=1000)
    auto_cleanup: bool = Field(default=True)
    cleanup_delay_seconds: float = Field(
        default=300.0, gt=0, description="Age after end before a tracker is swept"
    )
    cleanup_interval_seconds: float = Field(
        default=30.0, gt=0, description="Finished tracker sweep interval"
    )


@dataclass
class ProgressStep:
    id: str
    name: str
    status: StepStatus = StepStatus.PENDING
    progress: int = 0
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    error: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


@dataclass
class ProgressTracker:
    """
    A multi-step operation.

    overall_progress is the rounded mean of step contributions: completed
    steps count 100, the running step counts its own progress, others 0.
    """

    id: str
    title: str
    steps: List[ProgressStep]
    description: Optional[str] = None
    current_step_index: int = 0
    overall_progress: int = 0
    status: TrackerStatus = TrackerStatus.IDLE
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    metadata: Optional[Dict[str, Any]] = None

    @property
    def total_steps(self) -> int:
        return len(self.steps)

    def get_step(self, step_id: str) -> Optional[ProgressStep]:
        return next((s for s in self.steps if s.id == step_id), None)

    def recalculate(self) -> None:
        completed = [s for s in self.steps if s.status == StepStatus.COMPLETED]
        running = [s for s in self.steps if s.status == StepStatus.RUNNING]

        total = len(completed) * 100 + sum(s.progress for s in running)
        if self.steps:
            # Half-up rounding, matching Math.round on the UI side
            self.overall_progress = int(total / len(self.steps) + 0.5)
        else:
            self.overall_progress = 0
        self.current_step_index = len(completed) + len(running)

    def snapshot(self) -> "ProgressTracker":
        return copy.deepcopy(self)


TrackerListener = Callable[[ProgressTracker], None]


class ProgressRegistry:
    """
    Registry of progress trackers.

    Subscribers receive a snapshot of the changed tracker synchronously
    after each mutation completes.
    """

    def __init__(
        self,
        config: Optional[ProgressConfig] = None,
        clock: Callable[[], datetime] = get_current_timestamp,
    ):
        self.config = config or ProgressConfig()
        self._clock = clock
        self._trackers: Dict[str, ProgressTracker] = {}
        self._listeners: List[TrackerListener] = []
        self._cleanup_task: Optional[asyncio.Task] = None

    def _notify(self, tracker: ProgressTracker) -> None:
        snapshot = tracker.snapshot()
        for listener in list(self._listeners):
            listener(snapshot)

    def subscribe(self, listener: TrackerListener) -> Callable[[], None]:
        """
        Register a listener for tracker changes.

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def create_tracker(
        self,
        tracker_id: str,
        title: str,
        step_names: List[str],
        description: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> ProgressTracker:
        """
        Create an idle tracker with one pending step per name.

        Evicts the oldest tracker when the registry is full.
        """
        if not step_names:
            raise ValueError("step_names must not be empty")

        # Re-creating an id moves it to the end of the insertion order
        self._trackers.pop(tracker_id, None)
        if len(self._trackers) >= self.config.max_trackers:
            oldest_id = next(iter(self._trackers))
            del self._trackers[oldest_id]
            logger.debug("Progress tracker evicted", tracker_id=oldest_id)

        tracker = ProgressTracker(
            id=tracker_id,
            title=title,
            description=description,
            metadata=metadata,
            steps=[
                ProgressStep(id=f"step_{index}", name=name)
                for index, name in enumerate(step_names)
            ],
        )
        self._trackers[tracker_id] = tracker
        self._notify(tracker)

        logger.info(
            "Progress tracker created",
            tracker_id=tracker_id,
            title=title,
            steps=len(step_names),
        )
        return tracker

    def start_tracker(self, tracker_id: str) -> bool:
        tracker = self._trackers.get(tracker_id)
        if tracker is None or tracker.status != TrackerStatus.IDLE:
            return False

        tracker.status = TrackerStatus.RUNNING
        tracker.started_at = self._clock()
        self._notify(tracker)

        logger.info("Progress tracker started", tracker_id=tracker_id)
        return True

    def update_step(
        self,
        tracker_id: str,
        step_id: str,
        progress: int,
        status: Optional[StepStatus] = None,
        error: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Update one step and recompute the tracker's overall progress.

        Args:
            tracker_id: Tracker ID
            step_id: Step ID (``step_<index>``)
            progress: Step progress, clamped to [0, 100]
            status: New step status
            error: Error message to record
            metadata: Merged into the step's metadata

        Returns:
            False if the tracker or step is unknown, or the tracker is terminal
        """
        tracker = self._trackers.get(tracker_id)
        if tracker is None:
            return False
        if tracker.status.is_terminal:
            logger.debug(
                "Ignoring step update on finished tracker",
                tracker_id=tracker_id,
                status=tracker.status.value,
            )
            return False

        step = tracker.get_step(step_id)
        if step is None:
            return False

        step.progress = max(0, min(100, int(progress)))
        if status is not None:
            status = StepStatus(status)
            step.status = status
        if error:
            step.error = error
        if metadata:
            step.metadata = {**(step.metadata or {}), **metadata}

        if status == StepStatus.RUNNING and step.started_at is None:
            step.started_at = self._clock()
        if status in (StepStatus.COMPLETED, StepStatus.FAILED):
            step.ended_at = self._clock()

        tracker.recalculate()
        self._notify(tracker)
        return True

    def complete_tracker(self, tracker_id: str, success: bool = True) -> bool:
        """
        Finish a running tracker.

        On success any pending step is marked skipped at 100%, so overall
        progress always reaches 100.
        """
        tracker = self._trackers.get(tracker_id)
        if tracker is None or tracker.status != TrackerStatus.RUNNING:
            return False

        tracker.status = TrackerStatus.COMPLETED if success else TrackerStatus.FAILED
        tracker.ended_at = self._clock()

        if success:
            for step in tracker.steps:
                if step.status == StepStatus.PENDING:
                    step.status = StepStatus.SKIPPED
                    step.progress = 100
            tracker.recalculate()
            tracker.overall_progress = 100
        else:
            tracker.recalculate()
        self._notify(tracker)

        logger.info(
            "Progress tracker finished",
            tracker_id=tracker_id,
            status=tracker.status.value,
            overall_progress=tracker.overall_progress,
        )
        return True

    def cancel_tracker(self, tracker_id: str) -> bool:
        """Cancel an idle or running tracker; running steps become failed."""
        tracker = self._trackers.get(tracker_id)
        if tracker is None or tracker.status.is_terminal:
            return False

        now = self._clock()
        tracker.status = TrackerStatus.CANCELLED
        tracker.ended_at = now
        for step in tracker.steps:
            if step.status == StepStatus.RUNNING:
                step.status = StepStatus.FAILED
                step.error = CANCELLED_STEP_ERROR
                step.ended_at = now
        tracker.recalculate()
        self._notify(tracker)

        logger.info("Progress tracker cancelled", tracker_id=tracker_id)
        return True

    def get_tracker(self, tracker_id: str) -> Optional[ProgressTracker]:
        return self._trackers.get(tracker_id)

    def get_all_trackers(self) -> List[ProgressTracker]:
        return list(self._trackers.values())

    def remove_tracker(self, tracker_id: str) -> bool:
        removed = self._trackers.pop(tracker_id, None) is not None
        if removed:
            logger.debug("Progress tracker removed", tracker_id=tracker_id)
        return removed

    def clear_all(self) -> None:
        self._trackers.clear()
        logger.info("All progress trackers removed")

    def get_stats(self) -> Dict[str, int]:
        trackers = self._trackers.values()
        return {
            "total_trackers": len(self._trackers),
            "active_trackers": sum(
                t.status == TrackerStatus.RUNNING for t in trackers
            ),
            "completed_trackers": sum(
                t.status == TrackerStatus.COMPLETED for t in trackers
            ),
            "failed_trackers": sum(t.status == TrackerStatus.FAILED for t in trackers),
        }

    # Auto-cleanup

    def cleanup_finished(self) -> int:
        """
        Remove finished trackers whose end is older than the cleanup delay.

        Returns:
            Number of trackers removed
        """
        now = self._clock()
        expired = [
            tracker_id
            for tracker_id, tracker in self._trackers.items()
            if tracker.status.is_terminal
            and tracker.ended_at is not None
            and (now - tracker.ended_at).total_seconds()
            > self.config.cleanup_delay_seconds
        ]
        for tracker_id in expired:
            del self._trackers[tracker_id]

        if expired:
            logger.info("Progress cleanup", removed=len(expired))
        return len(expired)

    def start_cleanup(self) -> None:
        """Start the periodic sweep on the running event loop."""
        if not self.config.auto_cleanup:
            return
        if self._cleanup_task is not None and not self._cleanup_task.done():
            return
        self._cleanup_task = asyncio.get_running_loop().create_task(
            self._cleanup_loop()
        )

    def stop_cleanup(self) -> None:
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            self._cleanup_task = None

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.cleanup_interval_seconds)
            self.cleanup_finished()

    def get_config(self) -> ProgressConfig:
        return self.config.model_copy()

    def update_config(self, **changes) -> None:
        """Apply a validated partial update.

        Toggling auto_cleanup starts or stops the sweep, which needs a
        running event loop.
        """
        self.config = ProgressConfig(**{**dict(self.config), **changes})

        if "auto_cleanup" in changes:
            if self.config.auto_cleanup:
                self.start_cleanup()
            else:
                self.stop_cleanup()

    def destroy(self) -> None:
        self.stop_cleanup()
        self._trackers.clear()
        self._listeners.clear()
