"""
Trajectory Executor Module
==========================

Timed playback of planned waypoint sequences onto the live pose.

State Machine:

    IDLE ──start(target) [all waypoints reachable]──▶ EXECUTING
      ▲                                                  │
      │            tick: apply waypoint[index], index += 1
      │                                                  │
      └──── index == len(sequence)  or  cancel() ◀───────┘

    - start() plans from the current pose and validates every waypoint
      before touching anything. A rejected request leaves the executor and
      the pose exactly as they were.
    - The playback timer is the only resource the executor owns. It is
      created on entry to EXECUTING and cancelled on every exit path before
      the state is reported as IDLE, so no tick can land after an observer
      has seen IDLE.
    - While EXECUTING the executor holds the pose model's ownership token;
      other writers are refused until playback ends.

Author: Teleop Arm Project Team
License: MIT
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Callable, Dict, List, Optional

from .kinematics import CartesianPose
from .pose_model import PoseAuthor, PoseModel
from .reachability import ReachabilityReport, ReachabilityValidator
from .scheduling import Scheduler, TimerHandle
from .trajectory import TrajectoryConfig, TrajectoryPlanner, WaypointSequence

logger = logging.getLogger(__name__)


# =============================================================================
# Enums and Events
# =============================================================================

class ExecutionState(Enum):
    """Executor state machine states."""
    IDLE = auto()
    EXECUTING = auto()


class StartOutcome(Enum):
    """Result of a start request."""
    STARTED = auto()            # Playback running
    ALREADY_AT_TARGET = auto()  # Empty plan, nothing to do
    UNREACHABLE = auto()        # A waypoint failed validation, nothing changed
    BUSY = auto()               # Pose owned by another author, nothing changed
    APPLIED = auto()            # Direct move written without playback


class ExecutionEventKind(Enum):
    """Kinds of executor notifications."""
    STARTED = auto()
    WAYPOINT = auto()
    COMPLETED = auto()
    CANCELLED = auto()
    REJECTED = auto()


@dataclass(frozen=True)
class ExecutionEvent:
    """
    Notification sent to executor observers.

    Attributes:
        kind: What happened
        index: Number of waypoints applied so far
        total: Length of the sequence concerned
        waypoint: Waypoint just applied (WAYPOINT only)
    """
    kind: ExecutionEventKind
    index: int
    total: int
    waypoint: Optional[CartesianPose] = None


ExecutionObserver = Callable[[ExecutionEvent], None]


# =============================================================================
# Trajectory Executor
# =============================================================================

class TrajectoryExecutor:
    """
    Plays waypoint sequences onto a PoseModel at a fixed rate.

    Example:
        >>> scheduler = SimulatedScheduler()
        >>> executor = TrajectoryExecutor(model, scheduler)
        >>> executor.start(PRESETS["FLOOR"])
        <StartOutcome.STARTED: 1>
        >>> scheduler.advance(1.0)      # ten ticks at 10 Hz
        >>> executor.cancel()
    """

    def __init__(
        self,
        model: PoseModel,
        scheduler: Scheduler,
        config: Optional[TrajectoryConfig] = None,
        planner: Optional[TrajectoryPlanner] = None,
        validator: Optional[ReachabilityValidator] = None
    ) -> None:
        """
        Initialize executor.

        Args:
            model: Pose model the waypoints are applied to
            scheduler: Timer source for playback ticks
            config: Step sizes and playback rate
            planner: Trajectory planner (built from config if None)
            validator: Reachability gate (uses the model's solver if None)
        """
        self.model = model
        self.scheduler = scheduler
        self.config = config or (planner.config if planner else TrajectoryConfig())
        self.planner = planner or TrajectoryPlanner(self.config)
        self.validator = validator or ReachabilityValidator(model.solver)

        self._state = ExecutionState.IDLE
        self._timer: Optional[TimerHandle] = None
        self._sequence: Optional[WaypointSequence] = None
        self._index = 0
        self._total = 0
        self._history: List[CartesianPose] = []
        self._last_rejection: Optional[ReachabilityReport] = None

        self._observers: List[ExecutionObserver] = []

        logger.info(f"TrajectoryExecutor initialized: {self.config.waypoint_rate_hz}Hz")

    # =========================================================================
    # State Management
    # =========================================================================

    @property
    def state(self) -> ExecutionState:
        """Current executor state."""
        return self._state

    @property
    def is_executing(self) -> bool:
        return self._state is ExecutionState.EXECUTING

    @property
    def index(self) -> int:
        """Number of waypoints applied from the current (or last) sequence."""
        return self._index

    @property
    def sequence(self) -> Optional[WaypointSequence]:
        """Active sequence; None while idle."""
        return self._sequence

    @property
    def history(self) -> List[CartesianPose]:
        """Start pose followed by every waypoint applied so far."""
        return list(self._history)

    @property
    def progress(self) -> float:
        """Fraction of the current (or last) sequence applied, 0..1."""
        if self._total == 0:
            return 0.0
        return self._index / self._total

    @property
    def last_rejection(self) -> Optional[ReachabilityReport]:
        """Report of the most recent rejected start request."""
        return self._last_rejection

    def _set_state(self, state: ExecutionState) -> None:
        old_state = self._state
        self._state = state
        logger.info(f"Executor state: {old_state.name} → {state.name}")

    # =========================================================================
    # Control Interface
    # =========================================================================

    def start(self, target: CartesianPose) -> StartOutcome:
        """
        Plan and start playback from the current pose to target.

        The target is checked before planning and every waypoint after it.
        If any is unreachable the request is rejected without touching the
        pose, the timer or the state. A request arriving mid-playback
        replaces the running sequence only if it is accepted.

        Args:
            target: Goal pose (orientation in radians)

        Returns:
            StartOutcome describing what happened
        """
        if not self.validator.check_pose(target):
            self._last_rejection = ReachabilityReport(ok=False, checked=1, first_failure=target)
            logger.warning(f"Trajectory rejected: target {target} is unreachable")
            self._emit(ExecutionEvent(ExecutionEventKind.REJECTED, 0, 0))
            return StartOutcome.UNREACHABLE

        sequence = self.planner.plan(self.model.pose, target)

        if sequence.is_empty:
            logger.info("Already at target, nothing to execute")
            return StartOutcome.ALREADY_AT_TARGET

        report = self.validator.validate(sequence)
        if not report:
            self._last_rejection = report
            logger.warning(
                f"Trajectory rejected: waypoint {report.first_failure_index} "
                f"of {len(sequence)} is unreachable"
            )
            self._emit(ExecutionEvent(ExecutionEventKind.REJECTED, 0, len(sequence)))
            return StartOutcome.UNREACHABLE

        if not self.model.can_write(PoseAuthor.EXECUTOR):
            logger.warning(f"Trajectory rejected: pose owned by {self.model.owner.name}")
            return StartOutcome.BUSY

        # Never two timers for one executor
        self._release_timer()

        self._sequence = sequence
        self._index = 0
        self._total = len(sequence)
        self._history = [self.model.pose]
        self.model.acquire(PoseAuthor.EXECUTOR)

        if self._state is not ExecutionState.EXECUTING:
            self._set_state(ExecutionState.EXECUTING)
        self._timer = self.scheduler.call_every(self.config.tick_period, self._tick)

        logger.info(f"Executing {len(sequence)} waypoints at {self.config.waypoint_rate_hz}Hz")
        self._emit(ExecutionEvent(ExecutionEventKind.STARTED, 0, len(sequence)))
        return StartOutcome.STARTED

    def cancel(self) -> bool:
        """
        Stop playback. No further waypoint is applied.

        Returns:
            True if a running execution was cancelled
        """
        if self._state is not ExecutionState.EXECUTING:
            return False

        logger.info(f"Trajectory cancelled at waypoint {self._index}/{self._total}")
        self._finish(ExecutionEventKind.CANCELLED)
        return True

    def close(self) -> None:
        """Cancel any playback; safe to call repeatedly."""
        self.cancel()

    # =========================================================================
    # Playback
    # =========================================================================

    def _tick(self) -> None:
        """Apply the next waypoint; finish when the sequence is consumed."""
        sequence = self._sequence
        if self._state is not ExecutionState.EXECUTING or sequence is None:
            return

        if self._index < len(sequence):
            waypoint = sequence[self._index]
            self.model.set_pose(waypoint, PoseAuthor.EXECUTOR)
            self._history.append(waypoint)
            self._index += 1
            self._emit(ExecutionEvent(
                ExecutionEventKind.WAYPOINT, self._index, len(sequence), waypoint
            ))

        # An observer may have cancelled during the waypoint notification
        if self._state is ExecutionState.EXECUTING and self._index >= len(sequence):
            logger.info(f"Trajectory complete: {len(sequence)} waypoints")
            self._finish(ExecutionEventKind.COMPLETED)

    def _finish(self, kind: ExecutionEventKind) -> None:
        """Release the timer and the pose, then report IDLE."""
        self._release_timer()
        self._sequence = None
        self.model.release(PoseAuthor.EXECUTOR)
        self._set_state(ExecutionState.IDLE)
        self._emit(ExecutionEvent(kind, self._index, self._total))

    def _release_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    # =========================================================================
    # Observers
    # =========================================================================

    def subscribe(self, observer: ExecutionObserver) -> Callable[[], None]:
        """
        Register an observer for execution events.

        Returns:
            Function that removes the observer again
        """
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def _emit(self, event: ExecutionEvent) -> None:
        for observer in list(self._observers):
            try:
                observer(event)
            except Exception as e:
                logger.error(f"Execution observer error: {e}")

    def get_status(self) -> Dict[str, Any]:
        """Get executor status for monitoring."""
        return {
            "state": self._state.name,
            "index": self._index,
            "total": self._total,
            "progress": self.progress,
            "rate_hz": self.config.waypoint_rate_hz,
            "timer_active": self._timer is not None,
        }
