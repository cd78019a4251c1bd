"""
Trajectory Planning Module
==========================

Straight-line Cartesian trajectories between two end-effector poses.

Mathematical Background:

    Linear Interpolation:
        Each axis is blended independently:

            p(t) = p₀ + (p₁ − p₀)·t,    t = i/n,  i = 1..n

        The start pose itself is not emitted; the last waypoint equals the
        target.

    Step Count:
        Translation dominates when the tool moves:

            n = max(2, ceil(‖Δxyz‖ / step_size))

        A pure re-orientation is stepped by the larger angle change:

            n = max(2, ceil(max(|Δroll|, |Δpitch|) / orientation_step))

        Roll and pitch are blended as two independent scalars rather than
        as a rotation. This is only a good approximation while orientation
        changes stay small.

Feasibility is not checked here; callers validate the resulting sequence
(see reachability.py) before executing it.

Author: Teleop Arm Project Team
License: MIT
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterator, Optional, Sequence, Tuple

import numpy as np

from .kinematics import CartesianPose

logger = logging.getLogger(__name__)

# Below this, translation (m) or orientation change (rad) counts as zero
DEGENERATE_EPSILON = 1e-6


# =============================================================================
# Configuration
# =============================================================================

@dataclass
class TrajectoryConfig:
    """
    Configuration for trajectory planning and playback.

    Attributes:
        step_size: Maximum translation between waypoints (m)
        orientation_step: Maximum rotation between waypoints for pure
            re-orientation moves (rad)
        waypoint_rate_hz: Playback rate of the executor
        interpolation_enabled: If False, targets are applied directly
    """
    step_size: float = 0.005
    orientation_step: float = 0.01
    waypoint_rate_hz: float = 10.0
    interpolation_enabled: bool = True

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.step_size <= 0:
            raise ValueError("step_size must be positive")
        if self.orientation_step <= 0:
            raise ValueError("orientation_step must be positive")
        if not 0 < self.waypoint_rate_hz <= 50:
            raise ValueError("waypoint_rate_hz must be in (0, 50]")

    @property
    def tick_period(self) -> float:
        """Time between waypoints in seconds."""
        return 1.0 / self.waypoint_rate_hz


# =============================================================================
# Waypoint Sequence
# =============================================================================

class WaypointSequence(Sequence[CartesianPose]):
    """
    Immutable, ordered list of waypoints produced by one planning call.

    Attributes:
        start: Pose the plan was computed from (not part of the sequence)
        end: Requested target
    """

    __slots__ = ("_waypoints", "start", "end")

    def __init__(
        self,
        waypoints: Sequence[CartesianPose],
        start: CartesianPose,
        end: CartesianPose
    ) -> None:
        self._waypoints: Tuple[CartesianPose, ...] = tuple(waypoints)
        self.start = start
        self.end = end

    def __getitem__(self, index):
        return self._waypoints[index]

    def __len__(self) -> int:
        return len(self._waypoints)

    def __iter__(self) -> Iterator[CartesianPose]:
        return iter(self._waypoints)

    def __repr__(self) -> str:
        return f"WaypointSequence(n={len(self)}, start={self.start}, end={self.end})"

    @property
    def is_empty(self) -> bool:
        """True when start and end coincide (nothing to execute)."""
        return len(self._waypoints) == 0

    @property
    def waypoints(self) -> Tuple[CartesianPose, ...]:
        """The waypoints as a tuple."""
        return self._waypoints


# =============================================================================
# Trajectory Planner
# =============================================================================

class TrajectoryPlanner:
    """
    Generates linear Cartesian waypoint sequences.

    Example:
        >>> planner = TrajectoryPlanner(TrajectoryConfig(step_size=0.01))
        >>> sequence = planner.plan(current_pose, target_pose)
        >>> for waypoint in sequence:
        ...     print(waypoint)
    """

    def __init__(self, config: Optional[TrajectoryConfig] = None) -> None:
        """
        Initialize planner.

        Args:
            config: Trajectory configuration
        """
        self.config = config or TrajectoryConfig()

        logger.info(
            f"TrajectoryPlanner initialized: step={self.config.step_size}m, "
            f"orientation_step={self.config.orientation_step}rad"
        )

    @staticmethod
    def step_count(
        start: CartesianPose,
        end: CartesianPose,
        step_size: float,
        orientation_step: float
    ) -> int:
        """
        Number of waypoints generate_linear would emit.

        Returns:
            0 when start and end coincide, otherwise at least 2
        """
        dist = start.distance_to(end)
        if dist < DEGENERATE_EPSILON:
            max_orient = max(abs(end.roll - start.roll), abs(end.pitch - start.pitch))
            if max_orient < DEGENERATE_EPSILON:
                return 0
            return max(2, math.ceil(max_orient / orientation_step))
        return max(2, math.ceil(dist / step_size))

    def generate_linear(
        self,
        start: CartesianPose,
        end: CartesianPose,
        step_size: float,
        orientation_step: float
    ) -> WaypointSequence:
        """
        Generate a straight-line trajectory from start to end.

        Args:
            start: Current pose
            end: Target pose
            step_size: Maximum translation per waypoint (m)
            orientation_step: Maximum rotation per waypoint for pure
                re-orientation (rad)

        Returns:
            WaypointSequence of n poses at t = 1/n .. 1, or an empty
            sequence if start and end already coincide

        Raises:
            ValueError: If a step is not positive
        """
        if step_size <= 0 or orientation_step <= 0:
            raise ValueError("step_size and orientation_step must be positive")

        n_steps = self.step_count(start, end, step_size, orientation_step)
        if n_steps == 0:
            logger.debug("Start and end coincide, empty trajectory")
            return WaypointSequence((), start, end)

        p0 = start.as_array()
        p1 = end.as_array()
        ts = np.arange(1, n_steps + 1) / n_steps
        samples = p0 + np.outer(ts, p1 - p0)

        waypoints = [CartesianPose.from_array(row) for row in samples]
        # Land exactly on the target regardless of rounding in the blend
        waypoints[-1] = end

        logger.debug(f"Planned {n_steps} waypoints over {start.distance_to(end):.4f}m")
        return WaypointSequence(waypoints, start, end)

    def plan(self, start: CartesianPose, end: CartesianPose) -> WaypointSequence:
        """generate_linear() with the configured step sizes."""
        return self.generate_linear(
            start, end, self.config.step_size, self.config.orientation_step
        )
