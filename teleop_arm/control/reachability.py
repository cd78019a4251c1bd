"""
Reachability Module
===================

Feasibility gate applied before any target or planned trajectory is allowed
to touch the live pose.

A trajectory is accepted only if every waypoint passes the solver's
reachability predicate; partial trajectories are never started.

Author: Teleop Arm Project Team
License: MIT
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from .kinematics import CartesianPose, KinematicsSolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReachabilityReport:
    """
    Result of validating a waypoint sequence.

    Attributes:
        ok: True if every checked waypoint is reachable
        checked: Number of waypoints examined (stops at the first failure)
        first_failure_index: Index of the first unreachable waypoint
        first_failure: The first unreachable waypoint
    """
    ok: bool
    checked: int
    first_failure_index: Optional[int] = None
    first_failure: Optional[CartesianPose] = None

    def __bool__(self) -> bool:
        return self.ok


class ReachabilityValidator:
    """
    Wraps KinematicsSolver.is_reachable for single poses and sequences.

    Example:
        >>> validator = ReachabilityValidator(KinematicsSolver())
        >>> report = validator.validate(planner.plan(start, target))
        >>> if not report:
        ...     print(f"waypoint {report.first_failure_index} out of reach")
    """

    def __init__(self, solver: Optional[KinematicsSolver] = None) -> None:
        self.solver = solver or KinematicsSolver()

    def check_pose(self, pose: CartesianPose) -> bool:
        """True if a single pose is reachable."""
        return self.solver.is_pose_reachable(pose)

    def validate(self, waypoints: Iterable[CartesianPose]) -> ReachabilityReport:
        """
        Validate every waypoint of a sequence.

        Args:
            waypoints: Ordered poses to check

        Returns:
            ReachabilityReport; ok is True for an empty sequence
        """
        checked = 0
        for index, waypoint in enumerate(waypoints):
            checked += 1
            if not self.solver.is_pose_reachable(waypoint):
                logger.debug(f"Waypoint {index} unreachable: {waypoint}")
                return ReachabilityReport(
                    ok=False,
                    checked=checked,
                    first_failure_index=index,
                    first_failure=waypoint,
                )
        return ReachabilityReport(ok=True, checked=checked)
