"""
Pose Model Module
=================

Live end-effector pose of one arm and the joint angles derived from it.

Single Writer:
    Exactly one author may write the pose at a time. Authors that drive the
    pose over a period (the trajectory executor) take an ownership token with
    acquire(); while it is held, writes from any other author raise
    PoseOwnershipError instead of silently interleaving.

Observers:
    Every write recomputes the joint angles through the solver and notifies
    subscribers synchronously with a PoseUpdate. When set_pose() returns,
    every observer has seen the new state.

Author: Teleop Arm Project Team
License: MIT
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, Dict, List, Optional

from .kinematics import CartesianPose, JointAngles, KinematicsSolver

logger = logging.getLogger(__name__)


# =============================================================================
# Authorship
# =============================================================================

class PoseAuthor(Enum):
    """Origin of a pose write."""
    USER = auto()       # Interactive edit
    PRESET = auto()     # Named preset selection
    REMOTE = auto()     # Inbound pose message
    EXECUTOR = auto()   # Trajectory playback

    @property
    def is_local(self) -> bool:
        """True for writes originating on this side of the link."""
        return self is not PoseAuthor.REMOTE


class PoseOwnershipError(RuntimeError):
    """Raised when an author writes a pose owned by another author."""


@dataclass(frozen=True)
class PoseUpdate:
    """
    Notification sent to pose observers.

    Attributes:
        pose: New pose
        angles: Joint angles recomputed from pose
        author: Who wrote the pose
        previous: Pose before the write
    """
    pose: CartesianPose
    angles: JointAngles
    author: PoseAuthor
    previous: CartesianPose


PoseObserver = Callable[[PoseUpdate], None]


# Named poses, UI units (roll and pitch in degrees)
PRESETS: Dict[str, CartesianPose] = {
    "HOME": CartesianPose.from_degrees(0.15, 0.0, 0.35, 0.0, 0.0),
    "INTERMEDIATE": CartesianPose.from_degrees(0.2, 0.0, 0.6, 0.0, 0.0),
    "PREFLOOR": CartesianPose.from_degrees(0.25, 0.0, 0.35, 0.0, -75.0),
    "FLOOR": CartesianPose.from_degrees(0.35, 0.0, 0.1, 0.0, -75.0),
    "STORAGE": CartesianPose.from_degrees(0.0, 0.0, 0.55, 0.0, 100.0),
}

JOG_AXES = ("x", "y", "z", "roll", "pitch")


# =============================================================================
# Pose Model
# =============================================================================

class PoseModel:
    """
    Observable pose/joint-angle state of one arm.

    Example:
        >>> model = PoseModel(KinematicsSolver())
        >>> unsubscribe = model.subscribe(lambda u: print(u.angles))
        >>> model.set_pose(PRESETS["FLOOR"], PoseAuthor.PRESET)
        >>> model.jog("z", 0.05)
    """

    def __init__(
        self,
        solver: Optional[KinematicsSolver] = None,
        initial: Optional[CartesianPose] = None
    ) -> None:
        """
        Initialize pose model.

        Args:
            solver: Kinematics solver used to derive joint angles
            initial: Starting pose (HOME preset if None)
        """
        self.solver = solver or KinematicsSolver()
        self._pose = initial or PRESETS["HOME"]
        self._angles = self.solver.inverse_pose(self._pose)
        self._owner: Optional[PoseAuthor] = None
        self._observers: List[PoseObserver] = []

    # =========================================================================
    # State Access
    # =========================================================================

    @property
    def pose(self) -> CartesianPose:
        """Current end-effector pose."""
        return self._pose

    @property
    def angles(self) -> JointAngles:
        """Joint angles derived from the current pose."""
        return self._angles

    @property
    def owner(self) -> Optional[PoseAuthor]:
        """Author holding the ownership token, if any."""
        return self._owner

    @property
    def is_reachable(self) -> bool:
        """True if the current pose passes the reachability predicate."""
        return self.solver.is_pose_reachable(self._pose)

    # =========================================================================
    # Ownership
    # =========================================================================

    def acquire(self, author: PoseAuthor) -> None:
        """
        Take exclusive write access.

        Raises:
            PoseOwnershipError: If another author already holds it
        """
        if self._owner is not None and self._owner is not author:
            raise PoseOwnershipError(
                f"Pose is owned by {self._owner.name}, {author.name} cannot acquire it"
            )
        self._owner = author
        logger.debug(f"Pose ownership acquired by {author.name}")

    def release(self, author: PoseAuthor) -> None:
        """
        Give up exclusive write access.

        Releasing a model nobody owns is a no-op.

        Raises:
            PoseOwnershipError: If another author holds it
        """
        if self._owner is None:
            return
        if self._owner is not author:
            raise PoseOwnershipError(
                f"Pose is owned by {self._owner.name}, {author.name} cannot release it"
            )
        self._owner = None
        logger.debug(f"Pose ownership released by {author.name}")

    def can_write(self, author: PoseAuthor) -> bool:
        """True if author may currently write the pose."""
        return self._owner is None or self._owner is author

    # =========================================================================
    # Writes
    # =========================================================================

    def set_pose(self, pose: CartesianPose, author: PoseAuthor) -> JointAngles:
        """
        Replace the pose and recompute joint angles.

        Args:
            pose: New pose (orientation in radians)
            author: Origin of the write

        Returns:
            The recomputed joint angles

        Raises:
            PoseOwnershipError: If another author owns the model
        """
        if not self.can_write(author):
            raise PoseOwnershipError(
                f"Pose is owned by {self._owner.name}, {author.name} write rejected"
            )

        previous = self._pose
        self._pose = pose
        self._angles = self.solver.inverse_pose(pose)

        self._notify(PoseUpdate(pose, self._angles, author, previous))
        return self._angles

    def update(self, author: PoseAuthor = PoseAuthor.USER, **fields: float) -> JointAngles:
        """
        Change some pose fields, keeping the others.

        Args:
            author: Origin of the write
            **fields: Any of x, y, z, roll, pitch (roll/pitch in radians)
        """
        unknown = set(fields) - set(JOG_AXES)
        if unknown:
            raise ValueError(f"Unknown pose fields: {sorted(unknown)}")
        return self.set_pose(self._pose.replace(**fields), author)

    def jog_target(self, axis: str, delta: float, relative: bool = False) -> CartesianPose:
        """
        Pose one jog step away from the current one, without writing it.

        In relative mode x/y deltas are expressed in the arm's own frame:
        x moves forward along the current base yaw (q1), y moves laterally.

        Args:
            axis: One of x, y, z, roll, pitch
            delta: Step in UI units (m, or deg for roll/pitch)
            relative: Rotate x/y deltas by the current base yaw
        """
        if axis not in JOG_AXES:
            raise ValueError(f"Unknown axis '{axis}', expected one of {JOG_AXES}")

        current = self._pose

        if relative and axis in ("x", "y"):
            q1 = math.radians(self._angles.q1)
            local_dx = delta if axis == "x" else 0.0
            local_dy = delta if axis == "y" else 0.0
            world_dx = local_dx * math.cos(q1) - local_dy * math.sin(q1)
            world_dy = local_dx * math.sin(q1) + local_dy * math.cos(q1)
            target = current.replace(
                x=round(current.x + world_dx, 4),
                y=round(current.y + world_dy, 4),
            )
        elif axis in ("roll", "pitch"):
            degrees = round(math.degrees(getattr(current, axis)) + delta, 3)
            target = current.replace(**{axis: math.radians(degrees)})
        else:
            target = current.replace(**{axis: round(getattr(current, axis) + delta, 3)})
        return target

    def jog(
        self,
        axis: str,
        delta: float,
        author: PoseAuthor = PoseAuthor.USER,
        relative: bool = False
    ) -> CartesianPose:
        """Nudge one axis, as the ± buttons of the control panel do."""
        target = self.jog_target(axis, delta, relative)
        self.set_pose(target, author)
        return target

    # =========================================================================
    # Observers
    # =========================================================================

    def subscribe(self, observer: PoseObserver) -> Callable[[], None]:
        """
        Register an observer for pose writes.

        Returns:
            Function that removes the observer again
        """
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def _notify(self, update: PoseUpdate) -> None:
        """Deliver an update to every observer."""
        for observer in list(self._observers):
            try:
                observer(update)
            except Exception as e:
                logger.error(f"Pose observer error: {e}")
