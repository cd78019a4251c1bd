"""
Arm Session Module
==================

Wires the motion core to the sync channel for one teleoperated arm.

Data Flow:

    UI / preset ──go_to──▶ TrajectoryExecutor ──set_pose──▶ PoseModel
                  (direct move when interpolation is off)       │
                                                               ▼
    peer ◀── joint_angles / debounced pose ── SyncChannel ◀── observers
    peer ──── inbound pose (remote control on) ──▶ SyncChannel ──▶ PoseModel

Every path that moves the arm, interpolated or direct, goes through the
same reachability predicate before the pose is touched.

Author: Teleop Arm Project Team
License: MIT
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from ..control.executor import StartOutcome, TrajectoryExecutor
from ..control.kinematics import CartesianPose, KinematicsSolver
from ..control.pose_model import PRESETS, PoseAuthor, PoseModel, PoseOwnershipError
from ..control.reachability import ReachabilityValidator
from ..control.scheduling import Scheduler
from ..control.trajectory import TrajectoryPlanner
from .actuators import ActuatorPanel
from .config import PathLike, TeleopConfig, setup_logging
from .sync import RawMessage, SyncChannel, Transport

logger = logging.getLogger(__name__)


class ArmSession:
    """
    One arm: pose model, executor, sync channel and actuator panel.

    Example:
        >>> scheduler = SimulatedScheduler()
        >>> session = ArmSession(transport, scheduler)
        >>> session.apply_preset("FLOOR")
        <StartOutcome.STARTED: 1>
        >>> scheduler.advance(5.0)
    """

    def __init__(
        self,
        transport: Transport,
        scheduler: Scheduler,
        config: Optional[TeleopConfig] = None
    ) -> None:
        """
        Initialize session.

        Args:
            transport: Message transport to the peer
            scheduler: Timer source shared by executor and channel
            config: Session configuration
        """
        self.config = config or TeleopConfig()
        self.scheduler = scheduler

        self.solver = KinematicsSolver(self.config.geometry.to_geometry())
        self.validator = ReachabilityValidator(self.solver)
        self.planner = TrajectoryPlanner(self.config.trajectory)
        self.model = PoseModel(self.solver)
        self.executor = TrajectoryExecutor(
            self.model,
            scheduler,
            config=self.config.trajectory,
            planner=self.planner,
            validator=self.validator,
        )
        self.channel = SyncChannel(transport, scheduler, self.config.sync)
        self.channel.attach(self.model)
        self.actuators = ActuatorPanel(self.channel)

        # Jog x/y in the arm's own frame
        self.relative_mode = False

        logger.info("ArmSession initialized")

    @classmethod
    def from_config(
        cls,
        path: PathLike,
        transport: Transport,
        scheduler: Scheduler
    ) -> "ArmSession":
        """Load a YAML config, set up logging and build a session."""
        config = TeleopConfig.from_yaml(path)
        setup_logging(config.log_level)
        return cls(transport, scheduler, config)

    # =========================================================================
    # Motion
    # =========================================================================

    @property
    def interpolation_enabled(self) -> bool:
        return self.config.trajectory.interpolation_enabled

    @interpolation_enabled.setter
    def interpolation_enabled(self, enabled: bool) -> None:
        self.config.trajectory.interpolation_enabled = bool(enabled)
        logger.info(f"Interpolation {'enabled' if enabled else 'disabled'}")

    def go_to(self, target: CartesianPose, author: PoseAuthor = PoseAuthor.USER) -> StartOutcome:
        """
        Move to target, interpolated or directly.

        Args:
            target: Goal pose (orientation in radians)
            author: Origin of a direct move

        Returns:
            StartOutcome describing what happened
        """
        if self.interpolation_enabled:
            return self.executor.start(target)

        if not self.validator.check_pose(target):
            logger.warning(f"Direct move rejected: target {target.to_degrees()} is unreachable")
            return StartOutcome.UNREACHABLE
        if not self.model.can_write(author):
            logger.warning(f"Direct move rejected: pose owned by {self.model.owner.name}")
            return StartOutcome.BUSY
        if target.is_close(self.model.pose):
            return StartOutcome.ALREADY_AT_TARGET

        self.model.set_pose(target, author)
        return StartOutcome.APPLIED

    def apply_preset(self, name: str) -> StartOutcome:
        """Move to a named preset (HOME, INTERMEDIATE, PREFLOOR, FLOOR, STORAGE)."""
        key = name.upper()
        if key not in PRESETS:
            raise ValueError(f"Unknown preset '{name}', expected one of {sorted(PRESETS)}")
        logger.info(f"Preset {key} selected")
        return self.go_to(PRESETS[key], PoseAuthor.PRESET)

    def jog(self, axis: str, delta: float) -> bool:
        """
        Nudge one axis of the live pose.

        Refused while a trajectory is playing or when the result would be
        unreachable.

        Returns:
            True if the pose moved
        """
        if self.executor.is_executing:
            logger.warning("Jog refused while a trajectory is executing")
            return False

        target = self.model.jog_target(axis, delta, relative=self.relative_mode)
        if not self.validator.check_pose(target):
            logger.warning(f"Jog rejected: {axis} {delta:+} leaves the workspace")
            return False

        try:
            self.model.set_pose(target, PoseAuthor.USER)
        except PoseOwnershipError as e:
            logger.warning(f"Jog refused: {e}")
            return False
        return True

    def cancel(self) -> bool:
        """Cancel trajectory playback."""
        return self.executor.cancel()

    # =========================================================================
    # Link
    # =========================================================================

    def handle_inbound(self, raw: RawMessage) -> bool:
        """Feed one inbound message to the sync channel."""
        return self.channel.handle_inbound(raw)

    def set_remote_control(self, enabled: bool) -> None:
        self.channel.remote_control = enabled

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def close(self) -> None:
        """Stop playback, release actuators and detach the channel."""
        self.executor.close()
        self.actuators.release_all()
        self.channel.close()
        logger.info("ArmSession closed")

    def status(self) -> Dict[str, Any]:
        """Get session status for monitoring."""
        return {
            "pose": self.model.pose.to_degrees(),
            "angles": self.model.angles.as_dict(),
            "reachable": self.model.is_reachable,
            "owner": self.model.owner.name if self.model.owner else None,
            "interpolation_enabled": self.interpolation_enabled,
            "relative_mode": self.relative_mode,
            "executor": self.executor.get_status(),
            "channel": self.channel.get_status(),
            "actuators": self.actuators.get_status(),
        }
