"""
Teleop Arm
==========

Motion core of a teleoperated 5-DOF robotic arm: analytic inverse
kinematics, linear Cartesian trajectory planning, cancellable trajectory
execution and echo-suppressing pose synchronisation with a remote peer.

Subpackages:
    - control: Kinematics, planning, scheduling, pose model, executor
    - integration: Config, wire messages, sync channel, session

Author: Teleop Arm Project Team
License: MIT
"""

from .control import (
    CartesianPose,
    JointAngles,
    KinematicsSolver,
    PRESETS,
    PoseAuthor,
    PoseModel,
    SimulatedScheduler,
    AsyncioScheduler,
    StartOutcome,
    TrajectoryExecutor,
    TrajectoryPlanner,
    ReachabilityValidator,
)
from .integration import ArmSession, SyncChannel, TeleopConfig

__version__ = "0.1.0"

__all__ = [
    "CartesianPose",
    "JointAngles",
    "KinematicsSolver",
    "PRESETS",
    "PoseAuthor",
    "PoseModel",
    "SimulatedScheduler",
    "AsyncioScheduler",
    "StartOutcome",
    "TrajectoryExecutor",
    "TrajectoryPlanner",
    "ReachabilityValidator",
    "ArmSession",
    "SyncChannel",
    "TeleopConfig",
    "__version__",
]
