"""
Control Module
==============

Motion-control core of the teleoperated arm: kinematics, reachability,
trajectory planning and timed trajectory execution.

Key Components:
    - Kinematics: Closed-form IK for the 5-DOF arm, reachability predicate
    - Reachability: Gate applied before any pose or trajectory is accepted
    - Trajectory: Linear Cartesian waypoint planning
    - PoseModel: Observable live pose with a single-writer token
    - Executor: Cancellable fixed-rate waypoint playback

Arm Configuration:
    5-DOF arm with:
    - Base: 1 DOF (yaw)
    - Shoulder, elbow, wrist: 3 DOF (pitch, planar chain)
    - Wrist: 1 DOF (roll)

Author: Teleop Arm Project Team
License: MIT
"""

from .kinematics import (
    ArmGeometry,
    CartesianPose,
    JointAngles,
    JointLimits,
    KinematicsSolver,
)

from .reachability import (
    ReachabilityReport,
    ReachabilityValidator,
)

from .trajectory import (
    TrajectoryConfig,
    TrajectoryPlanner,
    WaypointSequence,
)

from .scheduling import (
    AsyncioScheduler,
    Scheduler,
    SimulatedScheduler,
    TimerHandle,
)

from .pose_model import (
    PRESETS,
    PoseAuthor,
    PoseModel,
    PoseOwnershipError,
    PoseUpdate,
)

from .executor import (
    ExecutionEvent,
    ExecutionEventKind,
    ExecutionState,
    StartOutcome,
    TrajectoryExecutor,
)

__all__ = [
    # Kinematics
    "ArmGeometry",
    "CartesianPose",
    "JointAngles",
    "JointLimits",
    "KinematicsSolver",
    # Reachability
    "ReachabilityReport",
    "ReachabilityValidator",
    # Trajectory
    "TrajectoryConfig",
    "TrajectoryPlanner",
    "WaypointSequence",
    # Scheduling
    "AsyncioScheduler",
    "Scheduler",
    "SimulatedScheduler",
    "TimerHandle",
    # Pose model
    "PRESETS",
    "PoseAuthor",
    "PoseModel",
    "PoseOwnershipError",
    "PoseUpdate",
    # Executor
    "ExecutionEvent",
    "ExecutionEventKind",
    "ExecutionState",
    "StartOutcome",
    "TrajectoryExecutor",
]
