"""
Kinematics Module
=================

Analytic inverse kinematics for the 5-DOF teleoperated arm.

Mathematical Background:

    Chain Layout:
        Joint 1 (q1): base yaw about the vertical axis
        Joint 2 (q2): shoulder pitch
        Joint 3 (q3): elbow pitch
        Joint 4 (q4): wrist pitch
        Joint 5 (q5): wrist roll

        Once the base yaw is fixed by atan2(y, x) the shoulder, elbow and
        wrist joints move in a single vertical plane, so the problem reduces
        to a planar 2-link arm (l2, l3) whose tip is the wrist centre:

            a = sqrt(x² + y²) − l4·cos(pitch)
            b = z − l4·sin(pitch) − l1

        Law of cosines for the elbow:

            d  = (a² + b² − l2² − l3²) / (2·l2·l3)
            q3 = −atan2(sqrt(1 − d²), d)          (elbow-down branch)
            q2 = atan2(b, a) − atan2(l3·sin q3, l2 + l3·cos q3)
            q4 = pitch − q2 − q3

    Reachability:
        The wrist centre is reachable iff |d| ≤ 1. The solver clamps d into
        [-1, 1] so that it never produces NaN; the separate reachability
        predicate is the authoritative feasibility test.

Units:
    Cartesian positions are meters. Orientation inputs (roll, pitch) are
    radians. Joint angles leave the solver in degrees.

Arm Specifications:
    - Base height (l1): 100mm
    - Upper arm (l2):   430mm
    - Forearm (l3):     430mm
    - Wrist to tool (l4): 213mm

Author: Teleop Arm Project Team
License: MIT
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace as _replace
from typing import Dict, List, Optional, Tuple

import numpy as np
from numpy.typing import NDArray

logger = logging.getLogger(__name__)

# Type aliases
FloatArray = NDArray[np.floating]

JOINT_NAMES: Tuple[str, ...] = ("q1", "q2", "q3", "q4", "q5")


# =============================================================================
# Data Classes
# =============================================================================

@dataclass(frozen=True)
class JointLimits:
    """
    Semantic range of a single joint.

    Attributes:
        lower: Lower position limit (deg)
        upper: Upper position limit (deg)
    """
    lower: float = -180.0
    upper: float = 180.0

    def __post_init__(self) -> None:
        """Validate limits."""
        if self.lower >= self.upper:
            raise ValueError(f"lower ({self.lower}) must be < upper ({self.upper})")

    def clamp(self, value: float) -> float:
        """Clamp value to position limits."""
        return float(np.clip(value, self.lower, self.upper))

    def is_within(self, value: float, margin: float = 0.0) -> bool:
        """Check if value is within limits with optional margin."""
        return (self.lower + margin) <= value <= (self.upper - margin)


DEFAULT_JOINT_LIMITS: Tuple[JointLimits, ...] = (
    JointLimits(lower=-90.0, upper=90.0),      # Base yaw
    JointLimits(lower=-10.0, upper=190.0),     # Shoulder
    JointLimits(lower=-150.0, upper=150.0),    # Elbow
    JointLimits(lower=-150.0, upper=150.0),    # Wrist pitch
    JointLimits(lower=-90.0, upper=90.0),      # Wrist roll
)


@dataclass(frozen=True)
class ArmGeometry:
    """
    Fixed link lengths and joint ranges of the arm.

    Attributes:
        l1: Base height, floor to shoulder axis (m)
        l2: Upper arm length (m)
        l3: Forearm length (m)
        l4: Wrist centre to tool tip (m)
        joint_limits: Semantic range of q1..q5 (deg)
    """
    l1: float = 0.1
    l2: float = 0.43
    l3: float = 0.43
    l4: float = 0.213
    joint_limits: Tuple[JointLimits, ...] = field(default=DEFAULT_JOINT_LIMITS)

    def __post_init__(self) -> None:
        """Validate geometry."""
        for name in ("l1", "l2", "l3", "l4"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if len(self.joint_limits) != len(JOINT_NAMES):
            raise ValueError(
                f"Expected {len(JOINT_NAMES)} joint limits, got {len(self.joint_limits)}"
            )

    @property
    def max_reach(self) -> float:
        """Distance from the shoulder axis to the fully stretched tool tip."""
        return self.l2 + self.l3 + self.l4


@dataclass(frozen=True)
class JointAngles:
    """
    Joint configuration of the arm, in degrees.

    Always derived from a CartesianPose through the solver; never authored.
    """
    q1: float = 0.0
    q2: float = 0.0
    q3: float = 0.0
    q4: float = 0.0
    q5: float = 0.0

    def as_dict(self) -> Dict[str, float]:
        """Get angles keyed by joint name."""
        return {name: float(getattr(self, name)) for name in JOINT_NAMES}

    def as_array(self) -> FloatArray:
        """Get angles as a numpy array [q1..q5]."""
        return np.array([getattr(self, name) for name in JOINT_NAMES], dtype=float)

    def is_finite(self) -> bool:
        """True if no joint is NaN or infinite."""
        return bool(np.all(np.isfinite(self.as_array())))

    def limit_violations(self, limits: Tuple[JointLimits, ...]) -> List[str]:
        """
        Check angles against per-joint limits.

        Args:
            limits: One JointLimits per joint

        Returns:
            Names of joints outside their range
        """
        return [
            name for name, limit in zip(JOINT_NAMES, limits)
            if not limit.is_within(getattr(self, name))
        ]


@dataclass(frozen=True)
class CartesianPose:
    """
    End-effector pose in the arm's base frame.

    Attributes:
        x, y, z: Tool position (m)
        roll: Wrist roll (rad)
        pitch: Tool pitch relative to the horizontal (rad)
    """
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    roll: float = 0.0
    pitch: float = 0.0

    @classmethod
    def from_degrees(
        cls,
        x: float,
        y: float,
        z: float,
        roll: float = 0.0,
        pitch: float = 0.0
    ) -> "CartesianPose":
        """Create a pose from UI units (orientation in degrees)."""
        return cls(x, y, z, math.radians(roll), math.radians(pitch))

    def to_degrees(self) -> Dict[str, float]:
        """Get pose in UI units (orientation in degrees)."""
        return {
            "x": self.x,
            "y": self.y,
            "z": self.z,
            "roll": math.degrees(self.roll),
            "pitch": math.degrees(self.pitch),
        }

    @property
    def position(self) -> FloatArray:
        """Get position vector [x, y, z]."""
        return np.array([self.x, self.y, self.z], dtype=float)

    def as_array(self) -> FloatArray:
        """Get [x, y, z, roll, pitch]."""
        return np.array([self.x, self.y, self.z, self.roll, self.pitch], dtype=float)

    @classmethod
    def from_array(cls, values: FloatArray) -> "CartesianPose":
        """Create a pose from [x, y, z, roll, pitch]."""
        x, y, z, roll, pitch = (float(v) for v in values)
        return cls(x, y, z, roll, pitch)

    def distance_to(self, other: "CartesianPose") -> float:
        """Euclidean distance between tool positions (m)."""
        return float(np.linalg.norm(other.position - self.position))

    def replace(self, **changes: float) -> "CartesianPose":
        """Copy of this pose with some fields changed."""
        return _replace(self, **changes)

    def is_close(self, other: "CartesianPose", tol: float = 1e-9) -> bool:
        """Component-wise comparison with absolute tolerance."""
        return bool(np.allclose(self.as_array(), other.as_array(), atol=tol, rtol=0.0))


# =============================================================================
# Kinematics Solver
# =============================================================================

class KinematicsSolver:
    """
    Closed-form solver for the 5-DOF arm.

    Only the elbow-down branch is ever produced, so the same pose always maps
    to the same joint configuration.

    Example:
        >>> solver = KinematicsSolver()
        >>> solver.is_reachable(0.15, 0.0, 0.35, 0.0, 0.0)
        True
        >>> angles = solver.inverse(0.15, 0.0, 0.35, 0.0, 0.0)
        >>> pose = solver.forward(angles)
    """

    def __init__(self, geometry: Optional[ArmGeometry] = None) -> None:
        """
        Initialize solver.

        Args:
            geometry: Link lengths and joint limits (defaults if None)
        """
        self.geometry = geometry or ArmGeometry()

        logger.info(
            f"KinematicsSolver initialized: l1={self.geometry.l1}, "
            f"l2={self.geometry.l2}, l3={self.geometry.l3}, l4={self.geometry.l4}"
        )

    def _planar_terms(
        self,
        x: float,
        y: float,
        z: float,
        pitch: float
    ) -> Tuple[float, float, float]:
        """Wrist-centre coordinates (a, b) and the unclamped elbow cosine d."""
        g = self.geometry
        a = math.sqrt(x * x + y * y) - g.l4 * math.cos(pitch)
        b = z - g.l4 * math.sin(pitch) - g.l1
        d = (a * a + b * b - g.l2 * g.l2 - g.l3 * g.l3) / (2 * g.l2 * g.l3)
        return a, b, d

    def elbow_cosine(
        self,
        x: float,
        y: float,
        z: float,
        roll: float,
        pitch: float
    ) -> float:
        """
        Unclamped cosine of the elbow angle for a pose.

        |d| > 1 means the wrist centre lies outside the annulus the two
        middle links can sweep.
        """
        return self._planar_terms(x, y, z, pitch)[2]

    def inverse(
        self,
        x: float,
        y: float,
        z: float,
        roll: float,
        pitch: float
    ) -> JointAngles:
        """
        Compute joint angles for an end-effector pose.

        d is clamped to [-1, 1], so poses just outside the workspace return
        the fully stretched (or folded) configuration instead of failing.
        Use is_reachable to decide whether a pose is actually feasible.

        Args:
            x, y, z: Tool position (m)
            roll: Wrist roll (rad)
            pitch: Tool pitch (rad)

        Returns:
            JointAngles in degrees
        """
        g = self.geometry
        q1 = math.atan2(y, x)
        q5 = roll

        a, b, d = self._planar_terms(x, y, z, pitch)
        d = max(-1.0, min(1.0, d))

        q3 = -math.atan2(math.sqrt(1.0 - d * d), d)
        q2 = math.atan2(b, a) - math.atan2(g.l3 * math.sin(q3), g.l2 + g.l3 * math.cos(q3))
        q4 = pitch - q2 - q3

        return JointAngles(
            q1=math.degrees(q1),
            q2=math.degrees(q2),
            q3=math.degrees(q3),
            q4=math.degrees(q4),
            q5=math.degrees(q5),
        )

    def inverse_pose(self, pose: CartesianPose) -> JointAngles:
        """inverse() for a CartesianPose."""
        return self.inverse(pose.x, pose.y, pose.z, pose.roll, pose.pitch)

    def is_reachable(
        self,
        x: float,
        y: float,
        z: float,
        roll: float,
        pitch: float
    ) -> bool:
        """
        Feasibility test for a pose.

        Recomputes the planar terms independently of inverse() and accepts
        the pose iff |d| ≤ 1. This is stricter than the clamp inside
        inverse() and must gate every target and planned waypoint.
        """
        d = self._planar_terms(x, y, z, pitch)[2]
        return bool(abs(d) <= 1.0)

    def is_pose_reachable(self, pose: CartesianPose) -> bool:
        """is_reachable() for a CartesianPose."""
        return self.is_reachable(pose.x, pose.y, pose.z, pose.roll, pose.pitch)

    def forward(self, angles: JointAngles) -> CartesianPose:
        """
        Compute the end-effector pose for a joint configuration.

        Args:
            angles: Joint angles (deg)

        Returns:
            CartesianPose with orientation in radians
        """
        return self._chain(angles)[1]

    def link_positions(self, angles: JointAngles) -> FloatArray:
        """
        Positions of base, shoulder, elbow, wrist and tool tip.

        Returns:
            5 x 3 array in the base frame (m)
        """
        return self._chain(angles)[0]

    def _chain(self, angles: JointAngles) -> Tuple[FloatArray, CartesianPose]:
        """Walk the planar chain; shared by forward() and link_positions()."""
        g = self.geometry
        q1, q2, q3, q4, q5 = np.radians(angles.as_array())

        elbow_angle = q2
        wrist_angle = q2 + q3
        pitch = q2 + q3 + q4

        # Radial distance and height of each joint in the arm plane
        r_elbow = g.l2 * math.cos(elbow_angle)
        z_elbow = g.l1 + g.l2 * math.sin(elbow_angle)
        r_wrist = r_elbow + g.l3 * math.cos(wrist_angle)
        z_wrist = z_elbow + g.l3 * math.sin(wrist_angle)
        r_tool = r_wrist + g.l4 * math.cos(pitch)
        z_tool = z_wrist + g.l4 * math.sin(pitch)

        c1, s1 = math.cos(q1), math.sin(q1)
        points = np.array([
            [0.0, 0.0, 0.0],
            [0.0, 0.0, g.l1],
            [r_elbow * c1, r_elbow * s1, z_elbow],
            [r_wrist * c1, r_wrist * s1, z_wrist],
            [r_tool * c1, r_tool * s1, z_tool],
        ])

        # Keep pitch in (-pi, pi] so it compares cleanly with commanded poses
        pitch = math.atan2(math.sin(pitch), math.cos(pitch))
        pose = CartesianPose(
            x=float(points[-1, 0]),
            y=float(points[-1, 1]),
            z=float(points[-1, 2]),
            roll=float(q5),
            pitch=pitch,
        )
        return points, pose

    def check_joint_limits(self, angles: JointAngles) -> Tuple[bool, List[str]]:
        """
        Check if joint angles are within the configured ranges.

        Returns:
            Tuple of (all_within_limits, list_of_violated_joints)
        """
        violations = angles.limit_violations(self.geometry.joint_limits)
        return len(violations) == 0, violations
