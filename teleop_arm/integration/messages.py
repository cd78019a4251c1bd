"""
Messages Module
===============

Typed envelopes exchanged with the transport, and conversion of poses and
joint angles to and from their wire form.

Wire Format:
    Every message is a JSON object {"type": <str>, "data": <any>}.

        joint_angles  {"q1": deg, ..., "q5": deg}
        pose          {"x": m, "y": m, "z": m, "roll": deg, "pitch": deg}
        gripper, linear_actuator, camera..camera4   scalar value

    Orientation travels in degrees; the core works in radians. The
    conversion happens here and nowhere else.

Author: Teleop Arm Project Team
License: MIT
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Union

from ..control.kinematics import JOINT_NAMES, CartesianPose, JointAngles

POSE_FIELDS = ("x", "y", "z", "roll", "pitch")


class MessageType(str, Enum):
    """Message kinds understood by the arm link."""
    JOINT_ANGLES = "joint_angles"
    POSE = "pose"
    GRIPPER = "gripper"
    LINEAR_ACTUATOR = "linear_actuator"
    CAMERA = "camera"
    CAMERA2 = "camera2"
    CAMERA3 = "camera3"
    CAMERA4 = "camera4"


class MessageDecodeError(ValueError):
    """Raised for inbound payloads that are not valid envelopes."""


@dataclass(frozen=True)
class Envelope:
    """
    A single transport message.

    Attributes:
        type: Message kind (a MessageType value for known kinds)
        data: JSON-compatible payload
    """
    type: str
    data: Any = None

    def __post_init__(self) -> None:
        # Store the plain string so envelopes compare and hash by value
        if isinstance(self.type, MessageType):
            object.__setattr__(self, "type", self.type.value)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "data": self.data}


def encode_envelope(envelope: Envelope) -> str:
    """Serialize an envelope to JSON text."""
    return json.dumps(envelope.to_dict())


def decode_envelope(raw: Union[str, bytes, Mapping[str, Any]]) -> Envelope:
    """
    Parse an inbound message.

    Args:
        raw: JSON text, UTF-8 bytes, or an already decoded mapping

    Returns:
        Envelope

    Raises:
        MessageDecodeError: If raw is not an object with a string "type"
    """
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MessageDecodeError(f"Envelope is not UTF-8: {e}") from e

    if isinstance(raw, str):
        try:
            payload = json.loads(raw)
        except (ValueError, RecursionError) as e:
            # JSONDecodeError, oversized integer literals, excessive nesting
            raise MessageDecodeError(f"Envelope is not valid JSON: {e}") from e
    else:
        payload = raw

    if not isinstance(payload, Mapping):
        raise MessageDecodeError(f"Envelope must be an object, got {type(payload).__name__}")

    message_type = payload.get("type")
    if not isinstance(message_type, str) or not message_type:
        raise MessageDecodeError("Envelope has no string 'type'")

    return Envelope(type=message_type, data=payload.get("data"))


# =============================================================================
# Pose / Angle Conversion
# =============================================================================

def _finite_or(value: Any, fallback: float) -> float:
    """Numeric value of a wire field, or fallback if it is not a finite number."""
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return fallback
    return number if math.isfinite(number) else fallback


def pose_to_wire(pose: CartesianPose) -> Dict[str, float]:
    """Pose payload with orientation in degrees."""
    return pose.to_degrees()


def pose_from_wire(data: Any, fallback: CartesianPose) -> CartesianPose:
    """
    Build a pose from an inbound payload.

    Missing or non-numeric fields keep the value they have in fallback, so a
    partial message only moves the axes it names.

    Args:
        data: Payload with x, y, z (m) and roll, pitch (deg)
        fallback: Pose supplying values for unusable fields

    Raises:
        MessageDecodeError: If data is not a mapping
    """
    if not isinstance(data, Mapping):
        raise MessageDecodeError("Pose payload must be an object")

    current = fallback.to_degrees()
    values = {name: _finite_or(data.get(name), current[name]) for name in POSE_FIELDS}
    return CartesianPose.from_degrees(**values)


def angles_to_wire(angles: JointAngles) -> Dict[str, float]:
    """Joint-angle payload, degrees keyed q1..q5."""
    return angles.as_dict()


def angles_from_wire(data: Any) -> JointAngles:
    """
    Parse a joint-angle payload.

    Raises:
        MessageDecodeError: If a joint is missing or not a finite number
    """
    if not isinstance(data, Mapping):
        raise MessageDecodeError("Joint angle payload must be an object")
    values = {}
    for name in JOINT_NAMES:
        value = _finite_or(data.get(name), math.nan)
        if math.isnan(value):
            raise MessageDecodeError(f"Joint angle '{name}' missing or not finite")
        values[name] = value
    return JointAngles(**values)
