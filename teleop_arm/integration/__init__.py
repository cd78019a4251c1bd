"""
Integration Module
==================

Adapters between the motion core and the outside world.

Key Components:
    - Config: Session configuration with YAML load/save
    - Messages: Typed envelopes and wire conversion
    - Sync: Echo-suppressing duplex pose link
    - Actuators: Gripper, linear actuator and camera servo commands
    - Session: One arm wired end to end

Author: Teleop Arm Project Team
License: MIT
"""

from .config import GeometryConfig, TeleopConfig, setup_logging
from .messages import (
    Envelope,
    MessageDecodeError,
    MessageType,
    decode_envelope,
    encode_envelope,
)
from .sync import SyncChannel, SyncConfig, Transport
from .actuators import ActuatorPanel
from .session import ArmSession

__all__ = [
    "GeometryConfig",
    "TeleopConfig",
    "setup_logging",
    "Envelope",
    "MessageDecodeError",
    "MessageType",
    "decode_envelope",
    "encode_envelope",
    "SyncChannel",
    "SyncConfig",
    "Transport",
    "ActuatorPanel",
    "ArmSession",
]
