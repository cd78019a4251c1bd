"""
Actuators Module
================

Pass-through commands for the gripper, the linear actuator and the camera
servos. None of these touch the motion core; they are forwarded to the
peer over the sync channel.

Press / Release:
    Holding a button sends a nonzero value, letting go sends zero.

        gripper          close -1, open +1
        linear_actuator  extend +1, retract -1

Camera Servos:
    Four hobby servos (camera, camera2, camera3, camera4) positioned in
    whole degrees within [0, 180].

Author: Teleop Arm Project Team
License: MIT
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Union

from ..control.kinematics import JointLimits
from .messages import Envelope, MessageType
from .sync import SyncChannel

logger = logging.getLogger(__name__)

GRIPPER_CLOSE = -1
GRIPPER_OPEN = 1
ACTUATOR_EXTEND = 1
ACTUATOR_RETRACT = -1

PRESS_TYPES = (MessageType.GRIPPER, MessageType.LINEAR_ACTUATOR)

SERVO_LIMITS = JointLimits(lower=0.0, upper=180.0)

DEFAULT_SERVO_POSITIONS: Dict[MessageType, float] = {
    MessageType.CAMERA: 80,
    MessageType.CAMERA2: 45,
    MessageType.CAMERA3: 90,
    MessageType.CAMERA4: 90,
}


class ActuatorPanel:
    """
    Button-style actuator commands.

    Example:
        >>> panel = ActuatorPanel(channel)
        >>> panel.press(MessageType.GRIPPER, GRIPPER_CLOSE)
        >>> panel.release(MessageType.GRIPPER)
        >>> panel.nudge(MessageType.CAMERA, 5)
    """

    def __init__(self, channel: SyncChannel) -> None:
        self.channel = channel
        self._servo_positions = dict(DEFAULT_SERVO_POSITIONS)
        self._held: Dict[MessageType, int] = {}

    @staticmethod
    def _press_type(kind: Union[MessageType, str]) -> MessageType:
        kind = MessageType(kind)
        if kind not in PRESS_TYPES:
            raise ValueError(f"{kind.value} is not a press/release actuator")
        return kind

    @staticmethod
    def _servo_type(servo: Union[MessageType, str]) -> MessageType:
        servo = MessageType(servo)
        if servo not in DEFAULT_SERVO_POSITIONS:
            raise ValueError(f"{servo.value} is not a camera servo")
        return servo

    # =========================================================================
    # Press / Release
    # =========================================================================

    def press(self, kind: Union[MessageType, str], value: int) -> bool:
        """
        Start driving an actuator.

        Args:
            kind: gripper or linear_actuator
            value: Direction, must be nonzero

        Returns:
            True if the command was sent
        """
        kind = self._press_type(kind)
        if value == 0:
            raise ValueError("press value must be nonzero, use release() to stop")
        self._held[kind] = value
        logger.debug(f"{kind.value} pressed: {value}")
        return self.channel.send(Envelope(kind, value))

    def release(self, kind: Union[MessageType, str]) -> bool:
        """Stop driving an actuator."""
        kind = self._press_type(kind)
        self._held.pop(kind, None)
        logger.debug(f"{kind.value} released")
        return self.channel.send(Envelope(kind, 0))

    def release_all(self) -> None:
        """Release every actuator still held."""
        for kind in list(self._held):
            self.release(kind)

    @property
    def held(self) -> Dict[str, int]:
        """Actuators currently pressed, with their value."""
        return {kind.value: value for kind, value in self._held.items()}

    # =========================================================================
    # Camera Servos
    # =========================================================================

    def set_servo(self, servo: Union[MessageType, str], value: float) -> float:
        """
        Move a camera servo.

        Args:
            servo: camera, camera2, camera3 or camera4
            value: Target angle (deg); clamped to [0, 180]

        Returns:
            Position actually commanded
        """
        servo = self._servo_type(servo)
        position = SERVO_LIMITS.clamp(value)
        self._servo_positions[servo] = position
        self.channel.send(Envelope(servo, position))
        return position

    def nudge(self, servo: Union[MessageType, str], delta: float) -> float:
        """Move a camera servo relative to its current position."""
        servo = self._servo_type(servo)
        return self.set_servo(servo, self._servo_positions[servo] + delta)

    @property
    def servo_positions(self) -> Dict[str, float]:
        return {servo.value: position for servo, position in self._servo_positions.items()}

    def get_status(self) -> Dict[str, Any]:
        return {"held": self.held, "servos": self.servo_positions}
