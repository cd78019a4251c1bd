"""
Sync Channel Module
===================

Duplex link between the local pose model and a remote peer.

Outbound:
    - joint_angles is sent on every pose write, unconditionally.
    - pose is sent for local writes only, debounced on the trailing edge:
      a burst of writes inside the debounce window produces a single send
      carrying the last value.

Inbound:
    - pose is applied only while remote control is enabled. Applying it
      runs with echo suppression set, so the write it causes is not sent
      back. The flag is cleared when the write, and every observer it
      triggered, has returned.
    - other message kinds are routed to handlers registered with on().
    - malformed envelopes are logged and dropped.

Transport:
    The transport is opaque. Sends while it is disconnected, or that fail
    with a connection error, are dropped and counted; nothing is queued.

Author: Teleop Arm Project Team
License: MIT
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Union

from ..control.kinematics import CartesianPose
from ..control.pose_model import PoseAuthor, PoseModel, PoseOwnershipError, PoseUpdate
from ..control.scheduling import Scheduler, TimerHandle
from .messages import (
    Envelope,
    MessageDecodeError,
    MessageType,
    angles_to_wire,
    decode_envelope,
    pose_from_wire,
    pose_to_wire,
)

logger = logging.getLogger(__name__)

RawMessage = Union[str, bytes, Mapping[str, Any]]
MessageHandler = Callable[[Envelope], None]


# =============================================================================
# Configuration
# =============================================================================

@dataclass
class SyncConfig:
    """
    Configuration for the sync channel.

    Attributes:
        debounce_ms: Trailing-edge debounce window for outbound pose (ms)
        remote_control: Initial state of the remote-control toggle
    """
    debounce_ms: float = 40.0
    remote_control: bool = False

    def __post_init__(self) -> None:
        """Validate configuration."""
        if not 0 < self.debounce_ms <= 1000:
            raise ValueError("debounce_ms must be in (0, 1000]")

    @property
    def debounce(self) -> float:
        """Debounce window in seconds."""
        return self.debounce_ms / 1000.0


# =============================================================================
# Transport Protocol
# =============================================================================

class Transport(Protocol):
    """Protocol for the message transport (WebSocket, serial bridge, ...)."""

    @property
    def is_connected(self) -> bool:
        """True if send() can currently deliver."""
        ...

    def send(self, envelope: Envelope) -> None:
        """Deliver one envelope. May raise ConnectionError or OSError."""
        ...


# =============================================================================
# Sync Channel
# =============================================================================

class SyncChannel:
    """
    Echo-suppressing pose synchronisation over a Transport.

    Example:
        >>> channel = SyncChannel(transport, scheduler)
        >>> channel.attach(model)
        >>> channel.remote_control = True
        >>> channel.handle_inbound('{"type": "pose", "data": {"x": 0.2}}')
    """

    def __init__(
        self,
        transport: Transport,
        scheduler: Scheduler,
        config: Optional[SyncConfig] = None
    ) -> None:
        """
        Initialize sync channel.

        Args:
            transport: Outbound message transport
            scheduler: Timer source for the debounce window
            config: Sync configuration
        """
        self.transport = transport
        self.scheduler = scheduler
        self.config = config or SyncConfig()

        self._remote_control = self.config.remote_control
        self._model: Optional[PoseModel] = None
        self._unsubscribe: Optional[Callable[[], None]] = None

        # Set while an inbound pose is being applied
        self._suppress_echo = False

        self._debounce_timer: Optional[TimerHandle] = None
        self._pending_pose: Optional[CartesianPose] = None

        self._handlers: Dict[str, List[MessageHandler]] = {}

        self._sent = 0
        self._dropped = 0
        self._received = 0
        self._rejected = 0

    # =========================================================================
    # Model Binding
    # =========================================================================

    @property
    def model(self) -> Optional[PoseModel]:
        return self._model

    def attach(self, model: PoseModel) -> None:
        """Start mirroring writes of model to the peer."""
        self.detach()
        self._model = model
        self._unsubscribe = model.subscribe(self._on_pose_update)
        logger.info("SyncChannel attached to pose model")

    def detach(self) -> None:
        """Stop mirroring; pending debounced sends are discarded."""
        self._cancel_pending()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._model = None

    @property
    def remote_control(self) -> bool:
        """True if inbound pose messages are applied."""
        return self._remote_control

    @remote_control.setter
    def remote_control(self, enabled: bool) -> None:
        if enabled != self._remote_control:
            logger.info(f"Remote control {'enabled' if enabled else 'disabled'}")
        self._remote_control = bool(enabled)

    @property
    def has_pending_pose(self) -> bool:
        """True while a debounced pose send is waiting."""
        return self._debounce_timer is not None

    # =========================================================================
    # Outbound
    # =========================================================================

    def _on_pose_update(self, update: PoseUpdate) -> None:
        """Pose model observer."""
        self.send(Envelope(MessageType.JOINT_ANGLES, angles_to_wire(update.angles)))

        if self._suppress_echo:
            # The remote value is now current; an older local value must not follow it
            self._cancel_pending()
            return

        if not update.author.is_local:
            return

        self._schedule_pose(update.pose)

    def _schedule_pose(self, pose: CartesianPose) -> None:
        """(Re)start the debounce window with pose as the value to send."""
        self._pending_pose = pose
        if self._debounce_timer is not None:
            self._debounce_timer.cancel()
        self._debounce_timer = self.scheduler.call_later(
            self.config.debounce, self._flush_pose
        )

    def _flush_pose(self) -> None:
        """Debounce timer callback."""
        pose = self._pending_pose
        self._debounce_timer = None
        self._pending_pose = None
        if pose is not None:
            self.send(Envelope(MessageType.POSE, pose_to_wire(pose)))

    def _cancel_pending(self) -> None:
        if self._debounce_timer is not None:
            self._debounce_timer.cancel()
            self._debounce_timer = None
        self._pending_pose = None

    def flush(self) -> bool:
        """
        Send a pending debounced pose now.

        Returns:
            True if a pose was pending
        """
        if self._debounce_timer is None:
            return False
        self._debounce_timer.cancel()
        self._flush_pose()
        return True

    def send(self, envelope: Envelope) -> bool:
        """
        Send an envelope if the transport is connected.

        Returns:
            True if the transport accepted it
        """
        if not self.transport.is_connected:
            self._dropped += 1
            logger.debug(f"Transport disconnected, dropping {envelope.type}")
            return False

        try:
            self.transport.send(envelope)
        except (ConnectionError, OSError) as e:
            self._dropped += 1
            logger.warning(f"Send of {envelope.type} failed: {e}")
            return False

        self._sent += 1
        return True

    # =========================================================================
    # Inbound
    # =========================================================================

    def on(self, message_type: Union[MessageType, str], handler: MessageHandler) -> Callable[[], None]:
        """
        Register a handler for an inbound message kind other than pose.

        Returns:
            Function that removes the handler again
        """
        key = message_type.value if isinstance(message_type, MessageType) else message_type
        if key == MessageType.POSE.value:
            raise ValueError("Inbound pose is handled by the channel itself")
        handlers = self._handlers.setdefault(key, [])
        handlers.append(handler)

        def remove() -> None:
            if handler in handlers:
                handlers.remove(handler)

        return remove

    def handle_inbound(self, raw: RawMessage) -> bool:
        """
        Process one inbound message.

        Args:
            raw: JSON text, bytes, or decoded mapping

        Returns:
            True if the message was applied or delivered to a handler
        """
        try:
            envelope = decode_envelope(raw)
        except MessageDecodeError as e:
            self._rejected += 1
            logger.warning(f"Dropping malformed message: {e}")
            return False

        self._received += 1

        if envelope.type == MessageType.POSE.value:
            return self._apply_remote_pose(envelope)

        handlers = self._handlers.get(envelope.type)
        if not handlers:
            logger.debug(f"No handler for inbound {envelope.type}")
            return False

        for handler in list(handlers):
            try:
                handler(envelope)
            except Exception as e:
                logger.error(f"Handler error for {envelope.type}: {e}")
        return True

    def _apply_remote_pose(self, envelope: Envelope) -> bool:
        if not self._remote_control:
            logger.debug("Remote control disabled, ignoring inbound pose")
            return False
        if self._model is None:
            logger.warning("Inbound pose with no pose model attached")
            return False

        try:
            pose = pose_from_wire(envelope.data, self._model.pose)
        except MessageDecodeError as e:
            self._rejected += 1
            logger.warning(f"Dropping malformed pose: {e}")
            return False

        self._suppress_echo = True
        try:
            self._model.set_pose(pose, PoseAuthor.REMOTE)
        except PoseOwnershipError as e:
            logger.warning(f"Inbound pose refused: {e}")
            return False
        finally:
            self._suppress_echo = False

        return True

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def close(self) -> None:
        """Discard pending sends and detach from the model."""
        self.detach()
        self._handlers.clear()
        logger.info("SyncChannel closed")

    def get_status(self) -> Dict[str, Any]:
        """Get channel status for monitoring."""
        return {
            "connected": self.transport.is_connected,
            "remote_control": self._remote_control,
            "pending_pose": self.has_pending_pose,
            "sent": self._sent,
            "dropped": self._dropped,
            "received": self._received,
            "rejected": self._rejected,
        }
