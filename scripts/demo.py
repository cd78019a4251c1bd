#!/usr/bin/env python3
"""
Teleop Arm Demo
===============

Drives a session against a console transport:
1. Inverse kinematics and reachability of the presets
2. Interpolated preset moves on a simulated clock
3. Remote pose takeover with echo suppression
4. Real-time playback on an asyncio loop

Usage:
    python scripts/demo.py
    python scripts/demo.py --preset FLOOR      # Single preset move
    python scripts/demo.py --realtime          # asyncio scheduler
    python scripts/demo.py --config arm.yaml   # Load session config

Author: Teleop Arm Project Team
License: MIT
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from teleop_arm.control import (
    PRESETS,
    ExecutionEvent,
    ExecutionEventKind,
    KinematicsSolver,
    AsyncioScheduler,
    SimulatedScheduler,
)
from teleop_arm.integration import (
    ArmSession,
    Envelope,
    MessageType,
    TeleopConfig,
    encode_envelope,
    setup_logging,
)

logger = logging.getLogger(__name__)


def print_banner():
    """Print demo banner."""
    print(
        """
╔══════════════════════════════════════════════════════════════════╗
║                                                                  ║
║              🦾 TELEOPERATED ARM MOTION CORE DEMO                ║
║                                                                  ║
╚══════════════════════════════════════════════════════════════════╝
    """
    )


class ConsoleTransport:
    """Transport that prints outbound envelopes instead of sending them."""

    def __init__(self, verbose: bool = False) -> None:
        self.verbose = verbose
        self.sent: List[Envelope] = []

    @property
    def is_connected(self) -> bool:
        return True

    def send(self, envelope: Envelope) -> None:
        self.sent.append(envelope)
        if self.verbose or envelope.type != MessageType.JOINT_ANGLES.value:
            print(f"   → {encode_envelope(envelope)}")


def run_kinematics_demo() -> None:
    """Show joint angles for every preset."""
    print("\n" + "=" * 60)
    print("📐 KINEMATICS DEMO")
    print("=" * 60)

    solver = KinematicsSolver()
    for name, pose in PRESETS.items():
        angles = solver.inverse_pose(pose)
        reachable = solver.is_pose_reachable(pose)
        joints = ", ".join(f"{k}={v:7.2f}" for k, v in angles.as_dict().items())
        print(f"   {name:<13} {'✓' if reachable else '✗'}  {joints}")


def run_trajectory_demo(config: TeleopConfig, preset: Optional[str] = None) -> None:
    """Interpolated preset moves on a simulated clock."""
    print("\n" + "=" * 60)
    print("🛤️  TRAJECTORY DEMO")
    print("=" * 60)

    scheduler = SimulatedScheduler()
    session = ArmSession(ConsoleTransport(), scheduler, config)

    def on_event(event: ExecutionEvent) -> None:
        if event.kind is not ExecutionEventKind.WAYPOINT:
            print(f"   [{scheduler.now():6.2f}s] {event.kind.name} {event.index}/{event.total}")

    session.executor.subscribe(on_event)

    for name in [preset] if preset else ["INTERMEDIATE", "PREFLOOR", "FLOOR", "HOME"]:
        print(f"\n   ▶ {name}")
        outcome = session.apply_preset(name)
        print(f"     outcome: {outcome.name}")
        while session.executor.is_executing:
            scheduler.advance(config.trajectory.tick_period)
        # Let the trailing pose send go out
        scheduler.advance(config.sync.debounce)

    session.close()


def run_sync_demo(config: TeleopConfig) -> None:
    """Inbound pose with remote control on and off."""
    print("\n" + "=" * 60)
    print("🔁 SYNC DEMO")
    print("=" * 60)

    scheduler = SimulatedScheduler()
    transport = ConsoleTransport()
    session = ArmSession(transport, scheduler, config)

    message = '{"type": "pose", "data": {"x": 0.2, "y": 0.05, "z": 0.4, "roll": 0, "pitch": 10}}'

    print("\n   Remote control off:")
    print(f"     applied: {session.handle_inbound(message)}")

    session.set_remote_control(True)
    print("\n   Remote control on:")
    print(f"     applied: {session.handle_inbound(message)}")
    scheduler.advance(1.0)

    echoes = [e for e in transport.sent if e.type == MessageType.POSE.value]
    print(f"     pose echoes sent back: {len(echoes)}")
    print(f"     pose now: {session.model.pose.to_degrees()}")

    session.close()


async def _realtime(config: TeleopConfig, preset: str) -> None:
    scheduler = AsyncioScheduler()
    session = ArmSession(ConsoleTransport(), scheduler, config)
    done = asyncio.Event()

    def on_event(event: ExecutionEvent) -> None:
        if event.kind in (ExecutionEventKind.COMPLETED, ExecutionEventKind.CANCELLED):
            done.set()

    session.executor.subscribe(on_event)
    outcome = session.apply_preset(preset)
    print(f"   outcome: {outcome.name}")
    if session.executor.is_executing:
        await done.wait()
    await asyncio.sleep(config.sync.debounce * 2)
    session.close()


def run_realtime_demo(config: TeleopConfig, preset: str) -> None:
    """Playback driven by an asyncio loop in wall-clock time."""
    print("\n" + "=" * 60)
    print(f"⏱️  REAL-TIME DEMO ({preset})")
    print("=" * 60)
    asyncio.run(_realtime(config, preset))


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Teleoperated Arm Motion Core Demo")
    parser.add_argument(
        "--config", "-c", type=str, default=None, help="Session config YAML"
    )
    parser.add_argument(
        "--preset",
        "-p",
        type=str.upper,
        choices=sorted(PRESETS),
        default=None,
        help="Move to a single preset",
    )
    parser.add_argument(
        "--realtime", action="store_true", help="Run playback on an asyncio loop"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose logging"
    )

    args = parser.parse_args()

    config = TeleopConfig.from_yaml(args.config) if args.config else TeleopConfig()
    setup_logging("DEBUG" if args.verbose else config.log_level)

    print_banner()
    try:
        if args.realtime:
            run_realtime_demo(config, args.preset or "FLOOR")
        else:
            run_kinematics_demo()
            run_trajectory_demo(config, args.preset)
            run_sync_demo(config)

        print("\n" + "=" * 60)
        print("✨ DEMO COMPLETE!")
        print("=" * 60)

    except Exception as e:
        logger.error(f"Demo error: {e}")
        raise


if __name__ == "__main__":
    main()
