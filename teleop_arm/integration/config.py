"""
Configuration Module
====================

Master configuration of a teleoperation session and its YAML form.

Example YAML:

    log_level: INFO
    geometry:
      l1: 0.1
      l2: 0.43
      l3: 0.43
      l4: 0.213
      joint_limits:
        - [-90.0, 90.0]
        - [-10.0, 190.0]
        - [-150.0, 150.0]
        - [-150.0, 150.0]
        - [-90.0, 90.0]
    trajectory:
      step_size: 0.005
      orientation_step: 0.01
      waypoint_rate_hz: 10.0
      interpolation_enabled: true
    sync:
      debounce_ms: 40.0
      remote_control: false

Author: Teleop Arm Project Team
License: MIT
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Tuple, Union

import yaml

from ..control.kinematics import DEFAULT_JOINT_LIMITS, ArmGeometry, JointLimits
from ..control.trajectory import TrajectoryConfig
from .sync import SyncConfig

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

PathLike = Union[str, Path]


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging for an entry point."""
    logging.basicConfig(level=getattr(logging, level.upper()), format=LOG_FORMAT)


@dataclass
class GeometryConfig:
    """
    Arm dimensions as they appear in a config file.

    Attributes:
        l1, l2, l3, l4: Link lengths (m)
        joint_limits: [lower, upper] per joint q1..q5 (deg)
    """
    l1: float = 0.1
    l2: float = 0.43
    l3: float = 0.43
    l4: float = 0.213
    joint_limits: List[Tuple[float, float]] = field(
        default_factory=lambda: [(lim.lower, lim.upper) for lim in DEFAULT_JOINT_LIMITS]
    )

    def __post_init__(self) -> None:
        """Validate by building the geometry once."""
        self.to_geometry()

    def to_geometry(self) -> ArmGeometry:
        return ArmGeometry(
            l1=self.l1,
            l2=self.l2,
            l3=self.l3,
            l4=self.l4,
            joint_limits=tuple(
                JointLimits(lower=float(lower), upper=float(upper))
                for lower, upper in self.joint_limits
            ),
        )


@dataclass
class TeleopConfig:
    """
    Master configuration for an arm session.

    Attributes:
        geometry: Arm dimensions and joint ranges
        trajectory: Interpolation and playback settings
        sync: Debounce and remote-control settings
        log_level: Logging verbosity
    """
    geometry: GeometryConfig = field(default_factory=GeometryConfig)
    trajectory: TrajectoryConfig = field(default_factory=TrajectoryConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        """Validate configuration."""
        self.log_level = self.log_level.upper()
        if self.log_level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {LOG_LEVELS}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TeleopConfig":
        """
        Build a configuration from a plain dictionary.

        Missing sections and keys keep their defaults; unknown keys raise
        TypeError from the section dataclass.

        Raises:
            ValueError: If data or one of its sections is not a mapping
        """
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ValueError(f"Configuration must be a mapping, got {type(data).__name__}")
        for section in ("geometry", "trajectory", "sync"):
            if data.get(section) is not None and not isinstance(data[section], dict):
                raise ValueError(f"Configuration section '{section}' must be a mapping")

        geometry_data = dict(data.get("geometry") or {})
        if "joint_limits" in geometry_data:
            geometry_data["joint_limits"] = [
                tuple(pair) for pair in geometry_data["joint_limits"]
            ]

        top_level = {
            k: v for k, v in data.items()
            if k not in ["geometry", "trajectory", "sync"]
        }

        return cls(
            geometry=GeometryConfig(**geometry_data),
            trajectory=TrajectoryConfig(**(data.get("trajectory") or {})),
            sync=SyncConfig(**(data.get("sync") or {})),
            **top_level
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        geometry = asdict(self.geometry)
        geometry["joint_limits"] = [list(pair) for pair in self.geometry.joint_limits]
        return {
            "geometry": geometry,
            "trajectory": asdict(self.trajectory),
            "sync": asdict(self.sync),
            "log_level": self.log_level,
        }

    @classmethod
    def from_yaml(cls, path: PathLike) -> "TeleopConfig":
        """
        Load configuration from YAML file.

        Args:
            path: Path to YAML configuration file

        Returns:
            TeleopConfig instance
        """
        with open(path, "r") as f:
            data = yaml.safe_load(f)

        config = cls.from_dict(data)
        logger.info(f"Configuration loaded from {path}")
        return config

    def to_yaml(self, path: PathLike) -> None:
        """
        Save configuration to YAML file.

        Args:
            path: Path to save configuration
        """
        with open(path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False)

        logger.info(f"Configuration saved to {path}")
