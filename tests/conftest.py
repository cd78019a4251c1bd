"""
Pytest Configuration and Fixtures
==================================

Shared test configuration and fixtures for all test modules.
Handles path setup for importing teleop_arm without installing it.

Author: Teleop Arm Project Team
License: MIT
"""

import sys
from pathlib import Path

# Add project root to path for imports
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

import pytest

from teleop_arm.control.kinematics import KinematicsSolver
from teleop_arm.control.pose_model import PoseModel
from teleop_arm.control.scheduling import SimulatedScheduler


# =============================================================================
# Test Doubles
# =============================================================================

class RecordingTransport:
    """In-memory transport that records every envelope it is given."""

    def __init__(self):
        self.connected = True
        self.fail_with = None
        self.sent = []

    @property
    def is_connected(self):
        return self.connected

    def send(self, envelope):
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append(envelope)

    def of_type(self, message_type):
        """Payloads of recorded envelopes of one kind, in send order."""
        key = getattr(message_type, "value", message_type)
        return [e.data for e in self.sent if e.type == key]

    def clear(self):
        self.sent.clear()


# =============================================================================
# Global Fixtures
# =============================================================================

@pytest.fixture(scope="session")
def project_root_path():
    """Get project root path."""
    return project_root


@pytest.fixture
def solver():
    """Default-geometry kinematics solver."""
    return KinematicsSolver()


@pytest.fixture
def model(solver):
    """Pose model starting at HOME."""
    return PoseModel(solver)


@pytest.fixture
def scheduler():
    """Virtual-clock scheduler starting at t=0."""
    return SimulatedScheduler()


@pytest.fixture
def transport():
    """Connected recording transport."""
    return RecordingTransport()


# =============================================================================
# Markers
# =============================================================================

def pytest_configure(config):
    """Add custom markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow")
    config.addinivalue_line("markers", "integration: marks integration tests")
