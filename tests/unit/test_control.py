"""
Unit Tests for Control Module
==============================

Tests for kinematics, reachability, trajectory planning, scheduling,
the pose model and the trajectory executor.

Author: Teleop Arm Project Team
License: MIT
"""

import asyncio
import math

import numpy as np
import pytest

from teleop_arm.control.executor import (
    ExecutionEventKind,
    ExecutionState,
    StartOutcome,
    TrajectoryExecutor,
)
from teleop_arm.control.kinematics import (
    ArmGeometry,
    CartesianPose,
    JointAngles,
    JointLimits,
    KinematicsSolver,
)
from teleop_arm.control.pose_model import (
    PRESETS,
    PoseAuthor,
    PoseModel,
    PoseOwnershipError,
)
from teleop_arm.control.reachability import ReachabilityReport, ReachabilityValidator
from teleop_arm.control.scheduling import AsyncioScheduler, SimulatedScheduler
from teleop_arm.control.trajectory import TrajectoryConfig, TrajectoryPlanner

# Beyond the outer workspace boundary for any pitch
UNREACHABLE_TARGET = CartesianPose(1.2, 0.0, 0.35, 0.0, 0.0)

# With pitch 0 and z = l1 the wrist centre sits on the shoulder axis and
# d = 1 exactly at x = l2 + l3 + l4
BOUNDARY_X = 0.43 + 0.43 + 0.213


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def planner():
    """Planner with default step sizes."""
    return TrajectoryPlanner(TrajectoryConfig())


@pytest.fixture
def validator(solver):
    """Reachability validator on the default geometry."""
    return ReachabilityValidator(solver)


@pytest.fixture
def executor(model, scheduler):
    """Executor playing onto the HOME-initialised model at 10 Hz."""
    return TrajectoryExecutor(model, scheduler, TrajectoryConfig())


def run_ticks(scheduler, executor, n):
    """Advance the virtual clock by n playback periods."""
    scheduler.advance(n * executor.config.tick_period)


# =============================================================================
# Geometry Tests
# =============================================================================


class TestJointLimits:
    """Tests for JointLimits class."""

    def test_clamp(self):
        """Test value clamping."""
        limits = JointLimits(lower=-90.0, upper=90.0)
        assert limits.clamp(120.0) == 90.0
        assert limits.clamp(-120.0) == -90.0
        assert limits.clamp(10.0) == 10.0

    def test_is_within(self):
        """Test limit check with margin."""
        limits = JointLimits(lower=-90.0, upper=90.0)
        assert limits.is_within(89.0)
        assert not limits.is_within(89.0, margin=5.0)

    def test_invalid_limits(self):
        """Test that inverted limits raise."""
        with pytest.raises(ValueError):
            JointLimits(lower=10.0, upper=-10.0)


class TestArmGeometry:
    """Tests for ArmGeometry validation."""

    def test_defaults(self):
        geometry = ArmGeometry()
        assert (geometry.l1, geometry.l2, geometry.l3, geometry.l4) == (0.1, 0.43, 0.43, 0.213)
        assert geometry.max_reach == pytest.approx(1.073)

    def test_non_positive_link_rejected(self):
        with pytest.raises(ValueError):
            ArmGeometry(l2=0.0)

    def test_wrong_limit_count_rejected(self):
        with pytest.raises(ValueError):
            ArmGeometry(joint_limits=(JointLimits(),))


class TestCartesianPose:
    """Tests for CartesianPose conversions."""

    def test_degrees_round_trip(self):
        """Test UI units convert to radians and back."""
        pose = CartesianPose.from_degrees(0.2, 0.1, 0.3, 45.0, -30.0)
        assert pose.roll == pytest.approx(math.pi / 4)
        assert pose.pitch == pytest.approx(-math.pi / 6)
        assert pose.to_degrees()["pitch"] == pytest.approx(-30.0)

    def test_distance_ignores_orientation(self):
        a = CartesianPose(0.0, 0.0, 0.0, 0.0, 0.0)
        b = CartesianPose(0.3, 0.4, 0.0, 1.0, 1.0)
        assert a.distance_to(b) == pytest.approx(0.5)

    def test_replace(self):
        pose = CartesianPose(0.1, 0.2, 0.3)
        moved = pose.replace(z=0.5)
        assert moved.z == 0.5
        assert pose.z == 0.3


# =============================================================================
# Kinematics Tests
# =============================================================================


class TestKinematicsSolver:
    """Tests for the closed-form solver."""

    def test_home_is_reachable(self, solver):
        """Test a well-inside pose."""
        assert solver.is_reachable(0.15, 0.0, 0.35, 0.0, 0.0)

    def test_far_below_base_is_unreachable(self, solver):
        """Test a pose far outside the workspace."""
        assert not solver.is_reachable(0.0, 0.0, -5.0, 0.0, 0.0)

    @pytest.mark.parametrize("name", sorted(PRESETS))
    def test_presets_reachable(self, solver, name):
        """Every preset lies inside the workspace."""
        assert solver.is_pose_reachable(PRESETS[name])

    def test_inverse_returns_degrees(self, solver):
        """Test base yaw and wrist roll pass through in degrees."""
        angles = solver.inverse(0.0, 0.3, 0.35, 0.5, 0.0)
        assert angles.q1 == pytest.approx(90.0)
        assert angles.q5 == pytest.approx(math.degrees(0.5))

    def test_pitch_is_sum_of_planar_joints(self, solver):
        """q2 + q3 + q4 equals the commanded tool pitch."""
        angles = solver.inverse(0.25, 0.05, 0.3, 0.0, math.radians(-40.0))
        assert angles.q2 + angles.q3 + angles.q4 == pytest.approx(-40.0)

    @pytest.mark.parametrize("name", sorted(PRESETS))
    def test_elbow_down_branch(self, solver, name):
        """Only the elbow-down branch is produced."""
        assert solver.inverse_pose(PRESETS[name]).q3 <= 0.0

    def test_deterministic(self, solver):
        """Same pose, same joint angles."""
        pose = PRESETS["FLOOR"]
        assert solver.inverse_pose(pose) == solver.inverse_pose(pose)

    @pytest.mark.parametrize("pose", [
        PRESETS["HOME"],
        PRESETS["FLOOR"],
        PRESETS["STORAGE"],
        CartesianPose.from_degrees(0.3, -0.2, 0.4, 20.0, 15.0),
        CartesianPose.from_degrees(-0.1, 0.4, 0.2, -45.0, -60.0),
    ])
    def test_forward_reproduces_pose(self, solver, pose):
        """forward(inverse(p)) == p for reachable poses."""
        recovered = solver.forward(solver.inverse_pose(pose))
        assert np.allclose(recovered.as_array(), pose.as_array(), atol=1e-9)

    def test_inverse_clamps_just_outside_boundary(self, solver):
        """A pose just past the boundary is rejected but still solvable."""
        x = BOUNDARY_X + 1e-6
        assert solver.elbow_cosine(x, 0.0, 0.1, 0.0, 0.0) > 1.0
        assert not solver.is_reachable(x, 0.0, 0.1, 0.0, 0.0)

        angles = solver.inverse(x, 0.0, 0.1, 0.0, 0.0)
        assert angles.is_finite()
        assert angles.q3 == pytest.approx(0.0, abs=1e-9)

    def test_just_inside_boundary_reachable(self, solver):
        x = BOUNDARY_X - 1e-6
        assert solver.is_reachable(x, 0.0, 0.1, 0.0, 0.0)

    def test_far_pose_still_finite(self, solver):
        """inverse never produces NaN, whatever the input."""
        angles = solver.inverse(0.0, 0.0, -5.0, 0.0, 0.0)
        assert angles.is_finite()

    def test_link_positions(self, solver):
        """Chain starts at the base and ends at the tool tip."""
        pose = PRESETS["HOME"]
        points = solver.link_positions(solver.inverse_pose(pose))
        assert points.shape == (5, 3)
        assert np.allclose(points[0], [0, 0, 0])
        assert np.allclose(points[1], [0, 0, 0.1])
        assert np.allclose(points[-1], pose.position, atol=1e-9)

    def test_joint_limit_check(self, solver):
        ok, violations = solver.check_joint_limits(JointAngles(q1=120.0))
        assert not ok
        assert violations == ["q1"]


# =============================================================================
# Reachability Tests
# =============================================================================


class TestReachabilityValidator:
    """Tests for sequence validation."""

    def test_empty_sequence_ok(self, validator):
        report = validator.validate([])
        assert report
        assert report.checked == 0

    def test_reports_first_failure(self, validator):
        """Validation stops at the first unreachable waypoint."""
        waypoints = [PRESETS["HOME"], UNREACHABLE_TARGET, PRESETS["FLOOR"], UNREACHABLE_TARGET]
        report = validator.validate(waypoints)

        assert not report
        assert report.first_failure_index == 1
        assert report.first_failure == UNREACHABLE_TARGET
        assert report.checked == 2


# =============================================================================
# Trajectory Tests
# =============================================================================


class TestTrajectoryConfig:
    """Tests for TrajectoryConfig validation."""

    def test_defaults(self):
        config = TrajectoryConfig()
        assert config.step_size == 0.005
        assert config.orientation_step == 0.01
        assert config.tick_period == pytest.approx(0.1)

    @pytest.mark.parametrize("kwargs", [
        {"step_size": 0.0},
        {"orientation_step": -0.1},
        {"waypoint_rate_hz": 0.0},
        {"waypoint_rate_hz": 60.0},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            TrajectoryConfig(**kwargs)


class TestTrajectoryPlanner:
    """Tests for linear waypoint generation."""

    def test_same_pose_gives_empty_sequence(self, planner):
        """Start == end produces nothing to execute."""
        pose = PRESETS["HOME"]
        sequence = planner.generate_linear(pose, pose, 0.005, 0.01)
        assert sequence.is_empty
        assert len(sequence) == 0

    def test_exact_step_division(self, planner):
        """Waypoints at t = i/n, excluding the start."""
        start = CartesianPose(0.25, 0.0, 0.25)
        end = CartesianPose(0.5, 0.0, 0.25)
        sequence = planner.generate_linear(start, end, 0.0625, 0.01)

        assert len(sequence) == 4
        assert [w.x for w in sequence] == pytest.approx([0.3125, 0.375, 0.4375, 0.5])
        assert sequence[0] != start

    def test_short_move_has_at_least_two_waypoints(self, planner):
        start = PRESETS["HOME"]
        end = start.replace(z=start.z + 0.001)
        assert len(planner.generate_linear(start, end, 0.005, 0.01)) == 2

    def test_pure_reorientation(self, planner):
        """Orientation-only moves are stepped by orientation_step."""
        start = PRESETS["HOME"]
        end = start.replace(pitch=0.095)
        sequence = planner.generate_linear(start, end, 0.005, 0.01)

        assert len(sequence) == 10
        assert all(w.x == pytest.approx(start.x) for w in sequence)
        pitches = [w.pitch for w in sequence]
        assert pitches == sorted(pitches)

    def test_last_waypoint_is_target(self, planner):
        start, end = PRESETS["HOME"], PRESETS["FLOOR"]
        sequence = planner.plan(start, end)
        assert sequence[-1] == end

    def test_home_to_floor_count_and_spacing(self, planner):
        """n = ceil(dist / step); no step exceeds step_size."""
        start, end = PRESETS["HOME"], PRESETS["FLOOR"]
        sequence = planner.plan(start, end)

        assert len(sequence) == math.ceil(start.distance_to(end) / 0.005)
        poses = [start] + list(sequence)
        steps = [a.distance_to(b) for a, b in zip(poses, poses[1:])]
        assert max(steps) <= 0.005 + 1e-12

    def test_orientation_interpolated_with_translation(self, planner):
        start, end = PRESETS["HOME"], PRESETS["FLOOR"]
        sequence = planner.plan(start, end)
        mid = sequence[len(sequence) // 2 - 1]
        t = (len(sequence) // 2) / len(sequence)
        assert mid.pitch == pytest.approx(start.pitch + t * (end.pitch - start.pitch))

    def test_non_positive_step_rejected(self, planner):
        with pytest.raises(ValueError):
            planner.generate_linear(PRESETS["HOME"], PRESETS["FLOOR"], 0.0, 0.01)


# =============================================================================
# Scheduling Tests
# =============================================================================


class TestSimulatedScheduler:
    """Tests for the virtual-clock scheduler."""

    def test_call_later_fires_once(self, scheduler):
        calls = []
        scheduler.call_later(0.04, lambda: calls.append(scheduler.now()))

        scheduler.advance(0.03)
        assert calls == []
        scheduler.advance(0.02)
        assert calls == [pytest.approx(0.04)]
        scheduler.advance(1.0)
        assert len(calls) == 1

    def test_cancel(self, scheduler):
        calls = []
        handle = scheduler.call_later(0.04, lambda: calls.append(1))
        handle.cancel()
        scheduler.advance(1.0)
        assert calls == []
        assert handle.cancelled()
        assert scheduler.pending == 0

    def test_call_every(self, scheduler):
        calls = []
        handle = scheduler.call_every(0.1, lambda: calls.append(1))
        scheduler.advance(0.35)
        assert len(calls) == 3
        handle.cancel()
        scheduler.advance(1.0)
        assert len(calls) == 3

    def test_fires_in_time_order(self, scheduler):
        order = []
        scheduler.call_later(0.2, lambda: order.append("b"))
        scheduler.call_later(0.1, lambda: order.append("a"))
        scheduler.call_later(0.2, lambda: order.append("c"))
        scheduler.advance(0.5)
        assert order == ["a", "b", "c"]

    def test_negative_delay_rejected(self, scheduler):
        with pytest.raises(ValueError):
            scheduler.call_later(-1.0, lambda: None)


class TestAsyncioScheduler:
    """Tests for the event-loop scheduler."""

    def test_periodic_and_one_shot(self):
        async def scenario():
            scheduler = AsyncioScheduler()
            ticks = []
            fired = []
            handle = scheduler.call_every(0.01, lambda: ticks.append(1))
            scheduler.call_later(0.01, lambda: fired.append(1))

            await asyncio.sleep(0.06)
            handle.cancel()
            count = len(ticks)
            await asyncio.sleep(0.03)
            return count, len(ticks), len(fired), handle.cancelled()

        count, final, fired, cancelled = asyncio.run(scenario())
        assert count >= 2
        assert final == count
        assert fired == 1
        assert cancelled


# =============================================================================
# Pose Model Tests
# =============================================================================


class TestPoseModel:
    """Tests for the observable pose model."""

    def test_starts_at_home(self, model, solver):
        assert model.pose == PRESETS["HOME"]
        assert model.angles == solver.inverse_pose(PRESETS["HOME"])
        assert model.owner is None

    def test_angles_recomputed_on_write(self, model, solver):
        """Joint angles always follow the pose."""
        model.set_pose(PRESETS["FLOOR"], PoseAuthor.PRESET)
        assert model.angles == solver.inverse_pose(PRESETS["FLOOR"])

    def test_observers_notified_synchronously(self, model):
        updates = []
        unsubscribe = model.subscribe(updates.append)

        model.set_pose(PRESETS["FLOOR"], PoseAuthor.USER)
        assert len(updates) == 1
        assert updates[0].pose == PRESETS["FLOOR"]
        assert updates[0].previous == PRESETS["HOME"]
        assert updates[0].author is PoseAuthor.USER

        unsubscribe()
        model.set_pose(PRESETS["HOME"], PoseAuthor.USER)
        assert len(updates) == 1

    def test_observer_error_does_not_block_others(self, model):
        seen = []

        def broken(update):
            raise RuntimeError("boom")

        model.subscribe(broken)
        model.subscribe(seen.append)
        model.set_pose(PRESETS["FLOOR"], PoseAuthor.USER)
        assert len(seen) == 1

    def test_ownership_blocks_other_writers(self, model):
        model.acquire(PoseAuthor.EXECUTOR)
        with pytest.raises(PoseOwnershipError):
            model.set_pose(PRESETS["FLOOR"], PoseAuthor.REMOTE)
        with pytest.raises(PoseOwnershipError):
            model.acquire(PoseAuthor.USER)
        assert model.pose == PRESETS["HOME"]

        model.set_pose(PRESETS["FLOOR"], PoseAuthor.EXECUTOR)
        model.release(PoseAuthor.EXECUTOR)
        model.set_pose(PRESETS["HOME"], PoseAuthor.REMOTE)
        assert model.owner is None

    def test_release_by_non_owner_raises(self, model):
        model.acquire(PoseAuthor.EXECUTOR)
        with pytest.raises(PoseOwnershipError):
            model.release(PoseAuthor.USER)

    def test_update_partial(self, model):
        model.update(PoseAuthor.USER, z=0.4)
        assert model.pose.z == 0.4
        assert model.pose.x == PRESETS["HOME"].x

    def test_update_unknown_field(self, model):
        with pytest.raises(ValueError):
            model.update(PoseAuthor.USER, w=1.0)

    def test_jog_absolute(self, model):
        model.jog("z", 0.01)
        assert model.pose.z == pytest.approx(0.36)
        model.jog("pitch", 5.0)
        assert math.degrees(model.pose.pitch) == pytest.approx(5.0)

    def test_jog_relative_follows_base_yaw(self, model):
        """Relative x is 'forward' along the current base yaw."""
        model.set_pose(CartesianPose(0.0, 0.3, 0.35), PoseAuthor.USER)
        assert model.angles.q1 == pytest.approx(90.0)

        model.jog("x", 0.01, relative=True)
        assert model.pose.x == pytest.approx(0.0)
        assert model.pose.y == pytest.approx(0.31)

    def test_jog_unknown_axis(self, model):
        with pytest.raises(ValueError):
            model.jog("w", 0.01)


# =============================================================================
# Executor Tests
# =============================================================================


class TestTrajectoryExecutor:
    """Tests for the playback state machine."""

    def test_initial_state(self, executor):
        assert executor.state is ExecutionState.IDLE
        assert executor.sequence is None
        assert executor.progress == 0.0

    def test_start_enters_executing(self, executor, model, scheduler):
        """Start claims the pose; the first waypoint lands on the first tick."""
        assert executor.start(PRESETS["FLOOR"]) is StartOutcome.STARTED
        assert executor.state is ExecutionState.EXECUTING
        assert executor.index == 0
        assert model.owner is PoseAuthor.EXECUTOR
        assert model.pose == PRESETS["HOME"]
        assert scheduler.pending == 1

        run_ticks(scheduler, executor, 1)
        assert executor.index == 1
        assert model.pose == executor.sequence[0]

    def test_runs_to_completion(self, executor, model, scheduler):
        executor.start(PRESETS["FLOOR"])
        total = len(executor.sequence)

        run_ticks(scheduler, executor, total)

        assert executor.state is ExecutionState.IDLE
        assert executor.index == total
        assert executor.progress == 1.0
        assert model.pose == PRESETS["FLOOR"]
        assert model.owner is None
        assert scheduler.pending == 0

        history = executor.history
        assert history[0] == PRESETS["HOME"]
        assert history[-1] == PRESETS["FLOOR"]
        assert len(history) == total + 1

    def test_waypoints_applied_in_order(self, executor, model, scheduler):
        applied = []
        model.subscribe(lambda u: applied.append(u.pose))

        executor.start(PRESETS["FLOOR"])
        expected = list(executor.sequence)
        run_ticks(scheduler, executor, len(expected) + 5)

        assert applied == expected

    def test_unreachable_target_rejected_without_mutation(self, executor, model, scheduler):
        """No waypoint is applied if any is unreachable."""
        events = []
        executor.subscribe(events.append)

        assert executor.start(UNREACHABLE_TARGET) is StartOutcome.UNREACHABLE

        assert executor.state is ExecutionState.IDLE
        assert model.pose == PRESETS["HOME"]
        assert model.owner is None
        assert scheduler.pending == 0
        assert executor.last_rejection.first_failure == UNREACHABLE_TARGET
        assert [e.kind for e in events] == [ExecutionEventKind.REJECTED]

        scheduler.advance(10.0)
        assert model.pose == PRESETS["HOME"]

    def test_far_target_rejected_before_planning(self, executor, model, scheduler, monkeypatch):
        """A target far outside the workspace never reaches the planner."""
        planned = []
        monkeypatch.setattr(executor.planner, "plan", lambda *args: planned.append(args))

        assert executor.start(CartesianPose(5000.0, 0.0, 0.35)) is StartOutcome.UNREACHABLE

        assert planned == []
        assert executor.state is ExecutionState.IDLE
        assert model.pose == PRESETS["HOME"]
        assert scheduler.pending == 0

    def test_unreachable_waypoint_rejected(self, executor, model, scheduler, monkeypatch):
        """A reachable target is still refused if a waypoint on the way is not."""
        events = []
        executor.subscribe(events.append)
        failing = ReachabilityReport(ok=False, checked=3, first_failure_index=2, first_failure=PRESETS["HOME"])
        monkeypatch.setattr(executor.validator, "validate", lambda waypoints: failing)

        assert executor.start(PRESETS["FLOOR"]) is StartOutcome.UNREACHABLE

        assert executor.last_rejection is failing
        assert executor.state is ExecutionState.IDLE
        assert model.owner is None
        assert scheduler.pending == 0
        assert [e.kind for e in events] == [ExecutionEventKind.REJECTED]
        assert events[0].total > 0

    def test_already_at_target(self, executor, scheduler):
        assert executor.start(PRESETS["HOME"]) is StartOutcome.ALREADY_AT_TARGET
        assert executor.state is ExecutionState.IDLE
        assert scheduler.pending == 0

    def test_cancel_stops_playback(self, executor, model, scheduler):
        """After cancel no further waypoint is applied."""
        executor.start(PRESETS["FLOOR"])
        run_ticks(scheduler, executor, 3)
        pose_at_cancel = model.pose

        assert executor.cancel()
        assert executor.state is ExecutionState.IDLE
        assert scheduler.pending == 0
        assert model.owner is None

        scheduler.advance(10.0)
        assert model.pose == pose_at_cancel
        assert executor.index == 3

    def test_cancel_when_idle(self, executor):
        assert not executor.cancel()

    def test_cancel_from_observer(self, executor, model, scheduler):
        """Cancel inside a waypoint notification ends on that waypoint."""
        def on_event(event):
            if event.kind is ExecutionEventKind.WAYPOINT and event.index == 2:
                executor.cancel()

        executor.subscribe(on_event)
        executor.start(PRESETS["FLOOR"])
        run_ticks(scheduler, executor, 10)

        assert executor.index == 2
        assert executor.state is ExecutionState.IDLE
        assert scheduler.pending == 0

    def test_restart_replaces_sequence(self, executor, model, scheduler):
        """A new accepted target replaces playback with a single timer."""
        executor.start(PRESETS["FLOOR"])
        run_ticks(scheduler, executor, 5)
        mid_pose = model.pose

        assert executor.start(PRESETS["INTERMEDIATE"]) is StartOutcome.STARTED
        assert executor.sequence.start == mid_pose
        assert executor.index == 0
        assert scheduler.pending == 1

        run_ticks(scheduler, executor, len(executor.sequence))
        assert model.pose == PRESETS["INTERMEDIATE"]
        assert scheduler.pending == 0

    def test_rejected_restart_keeps_running(self, executor, scheduler):
        executor.start(PRESETS["FLOOR"])
        run_ticks(scheduler, executor, 2)
        sequence = executor.sequence

        assert executor.start(UNREACHABLE_TARGET) is StartOutcome.UNREACHABLE
        assert executor.state is ExecutionState.EXECUTING
        assert executor.sequence is sequence
        assert scheduler.pending == 1

    def test_busy_when_pose_owned(self, executor, model, scheduler):
        model.acquire(PoseAuthor.USER)
        assert executor.start(PRESETS["FLOOR"]) is StartOutcome.BUSY
        assert scheduler.pending == 0

    def test_remote_write_refused_during_playback(self, executor, model, scheduler):
        executor.start(PRESETS["FLOOR"])
        run_ticks(scheduler, executor, 1)
        with pytest.raises(PoseOwnershipError):
            model.set_pose(PRESETS["STORAGE"], PoseAuthor.REMOTE)

    def test_event_sequence(self, executor, scheduler):
        kinds = []
        executor.subscribe(lambda e: kinds.append(e.kind))

        executor.start(PRESETS["PREFLOOR"])
        total = len(executor.sequence)
        run_ticks(scheduler, executor, total)

        assert kinds[0] is ExecutionEventKind.STARTED
        assert kinds[1:-1] == [ExecutionEventKind.WAYPOINT] * total
        assert kinds[-1] is ExecutionEventKind.COMPLETED

    def test_get_status(self, executor):
        status = executor.get_status()
        assert status["state"] == "IDLE"
        assert status["timer_active"] is False
