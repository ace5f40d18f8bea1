import numpy as np
import pytest

from nlc_planner import Trajectory, VehicleState, build_planner
from nlc_planner.planning_model.BaseNMPC import FailureTracker
from nlc_planner.planning_utils.route import Route
from tests.fakes import FakeSolver

from simulation.scenarios import lead_vehicle, straight_road


def make_planner(script=None, **overrides):
    solver = FakeSolver(script)
    cfg = {"controller": {"maximum_velocity": 20.0}}
    for group, values in overrides.items():
        cfg.setdefault(group, {}).update(values)
    return build_planner(cfg, ocp_solver=solver), solver


def plan(planner, route, lane_map, state=None, participants=None):
    return planner.plan_trajectory(route, state or VehicleState(vx=5.0), lane_map, participants or {})


def test_good_cycle_returns_full_trajectory(straight_route, straight_map):
    planner, solver = make_planner()
    state = VehicleState(x=3.0, y=0.2, yaw_angle=0.1, vx=5.0, steering_angle=0.05, time=12.0)
    trajectory = plan(planner, straight_route, straight_map, state)

    assert len(trajectory) == 30
    assert trajectory.times == pytest.approx(12.0 + 0.1 * np.arange(30))
    assert trajectory[0].x == pytest.approx(3.0)
    assert planner.last_cycle.accepted
    assert planner.bad_counter == 0

    problem = solver.problems[0]
    assert problem.initial_state == pytest.approx([3.0, 0.2, 0.1, 5.0, 0.05, 0.0, 0.0, 0.0])
    assert problem.initial_input.tolist() == [0.0]
    assert problem.time_step == pytest.approx(0.1)
    assert problem.control_points == 30
    # lateral and heading offset of the initial state are penalized
    assert float(problem.cost_rate(problem.initial_state)) > 0.0


def test_trajectory_rates_are_forward_differences(straight_route, straight_map):
    planner, _ = make_planner()
    trajectory = plan(planner, straight_route, straight_map, VehicleState(vx=2.0, steering_angle=0.1))
    data = trajectory.as_array()

    yaw, v, yaw_rate, ax = data[:, 2], data[:, 3], data[:, 7], data[:, 6]
    assert ax[:-1] == pytest.approx(np.diff(v) / 0.1)
    assert yaw_rate[:-1] == pytest.approx(np.diff(yaw) / 0.1)
    assert ax[-1] == ax[-2]
    assert yaw_rate[-1] == yaw_rate[-2]
    assert np.all(yaw_rate[:-1] > 0)


def test_five_consecutive_bad_cycles_keep_the_last_good_trajectory(straight_route, straight_map):
    planner, _ = make_planner(["good", "bad", "bad", "bad", "bad", "bad", "good"])
    good = plan(planner, straight_route, straight_map)

    counters = []
    for _ in range(5):
        assert plan(planner, straight_route, straight_map) is good
        assert not planner.last_cycle.accepted
        counters.append(planner.bad_counter)
    assert counters == [1, 2, 3, 4, 0]

    recovered = plan(planner, straight_route, straight_map, VehicleState(x=1.0, vx=5.0))
    assert recovered is not good
    assert recovered[0].x == pytest.approx(1.0)
    assert planner.bad_counter == 0


@pytest.mark.parametrize("action", ["bad", "overspeed", "steering_rate", "short", "nan", "raise"])
def test_rejected_cycle_falls_back(straight_route, straight_map, action):
    planner, _ = make_planner(["good", action])
    good = plan(planner, straight_route, straight_map)
    assert plan(planner, straight_route, straight_map) is good
    assert planner.bad_counter == 1
    assert planner.last_cycle.rejection_reasons


def test_first_cycle_rejected_returns_empty_trajectory(straight_route, straight_map):
    planner, _ = make_planner(["bad"])
    assert plan(planner, straight_route, straight_map).is_empty


def test_good_cycle_after_failures_resets_counter(straight_route, straight_map):
    planner, _ = make_planner(["bad", "bad", "good"])
    plan(planner, straight_route, straight_map)
    plan(planner, straight_route, straight_map)
    assert planner.bad_counter == 2
    assert len(plan(planner, straight_route, straight_map)) == 30
    assert planner.bad_counter == 0


def test_degenerate_route_keeps_previous_trajectory(straight_route, straight_map):
    planner, solver = make_planner(["good", "bad"])
    assert plan(planner, Route([]), straight_map) == Trajectory.empty()
    assert solver.calls == 0

    good = plan(planner, straight_route, straight_map)
    plan(planner, straight_route, straight_map)
    assert planner.bad_counter == 1

    short_route = Route.from_points([[0.0, 0.0], [1.0, 0.0], [2.0, 0.0]])
    assert plan(planner, short_route, straight_map) is good
    assert not planner.last_cycle.reference_built
    # reference failures do not touch the counter
    assert planner.bad_counter == 1
    assert solver.calls == 2


def test_required_length_below_minimum_skips_the_solver(straight_route, straight_map):
    planner, solver = make_planner(time={"sim_time": 0.2, "control_points": 4})
    assert plan(planner, straight_route, straight_map).is_empty
    assert solver.calls == 0


def test_reference_velocity_follows_lead_vehicle():
    scenario = lead_vehicle(gap=10.0, initial_speed=5.0)
    planner, solver = make_planner(controller={"wheel_base": 2.8})
    plan(planner, scenario.route, scenario.lane_map, scenario.initial_state, scenario.participants)

    bounds = planner.last_cycle.velocity_bounds
    assert bounds.idm < 5.0
    assert planner.last_cycle.reference_velocity == pytest.approx(bounds.idm)
    # warm start brakes toward the reference
    assert np.all(np.diff(solver.problems[0].initial_guess[:, 3]) < 0)


def test_constant_velocity_warmstart_from_config(straight_route, straight_map):
    planner, solver = make_planner(controller={"warmstart_mode": "const_vx"})
    plan(planner, straight_route, straight_map, VehicleState(x=1.0, vx=4.0))

    guess = solver.problems[0].initial_guess
    assert guess.shape == (30, 8)
    assert guess[:, 0] == pytest.approx(1.0 + 0.4 * np.arange(30))
    assert guess[:, 3] == pytest.approx(np.full(30, 4.0))


def test_set_parameters_updates_tuning(straight_route, straight_map):
    planner, _ = make_planner()
    planner.set_parameters({"maximum_velocity": 3.0, "lateral_weight": 0.5, "unknown_key": 1.0})
    assert planner.tuning.maximum_velocity == 3.0
    assert planner.tuning.lateral_weight == 0.5
    assert planner.tuning.wheel_base == 2.69

    plan(planner, straight_route, straight_map, VehicleState(vx=2.0))
    assert planner.last_cycle.reference_velocity == pytest.approx(3.0)

    with pytest.raises(ValueError):
        planner.set_parameters({"wheel_base": 0.0})


def test_rejected_set_parameters_keeps_planning(straight_route, straight_map):
    planner, _ = make_planner()
    plan(planner, straight_route, straight_map)

    with pytest.raises(ValueError):
        planner.set_parameters({"wheel_base": 0.0, "maximum_velocity": 3.0})
    assert planner.tuning.wheel_base == 2.69
    assert planner.tuning.maximum_velocity == 20.0

    trajectory = plan(planner, straight_route, straight_map)
    assert len(trajectory) == 30
    assert planner.last_cycle.accepted


@pytest.mark.parametrize("group, values", [
    ("time", {"control_points": 1}),
    ("time", {"sim_time": 0.0}),
    ("controller", {"wheel_base": -1.0}),
    ("controller", {"warmstart_mode": "previous_solution"}),
])
def test_invalid_configuration(group, values):
    with pytest.raises(ValueError):
        make_planner(**{group: values})


def test_failure_tracker_wraps_after_five():
    tracker = FailureTracker()
    for expected in [1, 2, 3, 4, 0, 1]:
        tracker.begin_cycle()
        tracker.record_failure()
        assert tracker.bad_counter == expected
        assert not tracker.accepts()
    tracker.begin_cycle()
    assert tracker.accepts()


def test_ipopt_accelerates_from_rest_on_straight_road():
    scenario = straight_road(length=300.0, speed_limit=15.0)
    planner = build_planner({"controller": {"maximum_velocity": 20.0}, "solver": {"time_limit": 10.0}})
    trajectory = planner.plan_trajectory(scenario.route, scenario.initial_state, scenario.lane_map, {})

    assert planner.last_cycle.accepted
    assert len(trajectory) == 30
    v = trajectory.velocities
    assert v[0] == pytest.approx(0.0, abs=1e-6)
    assert np.all(np.diff(v) >= -1e-6)
    assert v[-1] > 0.5
    assert np.all(v < 15.0)
    assert np.all(np.diff(trajectory.times) > 0)
    assert np.abs(trajectory.as_array()[:, 1]).max() < 1e-3


def test_ipopt_brakes_behind_stationary_vehicle():
    scenario = lead_vehicle(gap=10.0, initial_speed=5.0)
    planner = build_planner({"controller": {"maximum_velocity": 20.0, "wheel_base": 2.8},
                             "solver": {"time_limit": 10.0}})
    trajectory = planner.plan_trajectory(scenario.route, scenario.initial_state, scenario.lane_map,
                                         scenario.participants)

    assert planner.last_cycle.accepted
    v = trajectory.velocities
    assert v[0] == pytest.approx(5.0, abs=1e-6)
    assert np.all(np.diff(v) <= 1e-6)
    assert v[-1] < 2.0
