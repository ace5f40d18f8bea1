import numpy as np
import pytest

from nlc_planner.data_types import VehicleState
from nlc_planner.exceptions import DegenerateInputError
from nlc_planner.planning_utils.reference_route import ReferenceRoute, ReferenceRouteBuilder
from nlc_planner.planning_utils.route import Route


def make_builder(**kwargs) -> ReferenceRouteBuilder:
    params = dict(sim_time=3.0, max_forward_speed=20.0)
    params.update(kwargs)
    return ReferenceRouteBuilder(**params)


def test_straight_route_gives_splines_starting_at_zero(straight_route):
    reference = make_builder().build(straight_route, VehicleState())

    assert not reference.is_empty
    for curve in (reference.x, reference.y, reference.heading):
        assert curve.breaks[0] == 0.0
        assert np.all(np.diff(curve.breaks) > 0)
    assert reference.s[0] == 0.0
    assert reference.length <= 60.0
    assert np.all(np.abs(reference.psi_samples) < 1e-9)
    x, y, heading = reference.pose_at(10.0)
    assert y == pytest.approx(0.0, abs=1e-9)
    assert heading == pytest.approx(0.0, abs=1e-9)


def test_resampling_respects_spacing(straight_route):
    s, x, y = make_builder().resample(straight_route, VehicleState())
    # 0.5 m route spacing, 0.75 m minimum -> every second point
    assert np.diff(s)[1:] == pytest.approx(np.ones(s.size - 2))
    assert x[0] == pytest.approx(1.0)
    assert s[-1] <= 60.0


def test_resampling_starts_at_the_vehicle(straight_route):
    s, x, _ = make_builder().resample(straight_route, VehicleState(x=100.2, y=0.3))
    assert s[0] == 0.0
    assert x[0] > 100.2
    assert x[-1] <= 100.2 + 60.0


def test_exactly_three_resampled_points_build():
    route = Route.from_points([[0.0, 0.0], [1.0, 0.0], [2.0, 0.0], [3.0, 0.0]])
    s, _, _ = make_builder().resample(route, VehicleState())
    assert s.size == 3
    assert not make_builder().build(route, VehicleState()).is_empty


def test_two_resampled_points_do_not_build():
    route = Route.from_points([[0.0, 0.0], [1.0, 0.0], [2.0, 0.0]])
    with pytest.raises(DegenerateInputError):
        make_builder().resample(route, VehicleState())
    assert make_builder().build(route, VehicleState()).is_empty


def test_required_length_below_minimum_gives_empty_reference(straight_route):
    builder = make_builder(sim_time=0.2)
    assert builder.required_length == pytest.approx(4.0)
    assert builder.build(straight_route, VehicleState()).is_empty


def test_empty_route_gives_empty_reference():
    assert make_builder().build(Route([]), VehicleState()).is_empty


def test_end_of_route_gives_empty_reference(straight_route):
    assert make_builder().build(straight_route, VehicleState(x=299.0)).is_empty


def test_heading_is_continuous_across_pi():
    # counter-clockwise circle starting with heading pi
    radius = 20.0
    theta = np.arange(np.pi / 2, 2.0 * np.pi, 0.5 / radius)
    route = Route.from_points(np.stack([radius * np.cos(theta), radius * np.sin(theta)], axis=1))
    reference = make_builder().build(route, VehicleState(x=0.0, y=radius, yaw_angle=np.pi))

    assert not reference.is_empty
    assert np.max(np.abs(np.diff(reference.psi_samples))) < 0.5
    # three radians of arc within the 60 m horizon
    assert reference.psi_samples[-1] - reference.psi_samples[0] > 2.5
    # circle curvature 1 / radius
    dpsi = reference.heading.to_ppoly()(reference.s[5:-5], nu=1)
    assert np.median(dpsi) == pytest.approx(1.0 / radius, rel=0.1)


def test_empty_reference_route():
    reference = ReferenceRoute.empty()
    assert reference.is_empty
    assert reference.length == 0.0
