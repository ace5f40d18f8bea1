import numpy as np
import pytest

from nlc_planner.data_types import VehicleState
from nlc_planner.planning_utils.route import DEFAULT_LANE_WIDTH, DEFAULT_SPEED_LIMIT, Lane, LaneMap, MapPoint, Route


def test_route_projection_and_pose(straight_route):
    assert straight_route.get_length() == pytest.approx(300.0)
    assert straight_route.get_s(VehicleState(x=12.3, y=1.0)) == pytest.approx(12.3)
    assert straight_route.get_s((-5.0, 0.0)) == pytest.approx(0.0)

    x, y, heading = straight_route.get_pose_at_s(42.0)
    assert (x, y, heading) == pytest.approx((42.0, 0.0, 0.0))
    # clamped beyond the end
    assert straight_route.get_pose_at_s(1000.0)[0] == pytest.approx(300.0)


def test_route_center_lane_is_ordered_by_arc_length(straight_route):
    s_values = [s for s, _ in straight_route]
    assert s_values[0] == 0.0
    assert np.all(np.diff(s_values) > 0)
    assert len(straight_route) == len(s_values)


def test_route_from_lanes_drops_joint_duplicates():
    first = Lane("a", [[0.0, 0.0], [5.0, 0.0], [10.0, 0.0]])
    second = Lane("b", [[10.0, 0.0], [10.0, 5.0], [10.0, 10.0]], width=3.0)
    route = Route.from_lanes([first, second])

    assert len(route) == 5
    assert route.get_length() == pytest.approx(20.0)
    point = route.get_map_point_at_s(12.0)
    assert point.parent_id == "b"
    assert point.s == pytest.approx(2.0)
    assert (point.x, point.y) == pytest.approx((10.0, 2.0))
    assert route.get_pose_at_s(12.0)[2] == pytest.approx(np.pi / 2)


def test_empty_route():
    route = Route([])
    assert len(route) == 0
    assert route.get_length() == 0.0
    assert route.get_s((1.0, 1.0)) == 0.0
    with pytest.raises(IndexError):
        route.get_map_point_at_s(0.0)


def test_lane_width_profile_is_interpolated():
    lane = Lane(1, [[0.0, 0.0], [10.0, 0.0], [20.0, 0.0]], width=[3.0, 4.0, 5.0])
    assert lane.get_width(5.0) == pytest.approx(3.5)
    assert lane.get_width(25.0) == pytest.approx(5.0)
    assert lane.length == pytest.approx(20.0)
    with pytest.raises(ValueError):
        Lane(2, [[0.0, 0.0], [1.0, 0.0]], width=[3.0, 3.0, 3.0])


def test_lane_map_lookups():
    lanes = [
        Lane("slow", [[0.0, 0.0], [10.0, 0.0]], speed_limit=8.0),
        Lane("fast", [[0.0, 10.0], [10.0, 10.0]], speed_limit=25.0, width=4.0),
    ]
    lane_map = LaneMap(lanes)

    nearest = lane_map.nearest_point(VehicleState(x=9.0, y=8.0))
    assert isinstance(nearest, MapPoint)
    assert nearest.parent_id == "fast"
    assert lane_map.get_lane_speed_limit(nearest.parent_id) == 25.0
    assert lane_map.get_lane_speed_limit("unknown") == DEFAULT_SPEED_LIMIT
    assert lane_map.get_lane_width("fast", 3.0) == pytest.approx(4.0)
    assert lane_map.get_lane_width("unknown", 3.0) == DEFAULT_LANE_WIDTH
    assert lane_map.nearest_point((100.0, 100.0), max_distance=5.0) is None


def test_empty_lane_map_has_no_nearest_point():
    assert LaneMap([]).nearest_point((0.0, 0.0)) is None
