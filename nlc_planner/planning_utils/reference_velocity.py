"""
Copyright 2025 AUMOVIO. All rights reserved.
"""
import logging
from dataclasses import dataclass

import numpy as np

from nlc_planner.data_types import TrafficParticipantSet, TuningParameters, VehicleState
from nlc_planner.planning_utils.obstacle_selection import closest_in_lane_distance
from nlc_planner.planning_utils.reference_route import ReferenceRoute
from nlc_planner.planning_utils.route import LaneMap, Route
from nlc_planner.planning_utils.spline import evaluate_with_derivative, find_segment_index

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VelocityBounds:
    """The individual speed bounds of one cycle and the resulting reference velocity."""
    maximum: float
    curvature: float
    idm: float
    speed_limit: float

    @property
    def reference(self) -> float:
        return max(0.0, min(self.maximum, self.curvature, self.idm, self.speed_limit))


def idm_velocity(v: float, distance: float, gap: float, maximum_velocity: float, max_forward_speed: float,
                 desired_time_headway: float, max_acceleration: float, max_deceleration: float,
                 front_vehicle_velocity: float = 0.0) -> float:
    """
    Intelligent-driver-model target velocity, integrated over a single unit step.

        s* = gap + v * T + v * (v - v_front) / (2 * sqrt(a_max * b))
        a  = a_max * (1 - (v / v_max)**4 - (s* / distance)**2)
        v_idm = clip(v + a, 0, max_forward_speed)

    A distance that is used up (<= 0) or a non-positive maximum velocity
    yields 0 instead of a non-finite value.
    """
    if distance <= 0.0 or maximum_velocity <= 0.0:
        return 0.0
    s_star = gap + v * desired_time_headway \
        + v * (v - front_vehicle_velocity) / (2.0 * np.sqrt(max_acceleration * max_deceleration))
    velocity_ratio = v / maximum_velocity
    acceleration = max_acceleration * (1.0 - velocity_ratio ** 4 - (s_star / distance) ** 2)
    return float(np.clip(v + acceleration, 0.0, max_forward_speed))


class ReferenceVelocityPlanner:
    """
    Target cruise velocity per cycle: the minimum of the configured maximum,
    a curvature bound, an IDM car-following bound and the lane speed limit.
    """
    def __init__(self, max_forward_speed: float, lookahead_time: float = 3.0, safe_index: int = 5,
                 lateral_acceleration: float = 2.0, minimum_velocity_in_curve: float = 3.0,
                 desired_time_headway: float = 1.5, max_acceleration: float = 2.0, max_deceleration: float = 2.5,
                 front_vehicle_velocity: float = 0.0):
        if max_acceleration <= 0 or max_deceleration <= 0:
            raise ValueError("IDM acceleration limits must be positive.")
        self.max_forward_speed = max_forward_speed
        self.lookahead_time = lookahead_time
        self.safe_index = safe_index
        self.lateral_acceleration = lateral_acceleration
        self.minimum_velocity_in_curve = minimum_velocity_in_curve
        self.desired_time_headway = desired_time_headway
        self.max_acceleration = max_acceleration
        self.max_deceleration = max_deceleration
        self.front_vehicle_velocity = front_vehicle_velocity

    def compute(self, reference: ReferenceRoute, route: Route, state: VehicleState, lane_map: LaneMap,
                participants: TrafficParticipantSet, tuning: TuningParameters) -> VelocityBounds:
        bounds = VelocityBounds(
            maximum=tuning.maximum_velocity,
            curvature=self.curvature_velocity(reference, state.vx),
            idm=self.idm_velocity(route, state, lane_map, participants, tuning),
            speed_limit=self.speed_limit(lane_map, state),
        )
        logger.debug(f"Velocity bounds {bounds} -> reference {bounds.reference:.2f} m/s")
        return bounds

    def reference_velocity(self, reference: ReferenceRoute, route: Route, state: VehicleState, lane_map: LaneMap,
                           participants: TrafficParticipantSet, tuning: TuningParameters) -> float:
        return self.compute(reference, route, state, lane_map, participants, tuning).reference

    def max_curvature(self, reference: ReferenceRoute, vx: float) -> float:
        """Largest |dpsi/ds| on the resampled points up to the lookahead distance."""
        if reference.is_empty or reference.s.size < 2:
            return 0.0
        index = find_segment_index(self.lookahead_time * vx, reference.heading)
        index = min(max(index, self.safe_index), reference.s.size - 1)
        _, dpsi = evaluate_with_derivative(reference.s[:index], reference.heading)
        curvature = np.abs(dpsi)
        if curvature.size == 0:
            return 0.0
        return float(np.max(curvature))

    def curvature_velocity(self, reference: ReferenceRoute, vx: float) -> float:
        max_curvature = self.max_curvature(reference, vx)
        if not np.isfinite(max_curvature) or max_curvature <= 0.0:
            # straight reference, no curvature bound
            return np.inf
        return max(float(np.sqrt(self.lateral_acceleration / max_curvature)), self.minimum_velocity_in_curve)

    def idm_velocity(self, route: Route, state: VehicleState, lane_map: LaneMap,
                     participants: TrafficParticipantSet, tuning: TuningParameters) -> float:
        state_s = route.get_s(state)
        distance_to_object_min = closest_in_lane_distance(route, lane_map, participants, state_s)
        distance_to_goal = route.get_length() - state_s
        distance_for_idm = min(distance_to_object_min, distance_to_goal)

        gap = tuning.min_distance_to_vehicle_ahead
        if distance_to_goal < distance_to_object_min:
            # stop at the goal
            gap = tuning.wheel_base / 2.0

        return idm_velocity(
            v=state.vx,
            distance=distance_for_idm,
            gap=gap,
            maximum_velocity=tuning.maximum_velocity,
            max_forward_speed=self.max_forward_speed,
            desired_time_headway=self.desired_time_headway,
            max_acceleration=self.max_acceleration,
            max_deceleration=self.max_deceleration,
            front_vehicle_velocity=self.front_vehicle_velocity,
        )

    def speed_limit(self, lane_map: LaneMap, state: VehicleState) -> float:
        nearest = lane_map.nearest_point(state)
        if nearest is None:
            return np.inf
        return float(lane_map.get_lane_speed_limit(nearest.parent_id))
