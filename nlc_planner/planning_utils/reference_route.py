"""
Copyright 2025 AUMOVIO. All rights reserved.
"""
import logging
from dataclasses import dataclass, field
from typing import Tuple

import numpy as np

from nlc_planner.data_types import VehicleState
from nlc_planner.exceptions import DegenerateInputError
from nlc_planner.planning_utils.route import Route
from nlc_planner.planning_utils.spline import (
    MIN_SMOOTHING_SAMPLES,
    SplineCurve,
    evaluate_with_derivative,
    fit_smoothing_spline,
    spline_value,
)
from common_utils.time_tracking import timeit

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class ReferenceRoute:
    """
    Smoothed, arc-length parameterized reference ahead of the vehicle.

    `s`, `x_samples`, `y_samples` and `psi_samples` are the resampled route
    points the splines were fitted to; `s[0]` is 0 at the vehicle.
    """
    x: SplineCurve = field(default_factory=SplineCurve.empty)
    y: SplineCurve = field(default_factory=SplineCurve.empty)
    heading: SplineCurve = field(default_factory=SplineCurve.empty)
    s: np.ndarray = field(default_factory=lambda: np.zeros(0))
    x_samples: np.ndarray = field(default_factory=lambda: np.zeros(0))
    y_samples: np.ndarray = field(default_factory=lambda: np.zeros(0))
    psi_samples: np.ndarray = field(default_factory=lambda: np.zeros(0))

    @classmethod
    def empty(cls) -> "ReferenceRoute":
        return cls()

    @property
    def is_empty(self) -> bool:
        return self.x.is_empty or self.y.is_empty or self.heading.is_empty

    @property
    def length(self) -> float:
        return float(self.s[-1]) if self.s.size else 0.0

    def pose_at(self, s: float) -> Tuple[float, float, float]:
        return spline_value(self.x, s), spline_value(self.y, s), spline_value(self.heading, s)


class ReferenceRouteBuilder:
    """
    Turns the raw route into x(s), y(s) and heading(s) smoothing splines.

    Parameters
    ----------
    sim_time : float
        Horizon duration [s].
    max_forward_speed : float
        Fastest admissible speed [m/s]; horizon length times this speed is
        the route length required ahead of the vehicle.
    min_distance_in_route : float
        Required lengths below this value do not produce a reference.
    resample_spacing : float
        Minimum arc-length between two resampled points [m].
    position_smoothing_factor, heading_smoothing_factor : float
        Smoothing factors in [0, 1] handed to the spline fit.
    """
    def __init__(self, sim_time: float, max_forward_speed: float, min_distance_in_route: float = 5.0,
                 resample_spacing: float = 0.75, position_smoothing_factor: float = 0.9,
                 heading_smoothing_factor: float = 0.7):
        self.sim_time = sim_time
        self.max_forward_speed = max_forward_speed
        self.min_distance_in_route = min_distance_in_route
        self.resample_spacing = resample_spacing
        self.position_smoothing_factor = position_smoothing_factor
        self.heading_smoothing_factor = heading_smoothing_factor

    @property
    def required_length(self) -> float:
        return self.sim_time * self.max_forward_speed

    @timeit
    def build(self, route: Route, state: VehicleState) -> ReferenceRoute:
        """Build the reference for this cycle; an empty reference means no usable route."""
        try:
            return self._build(route, state)
        except DegenerateInputError as e:
            logger.warning(f"No usable reference route: {e}")
            return ReferenceRoute.empty()

    def _build(self, route: Route, state: VehicleState) -> ReferenceRoute:
        s, x, y = self.resample(route, state)
        weights = np.ones_like(s)

        route_x = fit_smoothing_spline(s, x, weights, self.position_smoothing_factor)
        route_y = fit_smoothing_spline(s, y, weights, self.position_smoothing_factor)
        if route_x.is_empty or route_y.is_empty:
            raise DegenerateInputError("position spline fit failed")

        _, dx = evaluate_with_derivative(s, route_x)
        _, dy = evaluate_with_derivative(s, route_y)
        psi = np.zeros_like(s)
        for i in range(s.size - 1):
            if dx[i] == 0.0:
                raise DegenerateInputError(f"degenerate tangent at s={s[i]:.2f}")
            psi[i] = np.arctan2(dy[i], dx[i])
        # no trailing derivative sample
        psi[-1] = psi[-2]
        psi = np.unwrap(psi)

        route_heading = fit_smoothing_spline(s, psi, weights, self.heading_smoothing_factor)
        if route_heading.is_empty:
            raise DegenerateInputError("heading spline fit failed")

        return ReferenceRoute(x=route_x, y=route_y, heading=route_heading,
                              s=s, x_samples=x, y_samples=y, psi_samples=psi)

    def resample(self, route: Route, state: VehicleState) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Walk the centerline ahead of the vehicle and keep points spaced by at
        least `resample_spacing`, with arc-length measured from the vehicle.

        Raises
        ------
        DegenerateInputError
            When the required length is below the configured minimum, the
            route is empty or fewer than three points remain.
        """
        required_length = self.required_length
        if required_length < self.min_distance_in_route:
            raise DegenerateInputError(
                f"required route length {required_length:.2f} below minimum {self.min_distance_in_route:.2f}")
        if len(route) == 0:
            raise DegenerateInputError("route has no centerline points")

        state_s = route.get_s(state)
        s_out, x_out, y_out = [], [], []
        previous_s = 0.0
        for s, point in route.center_lane:
            if s < state_s:
                continue
            if s - state_s > required_length:
                break
            local_progress = s - state_s
            if local_progress - previous_s >= self.resample_spacing:
                s_out.append(local_progress)
                x_out.append(point.x)
                y_out.append(point.y)
                previous_s = local_progress

        if len(s_out) < MIN_SMOOTHING_SAMPLES:
            raise DegenerateInputError(f"only {len(s_out)} resampled route points")

        s_arr = np.array(s_out)
        # re-origin at the vehicle
        s_arr[0] = 0.0
        return s_arr, np.array(x_out), np.array(y_out)
