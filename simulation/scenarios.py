"""
Copyright 2025 AUMOVIO. All rights reserved.
"""
from dataclasses import dataclass, field
from typing import Callable, Dict, Hashable, Mapping, Optional

import numpy as np

from nlc_planner.data_types import ParticipantState, VehicleState, participants_from_dict
from nlc_planner.planning_utils.route import DEFAULT_LANE_WIDTH, Lane, LaneMap, Route


@dataclass
class Scenario:
    """Synthetic driving situation: one-lane route, its map and the initial traffic."""
    name: str
    route: Route
    lane_map: LaneMap
    initial_state: VehicleState
    participants: Dict[Hashable, ParticipantState] = field(default_factory=dict)


def _single_lane_scenario(name, points, speed_limit, initial_state, participants=None) -> Scenario:
    lane = Lane(0, points, width=DEFAULT_LANE_WIDTH, speed_limit=speed_limit)
    return Scenario(name=name, route=Route.from_lanes([lane]), lane_map=LaneMap([lane]),
                    initial_state=initial_state, participants=dict(participants or {}))


def straight_road(length: float = 300.0, spacing: float = 0.5, speed_limit: float = 15.0,
                  initial_speed: float = 0.0) -> Scenario:
    xs = np.arange(0.0, length + spacing, spacing)
    points = np.stack([xs, np.zeros_like(xs)], axis=1)
    return _single_lane_scenario("straight", points, speed_limit, VehicleState(vx=initial_speed))


def curved_road(radius: float = 25.0, straight_length: float = 30.0, arc_angle: float = np.pi / 2,
                spacing: float = 0.5, speed_limit: float = 15.0, initial_speed: float = 5.0) -> Scenario:
    """Straight segment along x followed by a left turn of the given radius."""
    xs = np.arange(0.0, straight_length, spacing)
    straight = np.stack([xs, np.zeros_like(xs)], axis=1)
    angles = np.arange(0.0, arc_angle + spacing / radius, spacing / radius)
    arc = np.stack([straight_length + radius * np.sin(angles), radius * (1.0 - np.cos(angles))], axis=1)
    points = np.concatenate([straight, arc], axis=0)
    return _single_lane_scenario("curve", points, speed_limit, VehicleState(vx=initial_speed))


def lead_vehicle(gap: float = 10.0, length: float = 200.0, spacing: float = 0.5, speed_limit: float = 15.0,
                 initial_speed: float = 5.0) -> Scenario:
    """Straight road with a stationary participant `gap` meters ahead of the vehicle."""
    scenario = straight_road(length=length, spacing=spacing, speed_limit=speed_limit, initial_speed=initial_speed)
    scenario.name = "lead_vehicle"
    scenario.participants = {"lead": ParticipantState(x=gap, y=0.0)}
    return scenario


SCENARIOS: Dict[str, Callable[..., Scenario]] = {
    "straight": straight_road,
    "curve": curved_road,
    "lead_vehicle": lead_vehicle,
}


def build_scenario(name: str, participants: Optional[Mapping[Hashable, Mapping[str, float]]] = None,
                   **kwargs) -> Scenario:
    """Build a named scenario; `participants` adds traffic given as plain dictionaries, e.g. from the config."""
    if name not in SCENARIOS:
        raise ValueError(f"Unknown scenario '{name}', choose from {sorted(SCENARIOS)}.")
    scenario = SCENARIOS[name](**kwargs)
    if participants:
        scenario.participants.update(participants_from_dict(participants))
    return scenario
