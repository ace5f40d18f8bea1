"""
Copyright 2025 AUMOVIO. All rights reserved.
"""
from dataclasses import dataclass, field, replace
from typing import Dict, Hashable, Iterator, List, Mapping, Sequence

import numpy as np


@dataclass(frozen=True)
class VehicleState:
    """
    Dynamic state of the ego vehicle (rear axle reference).

    x, y:           world position [m]
    yaw_angle:      heading [rad]
    vx:             longitudinal velocity [m/s]
    steering_angle: front wheel angle [rad]
    steering_rate:  front wheel angle rate [rad/s]
    ax:             longitudinal acceleration [m/s^2]
    yaw_rate:       [rad/s]
    time:           [s]
    """
    x: float = 0.0
    y: float = 0.0
    yaw_angle: float = 0.0
    vx: float = 0.0
    steering_angle: float = 0.0
    steering_rate: float = 0.0
    ax: float = 0.0
    yaw_rate: float = 0.0
    time: float = 0.0


@dataclass(frozen=True)
class ParticipantState:
    """Observed state of another traffic participant."""
    x: float
    y: float
    yaw_angle: float = 0.0
    vx: float = 0.0


TrafficParticipantSet = Mapping[Hashable, ParticipantState]


@dataclass(frozen=True)
class Trajectory:
    """Time ordered sequence of vehicle states, one per control point."""
    states: Sequence[VehicleState] = field(default_factory=tuple)

    def __post_init__(self):
        # freeze whatever sequence type was handed in
        object.__setattr__(self, "states", tuple(self.states))

    @classmethod
    def empty(cls) -> "Trajectory":
        return cls(())

    @property
    def is_empty(self) -> bool:
        return len(self.states) == 0

    def __len__(self) -> int:
        return len(self.states)

    def __iter__(self) -> Iterator[VehicleState]:
        return iter(self.states)

    def __getitem__(self, idx):
        return self.states[idx]

    @property
    def velocities(self) -> np.ndarray:
        return np.array([s.vx for s in self.states])

    @property
    def times(self) -> np.ndarray:
        return np.array([s.time for s in self.states])

    def as_array(self) -> np.ndarray:
        """Array of shape (len, 9) in the field order of `VehicleState`."""
        rows: List[List[float]] = [
            [s.x, s.y, s.yaw_angle, s.vx, s.steering_angle, s.steering_rate, s.ax, s.yaw_rate, s.time]
            for s in self.states
        ]
        return np.array(rows, dtype=float).reshape(-1, 9)


def participants_from_dict(raw: Dict[Hashable, Mapping[str, float]]) -> Dict[Hashable, ParticipantState]:
    """Build a participant set from plain dictionaries, e.g. loaded from a scenario config."""
    return {pid: ParticipantState(**dict(values)) for pid, values in raw.items()}


@dataclass(frozen=True)
class TuningParameters:
    """Live tuning values, reconfigurable through `updated` with a name -> value mapping."""
    wheel_base: float = 2.69
    lateral_weight: float = 0.01
    heading_weight: float = 0.06
    maximum_velocity: float = 13.6
    min_distance_to_vehicle_ahead: float = 5.0

    RECOGNIZED_KEYS = ("wheel_base", "lateral_weight", "heading_weight", "maximum_velocity",
                       "min_distance_to_vehicle_ahead")

    def updated(self, params: Mapping[str, float]) -> "TuningParameters":
        """New instance with the recognized keys of `params` applied; other keys are ignored."""
        values = {name: float(value) for name, value in params.items() if name in self.RECOGNIZED_KEYS}
        return replace(self, **values)
