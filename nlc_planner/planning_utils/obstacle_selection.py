"""
Copyright 2025 AUMOVIO. All rights reserved.
"""
import logging
from dataclasses import dataclass
from typing import Hashable, List

import numpy as np

from nlc_planner.data_types import TrafficParticipantSet
from nlc_planner.planning_utils.route import LaneMap, Route

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProjectedParticipant:
    """Traffic participant expressed in route coordinates relative to the ego vehicle."""
    participant_id: Hashable
    distance: float     # along the route, positive ahead of the ego vehicle
    offset: float       # lateral distance to the centerline
    lane_width: float

    @property
    def within_lane(self) -> bool:
        return self.offset < self.lane_width

    @property
    def is_ahead(self) -> bool:
        return self.distance > 0.0


def project_participants(route: Route, lane_map: LaneMap, participants: TrafficParticipantSet,
                         state_s: float) -> List[ProjectedParticipant]:
    """
    Project every participant onto the route.

    The participant position is projected to route arc-length `s`; its offset
    is the distance to the route pose at `s`, compared against the width of the
    lane owning the route map point at `s`.
    """
    projected = []
    if len(route) == 0:
        return projected
    for pid, participant in participants.items():
        s = route.get_s(participant)
        pose = route.get_pose_at_s(s)
        offset = float(np.hypot(participant.x - pose[0], participant.y - pose[1]))
        map_point = route.get_map_point_at_s(s)
        lane_width = lane_map.get_lane_width(map_point.parent_id, map_point.s)
        projected.append(ProjectedParticipant(pid, s - state_s, offset, lane_width))
    return projected


def closest_in_lane_distance(route: Route, lane_map: LaneMap, participants: TrafficParticipantSet,
                             state_s: float) -> float:
    """Forward distance to the nearest in-lane participant ahead, infinity if there is none."""
    distance_min = np.inf
    for p in project_participants(route, lane_map, participants, state_s):
        if p.within_lane and p.is_ahead and p.distance < distance_min:
            distance_min = p.distance
            logger.debug(f"Closest in-lane participant {p.participant_id} at {p.distance:.2f} m")
    return float(distance_min)
