"""
Copyright 2025 AUMOVIO. All rights reserved.
"""
import logging
from dataclasses import dataclass
from typing import Dict, Hashable, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np
from scipy.spatial import cKDTree
from shapely.geometry import LineString, Point

logger = logging.getLogger(__name__)

DEFAULT_SPEED_LIMIT = 13.41 # meters per second, equals roughly 49 km per hour or 30 miles per hour
DEFAULT_LANE_WIDTH = 3.5


@dataclass(frozen=True)
class MapPoint:
    """Point on a lane centerline; `s` is the arc-length along the parent lane."""
    x: float
    y: float
    s: float = 0.0
    parent_id: Hashable = None


def _xy(obj) -> Tuple[float, float]:
    if hasattr(obj, "x") and hasattr(obj, "y"):
        return float(obj.x), float(obj.y)
    x, y = obj[0], obj[1]
    return float(x), float(y)


def _cumulative_length(xy: np.ndarray) -> np.ndarray:
    if xy.shape[0] == 0:
        return np.zeros(0)
    return np.concatenate(([0.0], np.cumsum(np.hypot(*np.diff(xy, axis=0).T))))


class Lane:
    """
    Lane centerline with width profile and speed limit.

    Widths may be a scalar or one value per centerline point; lookups between
    points are interpolated linearly along the lane arc-length.
    """
    def __init__(self, lane_id: Hashable, points, width: Union[float, Sequence[float]] = DEFAULT_LANE_WIDTH,
                 speed_limit: Optional[float] = None):
        self.id = lane_id
        self.points = np.asarray(points, dtype=float).reshape(-1, 2)
        self.s = _cumulative_length(self.points)
        widths = np.asarray(width, dtype=float).reshape(-1)
        if widths.size == 1:
            widths = np.full(self.points.shape[0], widths[0])
        if widths.size != self.points.shape[0]:
            raise ValueError(f"lane {lane_id}: {widths.size} widths for {self.points.shape[0]} points")
        self.widths = widths
        self.speed_limit = DEFAULT_SPEED_LIMIT if speed_limit is None else float(speed_limit)

    def get_width(self, s: float) -> float:
        if self.s.size == 0:
            return 0.0
        return float(np.interp(s, self.s, self.widths))

    def map_points(self) -> List[MapPoint]:
        return [MapPoint(x=p[0], y=p[1], s=si, parent_id=self.id) for p, si in zip(self.points, self.s)]

    @property
    def length(self) -> float:
        return float(self.s[-1]) if self.s.size else 0.0


class Route:
    """
    Drivable centerline to follow, assembled from consecutive lane points.

    `center_lane` is the ordered list of (route arc-length, map point) pairs.
    Projections and poses use a shapely LineString over the same points.
    """
    def __init__(self, map_points: Iterable[MapPoint]):
        points: List[MapPoint] = []
        for mp in map_points:
            # lane joint: the next lane owns the shared point
            if points and np.hypot(mp.x - points[-1].x, mp.y - points[-1].y) < 1e-9:
                points[-1] = mp
                continue
            points.append(mp)
        xy = np.array([[p.x, p.y] for p in points], dtype=float).reshape(-1, 2)
        self._s = _cumulative_length(xy)
        self.center_lane: List[Tuple[float, MapPoint]] = list(zip(self._s.tolist(), points))
        self._linestring = LineString(xy) if len(points) >= 2 else None

    @classmethod
    def from_lanes(cls, lanes: Iterable[Lane]) -> "Route":
        map_points: List[MapPoint] = []
        for lane in lanes:
            map_points.extend(lane.map_points())
        return cls(map_points)

    @classmethod
    def from_points(cls, points, lane_id: Hashable = 0) -> "Route":
        return cls.from_lanes([Lane(lane_id, points)])

    def __iter__(self) -> Iterator[Tuple[float, MapPoint]]:
        return iter(self.center_lane)

    def __len__(self) -> int:
        return len(self.center_lane)

    def get_length(self) -> float:
        return float(self._s[-1]) if self._s.size else 0.0

    def get_s(self, obj) -> float:
        """Arc-length of the projection of a point (anything with x/y) onto the route."""
        if self._linestring is None:
            return 0.0
        return float(self._linestring.project(Point(*_xy(obj))))

    def get_pose_at_s(self, s: float) -> np.ndarray:
        """[x, y, heading] on the centerline at arc-length `s` (clamped to the route)."""
        if self._linestring is None:
            if self.center_lane:
                mp = self.center_lane[0][1]
                return np.array([mp.x, mp.y, 0.0])
            return np.zeros(3)
        s = float(np.clip(s, 0.0, self.get_length()))
        p = self._linestring.interpolate(s)
        idx = self._segment_index(s)
        (x0, y0), (x1, y1) = self._linestring.coords[idx], self._linestring.coords[idx + 1]
        return np.array([p.x, p.y, np.arctan2(y1 - y0, x1 - x0)])

    def get_map_point_at_s(self, s: float) -> MapPoint:
        """Map point at route arc-length `s`, carrying the parent lane and lane arc-length."""
        if not self.center_lane:
            raise IndexError("empty route has no map points")
        idx = self._segment_index(s) if self._linestring is not None else 0
        route_s, base = self.center_lane[idx]
        pose = self.get_pose_at_s(s)
        lane_s = base.s + max(float(s) - route_s, 0.0)
        return MapPoint(x=pose[0], y=pose[1], s=lane_s, parent_id=base.parent_id)

    def _segment_index(self, s: float) -> int:
        idx = int(np.searchsorted(self._s, s, side="right")) - 1
        return min(max(idx, 0), max(self._s.size - 2, 0))


class LaneMap:
    """
    Lane collection with a nearest-point spatial index (scipy cKDTree).
    """
    def __init__(self, lanes: Iterable[Lane]):
        self.lanes: Dict[Hashable, Lane] = {lane.id: lane for lane in lanes}
        self._points: List[MapPoint] = [mp for lane in self.lanes.values() for mp in lane.map_points()]
        if self._points:
            self._tree = cKDTree(np.array([[mp.x, mp.y] for mp in self._points]))
        else:
            self._tree = None

    def nearest_point(self, obj, max_distance: float = np.inf) -> Optional[MapPoint]:
        if self._tree is None:
            return None
        dist, idx = self._tree.query(_xy(obj), distance_upper_bound=max_distance)
        if not np.isfinite(dist):
            return None
        return self._points[int(idx)]

    def get_lane_speed_limit(self, lane_id: Hashable) -> float:
        lane = self.lanes.get(lane_id)
        if lane is None:
            logger.debug(f"Unknown lane {lane_id}, falling back to default speed limit")
            return DEFAULT_SPEED_LIMIT
        return lane.speed_limit

    def get_lane_width(self, lane_id: Hashable, s: float) -> float:
        lane = self.lanes.get(lane_id)
        return DEFAULT_LANE_WIDTH if lane is None else lane.get_width(s)
