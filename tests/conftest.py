import sys
from pathlib import Path

import numpy as np
import pytest


# Pytest 8 defaults to `--import-mode=importlib`, which does not prepend the
# repository root to `sys.path`. Add it so `import nlc_planner` works without an
# editable install.
REPO_ROOT = Path(__file__).resolve().parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from nlc_planner.planning_utils.route import Lane, LaneMap, Route


def make_straight_lane(length: float = 300.0, spacing: float = 0.5, speed_limit: float = 15.0, lane_id=0) -> Lane:
    xs = np.arange(0.0, length + spacing, spacing)
    return Lane(lane_id, np.stack([xs, np.zeros_like(xs)], axis=1), speed_limit=speed_limit)


@pytest.fixture
def straight_lane() -> Lane:
    return make_straight_lane()


@pytest.fixture
def straight_route(straight_lane) -> Route:
    return Route.from_lanes([straight_lane])


@pytest.fixture
def straight_map(straight_lane) -> LaneMap:
    return LaneMap([straight_lane])
