import math

import pytest

from survey_path_planning.config import DRONE_PRESETS, MissionParameters
from survey_path_planning.models import AreaOfInterest

M_PER_DEG = 6371000.0 * math.pi / 180


def local_ring(points_m, lat0=0.0, lng0=0.0):
    """Ring of (x east, y north) meter offsets around (lat0, lng0) as (lat, lng) pairs."""
    scale_lng = M_PER_DEG * math.cos(math.radians(lat0))
    return [(lat0 + y / M_PER_DEG, lng0 + x / scale_lng) for x, y in points_m]


@pytest.fixture
def make_aoi():
    def _make(outer_m, holes_m=(), lat0=0.0, lng0=0.0):
        rings = [local_ring(outer_m, lat0, lng0)] + [local_ring(h, lat0, lng0) for h in holes_m]
        return AreaOfInterest.from_rings(rings)
    return _make


@pytest.fixture
def rect_aoi(make_aoi):
    def _rect(width_m, height_m, lat0=0.0, lng0=0.0):
        return make_aoi([(0, 0), (width_m, 0), (width_m, height_m), (0, height_m)], lat0=lat0, lng0=lng0)
    return _rect


@pytest.fixture
def phantom():
    return DRONE_PRESETS['Phantom 4 Pro']


@pytest.fixture
def survey_parameters():
    return MissionParameters(
        gsd_cm=3.0,
        front_overlap_pct=70,
        side_overlap_pct=70,
        drone_speed_ms=8.0,
        max_battery_time_min=18.0,
    )
