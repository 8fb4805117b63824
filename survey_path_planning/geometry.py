import math
from dataclasses import dataclass
from typing import NamedTuple

import numpy as np

EARTH_RADIUS_M = 6371000.0
METERS_PER_DEGREE = 111000.0
GRAVITY = 9.81

MIN_TURN_RADIUS_M = 5.0
MAX_TURN_RADIUS_M = 50.0
TURN_RADIUS_SAFETY = 1.2

# Cohen-Sutherland region codes
INSIDE = 0
LEFT = 1
RIGHT = 2
BOTTOM = 4
TOP = 8


class Coordinate(NamedTuple):
    """WGS84 position in degrees."""
    lat: float
    lng: float


@dataclass(frozen=True)
class Bounds:
    north: float
    south: float
    east: float
    west: float

    @property
    def center(self):
        return Coordinate((self.north + self.south) / 2, (self.east + self.west) / 2)


def distance(a, b):
    """Great-circle distance in meters (haversine)."""
    d_lat = math.radians(b.lat - a.lat)
    d_lng = math.radians(b.lng - a.lng)
    h = (math.sin(d_lat / 2) ** 2 +
         math.cos(math.radians(a.lat)) * math.cos(math.radians(b.lat)) * math.sin(d_lng / 2) ** 2)
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def haversine_matrix(lats_a, lngs_a, lats_b, lngs_b):
    """
    Pairwise great-circle distances between two point sets.
    Returns an array of shape (len(a), len(b)).
    """
    lat1 = np.radians(np.asarray(lats_a, dtype=float))[:, None]
    lng1 = np.radians(np.asarray(lngs_a, dtype=float))[:, None]
    lat2 = np.radians(np.asarray(lats_b, dtype=float))[None, :]
    lng2 = np.radians(np.asarray(lngs_b, dtype=float))[None, :]
    h = np.sin((lat2 - lat1) / 2) ** 2 + np.cos(lat1) * np.cos(lat2) * np.sin((lng2 - lng1) / 2) ** 2
    h = np.clip(h, 0.0, 1.0)
    return EARTH_RADIUS_M * 2 * np.arctan2(np.sqrt(h), np.sqrt(1 - h))


def bearing(a, b):
    """Initial bearing from a to b in degrees, normalized to [0, 360)."""
    d_lng = math.radians(b.lng - a.lng)
    lat1 = math.radians(a.lat)
    lat2 = math.radians(b.lat)
    y = math.sin(d_lng) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(d_lng)
    return (math.degrees(math.atan2(y, x)) + 360) % 360


def offset(point, bearing_deg, distance_m):
    """Destination point reached from point after distance_m meters on bearing_deg."""
    lat1 = math.radians(point.lat)
    lng1 = math.radians(point.lng)
    brng = math.radians(bearing_deg)
    delta = distance_m / EARTH_RADIUS_M

    lat2 = math.asin(math.sin(lat1) * math.cos(delta) +
                     math.cos(lat1) * math.sin(delta) * math.cos(brng))
    lng2 = lng1 + math.atan2(math.sin(brng) * math.sin(delta) * math.cos(lat1),
                             math.cos(delta) - math.sin(lat1) * math.sin(lat2))
    return Coordinate(math.degrees(lat2), math.degrees(lng2))


def normalize_angle(delta):
    """Wrap an angle difference into [-180, 180]."""
    delta = (delta + 180.0) % 360.0 - 180.0
    if delta == -180.0:
        return 180.0
    return delta


def polygon_area(ring):
    """
    Planar shoelace area of a ring of coordinates, in square meters.
    Only valid for small areas: degrees are scaled by a constant.
    """
    n = len(ring)
    if n < 3:
        return 0.0
    area = 0.0
    for i in range(n):
        j = (i + 1) % n
        area += ring[i].lng * ring[j].lat
        area -= ring[j].lng * ring[i].lat
    return abs(area) * 0.5 * METERS_PER_DEGREE * METERS_PER_DEGREE


def bounds(ring):
    if not ring:
        return Bounds(0.0, 0.0, 0.0, 0.0)
    lats = [p.lat for p in ring]
    lngs = [p.lng for p in ring]
    return Bounds(north=max(lats), south=min(lats), east=max(lngs), west=min(lngs))


def _out_code(x, y, rect):
    code = INSIDE
    if x < rect.west:
        code |= LEFT
    elif x > rect.east:
        code |= RIGHT
    if y < rect.south:
        code |= BOTTOM
    elif y > rect.north:
        code |= TOP
    return code


def clip_segment_to_rect(p0, p1, rect):
    """
    Cohen-Sutherland clipping of the segment p0-p1 against rect (a Bounds).
    Returns the clipped (start, end) pair, or None if the segment misses rect.
    """
    x0, y0 = p0.lng, p0.lat
    x1, y1 = p1.lng, p1.lat
    code0 = _out_code(x0, y0, rect)
    code1 = _out_code(x1, y1, rect)

    while True:
        if not (code0 | code1):
            return Coordinate(y0, x0), Coordinate(y1, x1)
        if code0 & code1:
            return None

        code_out = code0 if code0 else code1
        dx = x1 - x0
        dy = y1 - y0
        if code_out & TOP:
            x = x0 + dx * (rect.north - y0) / dy
            y = rect.north
        elif code_out & BOTTOM:
            x = x0 + dx * (rect.south - y0) / dy
            y = rect.south
        elif code_out & RIGHT:
            y = y0 + dy * (rect.east - x0) / dx
            x = rect.east
        else:
            y = y0 + dy * (rect.west - x0) / dx
            x = rect.west

        if code_out == code0:
            x0, y0 = x, y
            code0 = _out_code(x0, y0, rect)
        else:
            x1, y1 = x, y
            code1 = _out_code(x1, y1, rect)


def _points_in_ring(lats, lngs, ring):
    inside = np.zeros(lats.shape, dtype=bool)
    n = len(ring)
    j = n - 1
    for i in range(n):
        yi, xi = ring[i].lat, ring[i].lng
        yj, xj = ring[j].lat, ring[j].lng
        # horizontal edges never straddle the ray, epsilon only avoids 0/0
        dy = (yj - yi) or 1e-12
        crosses = ((yi > lats) != (yj > lats)) & (lngs < (xj - xi) * (lats - yi) / dy + xi)
        inside ^= crosses
        j = i
    return inside


def points_in_polygon(lats, lngs, rings):
    """
    Vectorized ray casting against an outer ring and optional holes.
    A point inside any hole counts as outside.
    """
    lats = np.asarray(lats, dtype=float)
    lngs = np.asarray(lngs, dtype=float)
    if not rings:
        return np.zeros(lats.shape, dtype=bool)
    inside = _points_in_ring(lats, lngs, rings[0])
    for hole in rings[1:]:
        inside &= ~_points_in_ring(lats, lngs, hole)
    return inside


def point_in_polygon(point, rings):
    return bool(points_in_polygon([point.lat], [point.lng], rings)[0])


def turn_radius(speed, bank_angle=25.0):
    """
    Coordinated turn radius v^2 / (g tan(bank)) with a 20% margin,
    clamped to [5, 50] m.
    """
    radius = speed ** 2 / (GRAVITY * math.tan(math.radians(bank_angle)))
    radius *= TURN_RADIUS_SAFETY
    return min(MAX_TURN_RADIUS_M, max(MIN_TURN_RADIUS_M, radius))


def line_length(coords):
    total = 0.0
    for i in range(1, len(coords)):
        total += distance(coords[i - 1], coords[i])
    return total


def densify(start, end, spacing):
    """Evenly spaced waypoints from start to end, at most `spacing` meters apart."""
    length = distance(start, end)
    n = int(math.ceil(length / spacing)) + 1 if spacing > 0 else 2
    n = max(n, 2)
    ratios = np.linspace(0.0, 1.0, n)
    lats = start.lat + (end.lat - start.lat) * ratios
    lngs = start.lng + (end.lng - start.lng) * ratios
    return lats, lngs


def to_local(point, origin):
    """Equirectangular (east, north) meters of point relative to origin."""
    x = math.radians(point.lng - origin.lng) * EARTH_RADIUS_M * math.cos(math.radians(origin.lat))
    y = math.radians(point.lat - origin.lat) * EARTH_RADIUS_M
    return x, y


def axis_coordinate(point, origin, bearing_deg):
    """Signed distance (m) of point from origin measured along bearing_deg."""
    x, y = to_local(point, origin)
    b = math.radians(bearing_deg)
    return x * math.sin(b) + y * math.cos(b)


def axis_extent(ring, origin, bearing_deg):
    """(min, max) of the ring projected on the axis pointing at bearing_deg."""
    values = [axis_coordinate(p, origin, bearing_deg) for p in ring]
    return min(values), max(values)
