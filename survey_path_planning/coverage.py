import math
import numpy as np

from .config import DEFAULT_SETTINGS
from .diagnostics import ensure
from .geometry import (Coordinate, axis_coordinate, axis_extent, clip_segment_to_rect, densify,
                       distance, offset, points_in_polygon)

MIN_LINE_SPACING_M = 1.0
LINE_LENGTH_BUFFER = 0.2
# Edge lines and line ends are pulled this far inside so the ray casting test keeps them
EDGE_INSET_M = 0.25


def coverage_centroid(area, clip_to=None):
    """Centroid of the surveyable region (area, intersected with clip_to if given)."""
    region = area.to_shapely()
    if clip_to is not None:
        clipped = region.intersection(clip_to.to_shapely())
        if not clipped.is_empty:
            region = clipped
    c = region.centroid
    return Coordinate(c.y, c.x)


def line_offsets(width, p_min, line_spacing, settings=DEFAULT_SETTINGS, diagnostics=None):
    """
    Perpendicular offsets (m, relative to the area center) of the flight lines
    spanning [p_min, p_min + width], with the spacing actually applied.
    The offsets are None when a single centerline should be flown instead.
    """
    diagnostics = ensure(diagnostics)

    # Tiny strips must not be over-sampled: at most ~50 lines across the width
    min_spacing = max(MIN_LINE_SPACING_M, width / settings.spacing_floor_divisor)
    spacing = max(line_spacing, min_spacing)
    if spacing >= width:
        return None, spacing

    num_lines = int(math.ceil(width / spacing)) + 1
    if num_lines > settings.max_lines:
        diagnostics.warning(
            f"Capping flight lines to {settings.max_lines} (required: {num_lines}). "
            "Consider increasing GSD or reducing overlap.")
        num_lines = settings.max_lines

    inset = min(EDGE_INSET_M, width * 0.01)
    effective_spacing = (width - 2 * inset) / (num_lines - 1)
    return [p_min + inset + i * effective_spacing for i in range(num_lines)], spacing


def interior_runs(lats, lngs, inside):
    """Split waypoints into maximal runs of consecutive interior points (length >= 2)."""
    runs = []
    if not inside.any():
        return runs
    padded = np.concatenate(([False], inside, [False])).astype(np.int8)
    edges = np.diff(padded)
    starts = np.flatnonzero(edges == 1)
    stops = np.flatnonzero(edges == -1)
    for s, e in zip(starts, stops):
        if e - s > 1:
            runs.append(tuple(Coordinate(float(lats[k]), float(lngs[k])) for k in range(s, e)))
    return runs


def generate_flight_lines(area, heading, line_spacing, clip_to=None, trailing_edge=True,
                          settings=DEFAULT_SETTINGS, diagnostics=None):
    """
    Generate parallel flight lines covering `area` along `heading`.

    Each raw line is clipped to the area bounds, densified into waypoints and
    split into the runs of waypoints that lie inside the area (and inside
    clip_to when given). Concavities and holes therefore produce several
    shorter lines instead of a line crossing the gap.

    Returns a list of coordinate tuples, one per flight line.
    """
    diagnostics = ensure(diagnostics)
    rect = area.bounds
    center = rect.center
    perp_heading = (heading + 90) % 360

    # 1. Extents perpendicular to and along the flight direction
    p_min, p_max = axis_extent(area.outer, center, perp_heading)
    a_min, a_max = axis_extent(area.outer, center, heading)
    coverage_width = p_max - p_min
    along_length = a_max - a_min

    offsets, spacing = line_offsets(coverage_width, p_min, line_spacing, settings, diagnostics)
    if offsets is None:
        centroid = coverage_centroid(area, clip_to)
        offsets = [axis_coordinate(centroid, center, perp_heading)]
        diagnostics.info("Line spacing covers the whole width, flying a single centerline",
                         width=round(coverage_width, 2), spacing=round(line_spacing, 2))
    elif not trailing_edge:
        offsets = offsets[:-1]

    # 2. Waypoint density along each line
    waypoint_spacing = min(settings.waypoint_spacing_m, 1.2 * spacing)
    half_length = along_length * (1 + LINE_LENGTH_BUFFER) / 2
    along_mid = (a_min + a_max) / 2

    rings = area.rings
    clip_rings = clip_to.rings if clip_to is not None else None

    flight_lines = []
    for p in offsets:
        mid = offset(center, perp_heading, p)
        raw_start = offset(mid, heading, along_mid - half_length)
        raw_end = offset(mid, heading, along_mid + half_length)

        clipped = clip_segment_to_rect(raw_start, raw_end, rect)
        if clipped is None:
            continue
        clipped_length = distance(clipped[0], clipped[1])
        if clipped_length <= 0:
            continue

        # Both clipped ends sit on the bounds, where ray casting drops one of them
        end_inset = min(EDGE_INSET_M, clipped_length * 0.01)
        first = offset(clipped[0], heading, end_inset)
        last = offset(clipped[1], (heading + 180) % 360, end_inset)
        lats, lngs = densify(first, last, waypoint_spacing)

        # 3. Strict interior segmentation
        inside = points_in_polygon(lats, lngs, rings)
        if clip_rings is not None:
            inside &= points_in_polygon(lats, lngs, clip_rings)
        flight_lines.extend(interior_runs(lats, lngs, inside))

    return flight_lines
