import math

from shapely.geometry import Polygon as ShapelyPolygon
from shapely.ops import unary_union

from .config import DEFAULT_SETTINGS
from .coverage import generate_flight_lines
from .diagnostics import ensure
from .geometry import axis_extent, line_length, offset
from .models import AreaOfInterest, Coordinate, FlightLine, Mission, line_id

# Width left over after the last strip that is ignored (m)
MIN_REMAINING_WIDTH_M = 0.1
# Strip rectangles overhang the AOI along the heading by this much (m)
STRIP_OVERHANG_M = 1.0


class TimeModel:
    """Flight time and photo count estimates shared by strips and missions."""

    def __init__(self, speed, photo_interval, settings=DEFAULT_SETTINGS):
        self.speed = speed
        self.photo_interval = photo_interval
        self.settings = settings

    def photos(self, length_m):
        return int(math.ceil(length_m / self.photo_interval)) if length_m > 0 else 0

    def line_time(self, length_m):
        """Minutes to fly one line: cruise + photo triggers + one turn."""
        flight = length_m / self.speed / 60
        photo = self.photos(length_m) * self.settings.photo_trigger_s / 60
        turn = self.settings.turn_penalty_s / 60
        return flight + photo + turn

    def lines_time(self, lines):
        return sum(self.line_time(fl.length_m) for fl in lines)

    def lines_photos(self, lines):
        return sum(self.photos(fl.length_m) for fl in lines)

    def strip_time(self, width, line_spacing, along_length):
        num_lines = max(1, int(math.ceil(width / line_spacing)) + 1)
        total_length = num_lines * along_length
        flight = total_length / self.speed / 60
        photo = self.photos(total_length) * self.settings.photo_trigger_s / 60
        turn = num_lines * self.settings.turn_penalty_s / 60
        return flight + photo + turn


def find_strip_width(max_width, line_spacing, along_length, budget, time_model, iterations=20):
    """
    Widest strip (m) in [line_spacing, max_width] whose estimated time fits the budget.
    Estimated time grows with width, so a bounded binary search is enough.
    """
    if time_model.strip_time(max_width, line_spacing, along_length) <= budget:
        return max_width
    lo = max(line_spacing, min(line_spacing * 1.5, max_width * 0.05))
    hi = max(lo, max_width)
    best = lo
    for _ in range(iterations):
        mid = (lo + hi) / 2
        if time_model.strip_time(mid, line_spacing, along_length) <= budget:
            best = mid
            lo = mid
        else:
            hi = mid
    return min(best, max_width)


def strip_ring(center, heading, p_start, p_end, a_min, a_max):
    """Heading aligned rectangle between perpendicular offsets p_start and p_end."""
    perp = (heading + 90) % 360
    a0 = a_min - STRIP_OVERHANG_M
    a1 = a_max + STRIP_OVERHANG_M
    corners = [(p_start, a0), (p_end, a0), (p_end, a1), (p_start, a1)]
    return [offset(offset(center, perp, p), heading, a) for p, a in corners]


def merged_area(rings):
    """Approximate rectangle covering several mission area rings."""
    shapes = [ShapelyPolygon([(p.lng, p.lat) for p in r]) for r in rings if len(r) >= 3]
    if not shapes:
        return ()
    rect = unary_union(shapes).minimum_rotated_rectangle
    if rect.geom_type != 'Polygon':
        rect = unary_union(shapes).envelope
    if rect.geom_type != 'Polygon':
        return tuple(rings[0])
    return tuple(Coordinate(y, x) for x, y in rect.exterior.coords)


def build_mission(lines, index, area_ring, time_model):
    """Mission from flight lines; lines are renumbered in their current order."""
    numbered = tuple(
        FlightLine(id=line_id(index, k), coordinates=fl.coordinates, heading=fl.heading,
                   length_m=fl.length_m, mission_index=index, line_index=k)
        for k, fl in enumerate(lines))
    return Mission(
        id=f"mission-{index}",
        index=index,
        flight_lines=numbered,
        estimated_time_min=time_model.lines_time(numbered),
        estimated_photos=time_model.lines_photos(numbered),
        area_polygon=tuple(area_ring),
    )


def pack_lines_by_battery(lines, budget, time_model):
    """Greedy split of lines (in generation order) into groups that fit the budget."""
    groups = []
    current = []
    current_time = 0.0
    for fl in lines:
        t = time_model.line_time(fl.length_m)
        if current and current_time + t > budget:
            groups.append(current)
            current = []
            current_time = 0.0
        current.append(fl)
        current_time += t
    if current:
        groups.append(current)
    return groups


def merge_missions(missions, budget, time_model):
    """Merge adjacent missions while their combined time still fits one battery."""
    if not missions:
        return []
    result = []
    acc = missions[0]
    for m in missions[1:]:
        if acc.estimated_time_min + m.estimated_time_min <= budget:
            acc = build_mission(acc.flight_lines + m.flight_lines, acc.index,
                                merged_area([acc.area_polygon, m.area_polygon]), time_model)
        else:
            result.append(acc)
            acc = m
    result.append(acc)
    return [build_mission(m.flight_lines, i, m.area_polygon, time_model) for i, m in enumerate(result)]


def _to_flight_lines(runs, heading):
    return [FlightLine(id="", coordinates=run, heading=heading, length_m=line_length(run),
                       mission_index=-1, line_index=k)
            for k, run in enumerate(runs)]


def partition_area(aoi, heading, line_spacing, max_battery_time, speed, photo_interval,
                   settings=DEFAULT_SETTINGS, diagnostics=None):
    """
    Slice the AOI into heading aligned strips that each fit one battery.

    Returns missions in strip order (near edge to far edge). Path segments
    are not built here.
    """
    diagnostics = ensure(diagnostics)
    time_model = TimeModel(speed, photo_interval, settings)
    budget = max_battery_time * settings.battery_reserve

    center = aoi.bounds.center
    perp = (heading + 90) % 360
    p_min, p_max = axis_extent(aoi.outer, center, perp)
    a_min, a_max = axis_extent(aoi.outer, center, heading)
    perpendicular_width = p_max - p_min
    along_length = a_max - a_min

    missions = []
    remaining = perpendicular_width
    position = p_min
    strips = 0
    while remaining > MIN_REMAINING_WIDTH_M:
        # the same cap bounds missions, since one strip can pack into several
        if strips >= settings.max_strips or len(missions) >= settings.max_strips:
            diagnostics.warning(f"Strip limit of {settings.max_strips} reached, remaining area not covered",
                                heading=heading, remaining_width=round(remaining, 1))
            break
        width = find_strip_width(remaining, line_spacing, along_length, budget, time_model,
                                 settings.width_search_iterations)
        is_last = remaining - width <= MIN_REMAINING_WIDTH_M
        ring = strip_ring(center, heading, position, position + width, a_min, a_max)
        strip = AreaOfInterest.from_rings([ring])

        runs = generate_flight_lines(strip, heading, line_spacing, clip_to=aoi,
                                     trailing_edge=is_last, settings=settings,
                                     diagnostics=diagnostics)
        if not runs:
            diagnostics.warning("Strip produced no flight lines, skipping",
                                heading=heading, strip=strips)
        else:
            lines = _to_flight_lines(runs, heading)
            groups = pack_lines_by_battery(lines, budget, time_model)
            if len(groups) > 1:
                diagnostics.info("Strip exceeds one battery, splitting by lines",
                                 strip=strips, missions=len(groups))
            for group in groups:
                missions.append(build_mission(group, len(missions), ring, time_model))

        remaining -= width
        position += width
        strips += 1

    missions = merge_missions(missions, budget, time_model)

    if not missions:
        diagnostics.warning("No missions from strip partitioning, trying a single mission over the AOI",
                            heading=heading)
        runs = generate_flight_lines(aoi, heading, line_spacing, settings=settings,
                                     diagnostics=diagnostics)
        if runs:
            missions = [build_mission(_to_flight_lines(runs, heading), 0, aoi.outer, time_model)]
        else:
            diagnostics.error("Unable to generate any flight line for heading", heading=heading)

    for m in missions:
        if m.estimated_time_min > budget:
            # only a single line longer than one battery gets here
            diagnostics.warning("Mission exceeds battery budget", mission=m.id,
                                lines=len(m.flight_lines), time_min=round(m.estimated_time_min, 1))
    return missions
