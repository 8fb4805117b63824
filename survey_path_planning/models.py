from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Tuple

from shapely.geometry import Polygon as ShapelyPolygon
from shapely.validation import explain_validity

from .exceptions import InvalidPolygonError
from .geometry import Bounds, Coordinate, point_in_polygon, polygon_area
from .geometry import bounds as ring_bounds

SQUARE_METERS_PER_ACRE = 4046.86


def _clean_ring(ring):
    coords = [Coordinate(float(p[0]), float(p[1])) for p in ring]
    if len(coords) > 1 and coords[0] == coords[-1]:
        coords = coords[:-1]
    return tuple(coords)


@dataclass(frozen=True)
class AreaOfInterest:
    """
    Survey polygon: the first ring is the outer boundary, any further rings
    are holes. Rings are stored without a repeated closing vertex.
    """
    rings: Tuple[Tuple[Coordinate, ...], ...]
    area_m2: float
    bounds: Bounds

    @classmethod
    def from_rings(cls, rings, diagnostics=None):
        if not rings:
            raise InvalidPolygonError("Area of interest has no rings")
        cleaned = tuple(_clean_ring(r) for r in rings)
        outer = cleaned[0]
        if len(set(outer)) < 3:
            raise InvalidPolygonError(
                f"Outer ring needs at least 3 distinct vertices, got {len(set(outer))}")
        holes = tuple(h for h in cleaned[1:] if len(set(h)) >= 3)

        area = polygon_area(outer) - sum(polygon_area(h) for h in holes)
        aoi = cls(rings=(outer,) + holes, area_m2=max(area, 0.0), bounds=ring_bounds(outer))

        if diagnostics is not None:
            shape = aoi.to_shapely()
            if not shape.is_valid:
                diagnostics.warning("Area of interest polygon is not simple",
                                    reason=explain_validity(shape))
        return aoi

    @property
    def outer(self):
        return self.rings[0]

    @property
    def holes(self):
        return self.rings[1:]

    @property
    def area_acres(self):
        return self.area_m2 / SQUARE_METERS_PER_ACRE

    def contains(self, point):
        return point_in_polygon(point, self.rings)

    def to_shapely(self):
        # shapely works in (x, y) = (lng, lat)
        return ShapelyPolygon([(p.lng, p.lat) for p in self.outer],
                              [[(p.lng, p.lat) for p in h] for h in self.holes])


@dataclass(frozen=True)
class FlightLine:
    id: str
    coordinates: Tuple[Coordinate, ...]
    heading: float
    length_m: float
    mission_index: int
    line_index: int

    @property
    def start(self):
        return self.coordinates[0]

    @property
    def end(self):
        return self.coordinates[-1]


class SegmentKind(str, Enum):
    LINE = 'line'
    CONNECTOR = 'connector'


@dataclass(frozen=True)
class PathSegment:
    kind: SegmentKind
    coordinates: Tuple[Coordinate, ...]
    mission_index: int
    segment_index: int
    line_id: Optional[str] = None
    reversed: bool = False
    heading: Optional[float] = None


def line_id(mission_index, line_index):
    return f"m{mission_index}-line-{line_index}"


@dataclass(frozen=True)
class Mission:
    id: str
    index: int
    flight_lines: Tuple[FlightLine, ...]
    estimated_time_min: float
    estimated_photos: int
    area_polygon: Tuple[Coordinate, ...] = ()
    path_segments: Tuple[PathSegment, ...] = ()
    start_point: Optional[Coordinate] = None
    end_point: Optional[Coordinate] = None

    def path_coordinates(self):
        """The full flyable path, without duplicated joints between segments."""
        coords = []
        for seg in self.path_segments:
            for p in seg.coordinates:
                if not coords or coords[-1] != p:
                    coords.append(p)
        return coords

    def line_headings(self):
        return [seg.heading for seg in self.path_segments if seg.kind == SegmentKind.LINE]

    def renumbered(self, index):
        """Copy of this mission moved to position `index` of a plan."""
        ids = {}
        lines = []
        for fl in self.flight_lines:
            new_id = line_id(index, fl.line_index)
            ids[fl.id] = new_id
            lines.append(replace(fl, id=new_id, mission_index=index))
        segments = tuple(
            replace(seg, mission_index=index, line_id=ids.get(seg.line_id, seg.line_id))
            for seg in self.path_segments)
        return replace(self, id=f"mission-{index}", index=index,
                       flight_lines=tuple(lines), path_segments=segments)


@dataclass(frozen=True)
class FlightPlan:
    missions: Tuple[Mission, ...]
    total_time_min: float
    total_photos: int
    total_area_m2: float
    battery_count: int
    heading: float
    line_spacing_m: float = 0.0
    photo_interval_m: float = 0.0
    transit_distance_m: float = 0.0
    warnings: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def total_area_acres(self):
        return self.total_area_m2 / SQUARE_METERS_PER_ACRE
