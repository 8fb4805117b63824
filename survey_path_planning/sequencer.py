import math
from dataclasses import replace

import numpy as np

from .config import DEFAULT_SETTINGS
from .diagnostics import ensure
from .geometry import (bearing, distance, haversine_matrix, normalize_angle, offset,
                       points_in_polygon, turn_radius)
from .models import Coordinate, PathSegment, SegmentKind

DEFAULT_LINE_SPACING_M = 10.0
CONNECTOR_GAP_FACTOR = 3.0
CURVE_AMPLITUDE = 0.3
CURVE_SAMPLES = (0.25, 0.5, 0.75)


def traversal_coords(line, reverse):
    return line.coordinates[::-1] if reverse else line.coordinates


def exit_index(i, reverse):
    """Row of the endpoint table where line i ends when flown in this direction."""
    return 2 * i if reverse else 2 * i + 1


def entry_index(i, reverse):
    return 2 * i + 1 if reverse else 2 * i


def endpoint_distances(lines):
    """
    Distance table between all line endpoints. Endpoint 2k is the first
    coordinate of line k, endpoint 2k+1 its last coordinate.
    """
    lats = []
    lngs = []
    for fl in lines:
        lats.extend((fl.start.lat, fl.end.lat))
        lngs.extend((fl.start.lng, fl.end.lng))
    return haversine_matrix(lats, lngs, lats, lngs)


def nearest_neighbor_sequence(dist, n, start, start_reversed):
    """
    Greedy chain of all n lines from (start, start_reversed). At each step
    the unvisited line/direction whose entry is closest to the current exit
    is taken; ties go to the lower line index, forward before reversed.
    Returns (sequence, total transition length).
    """
    visited = np.zeros(n, dtype=bool)
    visited[start] = True
    sequence = [(start, start_reversed)]
    total = 0.0
    current = exit_index(start, start_reversed)
    for _ in range(n - 1):
        row = dist[current].reshape(n, 2).copy()
        row[visited] = np.inf
        flat = int(np.argmin(row))
        j, rev = divmod(flat, 2)
        total += row[j, rev]
        visited[j] = True
        sequence.append((j, bool(rev)))
        current = exit_index(j, bool(rev))
    return sequence, total


class PathSequencer:
    """
    Orders the flight lines of a mission and connects them into one path,
    with turn geometry that respects the turn radius and stays in the AOI.
    """

    def __init__(self, aoi, speed, settings=DEFAULT_SETTINGS, turn_radius_m=None, diagnostics=None):
        self.aoi = aoi
        self.speed = speed
        self.settings = settings
        self.diagnostics = ensure(diagnostics)
        if turn_radius_m is not None:
            self.turn_radius = turn_radius_m
        else:
            self.turn_radius = turn_radius(speed, settings.bank_angle_deg)

    # ---- ordering ----

    def order(self, lines, start=None):
        """
        Nearest-neighbour order of lines as a list of (line index, reversed).
        With start=None every line and direction is tried as the start and the
        shortest chain wins (only up to sequence_start_search_limit lines).
        """
        n = len(lines)
        if n == 0:
            return []
        if n == 1:
            return [start] if start is not None else [(0, False)]
        dist = endpoint_distances(lines)
        if start is not None:
            return nearest_neighbor_sequence(dist, n, start[0], start[1])[0]

        if n > self.settings.sequence_start_search_limit:
            # westmost line first, the northern one on ties
            first = min(range(n), key=lambda k: (lines[k].start.lng, -lines[k].start.lat, k))
            return nearest_neighbor_sequence(dist, n, first, False)[0]

        best = None
        best_total = math.inf
        for i in range(n):
            for rev in (False, True):
                seq, total = nearest_neighbor_sequence(dist, n, i, rev)
                if total < best_total:
                    best_total = total
                    best = seq
        return best

    def orientations(self, lines):
        """
        The four start configurations of a mission:
        forward, reversed, forward with the first line flipped and reversed
        with the first line flipped.
        """
        base = self.order(lines)
        if not base:
            return [[], [], [], []]
        backwards = [(i, not rev) for i, rev in reversed(base)]
        first, first_rev = base[0]
        last, last_rev = base[-1]
        forward_flipped = self.order(lines, start=(first, not first_rev))
        backwards_flipped = self.order(lines, start=(last, last_rev))
        return [base, backwards, forward_flipped, backwards_flipped]

    @staticmethod
    def endpoints(lines, sequence):
        """(start point, end point) of a sequence."""
        i, rev = sequence[0]
        j, rev_last = sequence[-1]
        start = traversal_coords(lines[i], rev)[0]
        end = traversal_coords(lines[j], rev_last)[-1]
        return start, end

    # ---- path synthesis ----

    def connector_gap_limit(self, ordered_lines):
        samples = [distance(a.coordinates[0], b.coordinates[0])
                   for a, b in zip(ordered_lines, ordered_lines[1:])]
        avg = sum(samples) / len(samples) if samples else DEFAULT_LINE_SPACING_M
        return max(CONNECTOR_GAP_FACTOR * avg, self.settings.min_connector_gap_m)

    def build_path(self, lines, sequence, mission_index):
        """Line and connector segments for lines flown in `sequence`."""
        if not sequence:
            return ()
        ordered = [lines[i] for i, _ in sequence]
        max_gap = self.connector_gap_limit(ordered)

        segments = []
        for k, (i, rev) in enumerate(sequence):
            line = lines[i]
            coords = traversal_coords(line, rev)
            heading = bearing(coords[0], coords[-1])
            segments.append(PathSegment(kind=SegmentKind.LINE, coordinates=tuple(coords),
                                        mission_index=mission_index, segment_index=len(segments),
                                        line_id=line.id, reversed=rev, heading=heading))
            if k == len(sequence) - 1:
                break

            j, next_rev = sequence[k + 1]
            next_coords = traversal_coords(lines[j], next_rev)
            current_end = coords[-1]
            next_start = next_coords[0]
            if distance(current_end, next_start) > max_gap:
                # disjoint sub-path, no diagonal across the field
                continue
            next_heading = bearing(next_coords[0], next_coords[-1])
            turn = self.synthesize_turn(current_end, next_start, heading, next_heading)
            segments.append(PathSegment(kind=SegmentKind.CONNECTOR, coordinates=tuple(turn),
                                        mission_index=mission_index, segment_index=len(segments)))
        return tuple(segments)

    def synthesize_turn(self, end, next_start, heading_out, heading_in):
        """Waypoints from the end of one line to the start of the next."""
        delta = normalize_angle(heading_in - heading_out)
        if abs(delta) < self.settings.straight_turn_deg:
            return [end, next_start]
        if abs(delta) > self.settings.uturn_deg:
            return self._u_turn(end, next_start, heading_out)
        return self._curve(end, next_start, delta)

    def _inside(self, points):
        if not points:
            return np.zeros(0, dtype=bool)
        return points_in_polygon([p.lat for p in points], [p.lng for p in points], self.aoi.rings)

    def _u_turn(self, end, next_start, heading_out):
        r = self.turn_radius
        right_center = offset(end, heading_out + 90, r)
        left_center = offset(end, heading_out - 90, r)
        right_ok, left_ok = self._inside([right_center, left_center])

        if right_ok != left_ok:
            turn_right = bool(right_ok)
        else:
            d_right = distance(offset(end, heading_out + 90, 2 * r), next_start)
            d_left = distance(offset(end, heading_out - 90, 2 * r), next_start)
            turn_right = d_right <= d_left

        if turn_right:
            center, start_bearing, sign = right_center, heading_out - 90, 1
        else:
            center, start_bearing, sign = left_center, heading_out + 90, -1

        steps = self.settings.arc_steps
        arc = [offset(center, (start_bearing + sign * k * 180.0 / steps) % 360, r)
               for k in range(1, steps)]
        inside = self._inside(arc)
        kept = [p for p, ok in zip(arc, inside) if ok]
        return [end] + kept + [next_start]

    def _curve(self, end, next_start, delta):
        chord = distance(end, next_start)
        chord_bearing = bearing(end, next_start)
        side = chord_bearing + 90 if delta > 0 else chord_bearing - 90
        amplitude = min(CURVE_AMPLITUDE * self.turn_radius, 0.25 * chord)

        linear = [Coordinate(end.lat + (next_start.lat - end.lat) * t,
                             end.lng + (next_start.lng - end.lng) * t) for t in CURVE_SAMPLES]
        curved = [offset(p, side % 360, amplitude * math.sin(math.pi * t))
                  for p, t in zip(linear, CURVE_SAMPLES)]
        inside = self._inside(curved)
        points = [c if ok else p for c, p, ok in zip(curved, linear, inside)]
        return [end] + points + [next_start]

    # ---- missions ----

    def sequence(self, mission, sequence=None):
        """Mission with its flyable path built from `sequence` (default: best order)."""
        lines = mission.flight_lines
        if sequence is None:
            sequence = self.order(lines)
        segments = self.build_path(lines, sequence, mission.index)
        if not segments:
            return replace(mission, path_segments=(), start_point=None, end_point=None)
        return replace(mission, path_segments=segments,
                       start_point=segments[0].coordinates[0],
                       end_point=segments[-1].coordinates[-1])
