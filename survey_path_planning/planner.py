from .config import DEFAULT_SETTINGS, line_spacing_for, photo_interval_for
from .diagnostics import WARNING, ensure
from .models import FlightPlan
from .partition import partition_area
from .sequencer import PathSequencer
from .tsp_solver import chain_missions

DEFAULT_HEADINGS = (0.0, 90.0)
MIN_PRACTICAL_SPACING_M = 0.5
MAX_REASONABLE_TIME_MIN = 7 * 24 * 60
MAX_REASONABLE_PHOTOS = 100000


class SurveyPlanner:
    """
    Builds a battery bounded flight plan for an area of interest.

    Every candidate heading runs partitioning, sequencing and chaining, and
    the plan with the lowest total time is returned.
    """

    def __init__(self, aoi, drone, parameters, settings=None, diagnostics=None):
        self.aoi = aoi
        self.drone = drone
        self.parameters = parameters
        self.settings = settings or DEFAULT_SETTINGS
        self.diagnostics = ensure(diagnostics)
        self.line_spacing = None
        self.photo_interval = None

    def candidate_headings(self):
        if self.parameters.heading_deg is not None:
            return (self.parameters.heading_deg % 360,)
        return DEFAULT_HEADINGS

    def _prepare(self):
        # GSD first: it must fail before anything else is looked at
        self.parameters.validate_gsd()
        self.parameters.validate()
        self.drone.validate()
        self.settings.validate()

        params = self.parameters
        self.line_spacing = line_spacing_for(params.gsd_cm, self.drone.image_width_px,
                                             params.side_overlap_pct)
        self.photo_interval = photo_interval_for(params.gsd_cm, self.drone.image_height_px,
                                                 params.front_overlap_pct)

        if self.line_spacing < MIN_PRACTICAL_SPACING_M:
            self.diagnostics.warning(
                f"Very small line spacing ({self.line_spacing:.2f}m) detected. This may result in an "
                "impractical number of flight lines. Consider increasing GSD or reducing overlap.")
        if self.photo_interval < MIN_PRACTICAL_SPACING_M:
            self.diagnostics.warning(
                f"Very small photo interval ({self.photo_interval:.2f}m) detected. This may result in "
                "excessive photo count. Consider increasing GSD or reducing overlap.")
        min_interval_distance = params.drone_speed_ms * self.drone.min_photo_interval_s
        if self.photo_interval < min_interval_distance:
            self.diagnostics.warning(
                f"Photo interval ({self.photo_interval:.2f}m) is shorter than the distance flown "
                f"between two shots ({min_interval_distance:.2f}m). Reduce speed or front overlap.")

        self.diagnostics.info("Flight plan generation parameters", gsd_cm=params.gsd_cm,
                              line_spacing_m=round(self.line_spacing, 2),
                              photo_interval_m=round(self.photo_interval, 2))

    def evaluate_heading(self, heading):
        """
        Partition, sequence and chain the AOI for one heading.
        Returns (missions, total time in minutes, transit distance in meters).
        """
        if self.line_spacing is None:
            self._prepare()
        params = self.parameters
        sequencer = PathSequencer(self.aoi, params.drone_speed_ms, self.settings,
                                  turn_radius_m=params.turn_radius_m,
                                  diagnostics=self.diagnostics)

        missions = partition_area(self.aoi, heading, self.line_spacing, params.max_battery_time_min,
                                  params.drone_speed_ms, self.photo_interval, self.settings,
                                  self.diagnostics)
        missions, transit = chain_missions(missions, sequencer, self.diagnostics)

        total_time = sum(m.estimated_time_min for m in missions)
        self.diagnostics.info("Evaluated heading", heading=heading, missions=len(missions),
                              total_time_min=round(total_time, 2))
        return missions, total_time, transit

    def plan(self):
        first_record = len(self.diagnostics.records)
        self._prepare()

        best = None
        for heading in self.candidate_headings():
            missions, total_time, transit = self.evaluate_heading(heading)
            if not missions:
                self.diagnostics.warning("Heading produced no missions", heading=heading)
                continue
            if best is None or total_time < best[2]:
                best = (heading, missions, total_time, transit)

        if best is None:
            self.diagnostics.error("No flight plan could be generated for any heading",
                                   headings=list(self.candidate_headings()))
            heading, missions, total_time, transit = self.candidate_headings()[0], [], 0.0, 0.0
        else:
            heading, missions, total_time, transit = best

        total_photos = sum(m.estimated_photos for m in missions)
        self._check_totals(total_time, total_photos)

        warnings = tuple(msg for level, msg, _ in self.diagnostics.records[first_record:]
                         if level == WARNING)
        return FlightPlan(
            missions=tuple(missions),
            total_time_min=total_time,
            total_photos=total_photos,
            total_area_m2=self.aoi.area_m2,
            battery_count=len(missions),
            heading=heading,
            line_spacing_m=self.line_spacing,
            photo_interval_m=self.photo_interval,
            transit_distance_m=transit,
            warnings=warnings,
        )

    def _check_totals(self, total_time, total_photos):
        if total_time == 0 or total_photos == 0:
            self.diagnostics.warning(
                "Zero flight plan detected. Area may be too narrow for current line spacing. "
                "Try reducing GSD or increasing overlaps.")
        if total_time > MAX_REASONABLE_TIME_MIN:
            self.diagnostics.warning(
                f"Total flight time is extremely long ({total_time / 60:.1f} hours). "
                "Consider increasing GSD or reducing overlap.")
        if total_photos > MAX_REASONABLE_PHOTOS:
            self.diagnostics.warning(
                f"Total photo count is extremely high ({total_photos:,}). "
                "Consider increasing GSD or reducing overlap.")


def generate_flight_plan(aoi, drone, parameters, settings=None, diagnostics=None):
    return SurveyPlanner(aoi, drone, parameters, settings, diagnostics).plan()
