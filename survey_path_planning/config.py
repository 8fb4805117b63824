from dataclasses import dataclass
from typing import Optional

from .exceptions import InvalidParameterError

MIN_GSD_CM = 0.5
MAX_GSD_CM = 50.0


@dataclass(frozen=True)
class DroneSpecs:
    """Camera and airframe description. Units are in the field names."""
    sensor_width_mm: float
    sensor_height_mm: float
    focal_length_mm: float
    image_width_px: int
    image_height_px: int
    min_photo_interval_s: float = 2.0
    usable_battery_time_min: float = 20.0

    def validate(self):
        for name in ("sensor_width_mm", "sensor_height_mm", "focal_length_mm",
                     "image_width_px", "image_height_px"):
            if getattr(self, name) <= 0:
                raise InvalidParameterError(f"{name} must be positive, got {getattr(self, name)}")
        if self.min_photo_interval_s < 0:
            raise InvalidParameterError("min_photo_interval_s cannot be negative")


@dataclass(frozen=True)
class MissionParameters:
    gsd_cm: float
    front_overlap_pct: float
    side_overlap_pct: float
    drone_speed_ms: float
    max_battery_time_min: float
    heading_deg: Optional[float] = None  # manual heading override
    turn_radius_m: Optional[float] = None  # overrides the bank angle formula

    def validate_gsd(self):
        if self.gsd_cm > MAX_GSD_CM:
            raise InvalidParameterError(
                f"GSD value {self.gsd_cm}cm is too high. Please use a value between "
                f"{MIN_GSD_CM} and {MAX_GSD_CM:g}cm.")
        if self.gsd_cm < MIN_GSD_CM:
            raise InvalidParameterError(
                f"GSD value {self.gsd_cm}cm is too low. Please use a value between "
                f"{MIN_GSD_CM} and {MAX_GSD_CM:g}cm.")

    def validate(self):
        self.validate_gsd()
        for name in ("front_overlap_pct", "side_overlap_pct"):
            value = getattr(self, name)
            if not 0 <= value < 100:
                raise InvalidParameterError(f"{name} must be in [0, 100), got {value}")
        if self.drone_speed_ms <= 0:
            raise InvalidParameterError(f"drone_speed_ms must be positive, got {self.drone_speed_ms}")
        if self.max_battery_time_min <= 0:
            raise InvalidParameterError(
                f"max_battery_time_min must be positive, got {self.max_battery_time_min}")
        if self.turn_radius_m is not None and self.turn_radius_m <= 0:
            raise InvalidParameterError(f"turn_radius_m must be positive, got {self.turn_radius_m}")


@dataclass(frozen=True)
class PlannerSettings:
    """
    Tuning knobs of the planner. The timing model (photo trigger and turn
    penalty) comes from field experience, not from physics.
    """
    photo_trigger_s: float = 2.0
    turn_penalty_s: float = 30.0
    battery_reserve: float = 0.9
    max_lines: int = 1000
    max_strips: int = 100
    spacing_floor_divisor: float = 50.0
    width_search_iterations: int = 20
    waypoint_spacing_m: float = 5.0
    bank_angle_deg: float = 25.0
    straight_turn_deg: float = 30.0
    uturn_deg: float = 150.0
    min_connector_gap_m: float = 50.0
    arc_steps: int = 12
    sequence_start_search_limit: int = 150

    def validate(self):
        if not 0 < self.battery_reserve <= 1:
            raise InvalidParameterError(f"battery_reserve must be in (0, 1], got {self.battery_reserve}")
        if self.photo_trigger_s < 0 or self.turn_penalty_s < 0:
            raise InvalidParameterError("timing penalties cannot be negative")
        if self.max_lines < 1 or self.max_strips < 1 or self.width_search_iterations < 1:
            raise InvalidParameterError("caps and iteration counts must be at least 1")
        if self.waypoint_spacing_m <= 0 or self.arc_steps < 2:
            raise InvalidParameterError("waypoint spacing must be positive and arc_steps >= 2")
        if not 0 <= self.straight_turn_deg <= self.uturn_deg <= 180:
            raise InvalidParameterError("turn thresholds must satisfy 0 <= straight <= uturn <= 180")


DEFAULT_SETTINGS = PlannerSettings()

DRONE_PRESETS = {
    'Phantom 4 Pro': DroneSpecs(
        sensor_width_mm=13.2,
        sensor_height_mm=8.8,
        focal_length_mm=8.8,
        image_width_px=5472,
        image_height_px=3648,
        min_photo_interval_s=2,
        usable_battery_time_min=18,
    ),
    # physical focal length, gives ~37.2m AGL at 1cm GSD
    'Matrice 4E': DroneSpecs(
        sensor_width_mm=17.3,
        sensor_height_mm=13,
        focal_length_mm=12.19,
        image_width_px=5280,
        image_height_px=3956,
        min_photo_interval_s=2,
        usable_battery_time_min=25,
    ),
}


def line_spacing_for(gsd_cm, image_width_px, side_overlap_pct):
    """Distance between adjacent flight lines (m) from the photo footprint width."""
    footprint_width = gsd_cm / 100.0 * image_width_px
    return footprint_width * (1 - side_overlap_pct / 100.0)


def photo_interval_for(gsd_cm, image_height_px, front_overlap_pct):
    """Distance between consecutive photos (m) along a flight line."""
    footprint_height = gsd_cm / 100.0 * image_height_px
    return footprint_height * (1 - front_overlap_pct / 100.0)


def altitude_for_gsd(gsd_cm, drone):
    """Flight altitude AGL (m) giving the requested GSD with a pinhole camera."""
    return (gsd_cm / 100.0) * drone.focal_length_mm * drone.image_width_px / drone.sensor_width_mm
