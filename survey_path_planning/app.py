import os
import datetime
import logging

from .config import DRONE_PRESETS, MissionParameters, altitude_for_gsd
from .diagnostics import Diagnostics
from .exceptions import SurveyPlanningError
from .models import AreaOfInterest
from .planner import SurveyPlanner


def parse_polygon(text):
    """'lat,lng;lat,lng;...' -> list of (lat, lng) pairs."""
    points = []
    for pair in text.split(";"):
        pair = pair.strip()
        if not pair:
            continue
        lat, lng = pair.split(",")
        points.append((float(lat), float(lng)))
    return points


def rectangle(north, south, east, west):
    return [(north, west), (north, east), (south, east), (south, west)]


def build_parser():
    import argparse
    parser = argparse.ArgumentParser(description="Plan battery bounded aerial survey missions")
    parser.add_argument("--polygon", type=str, default=None,
                        help="Outer ring as 'lat,lng;lat,lng;...'")
    parser.add_argument("--hole", type=str, action="append", default=[],
                        help="Hole ring, same format as --polygon (repeatable)")
    parser.add_argument("--north", type=float, default=45.0045)
    parser.add_argument("--south", type=float, default=45.0)
    parser.add_argument("--east", type=float, default=7.0064)
    parser.add_argument("--west", type=float, default=7.0)
    parser.add_argument("--drone", type=str, default="Phantom 4 Pro", choices=sorted(DRONE_PRESETS))
    parser.add_argument("--gsd", type=float, default=2.0, help="Ground sample distance (cm/px)")
    parser.add_argument("--front_overlap", type=float, default=75.0)
    parser.add_argument("--side_overlap", type=float, default=70.0)
    parser.add_argument("--speed", type=float, default=8.0, help="Drone speed (m/s)")
    parser.add_argument("--battery", type=float, default=None,
                        help="Usable battery time per mission (min), defaults to the drone's")
    parser.add_argument("--heading", type=float, default=None, help="Manual heading (deg)")
    parser.add_argument("--turn_radius", type=float, default=None, help="Turn radius override (m)")
    parser.add_argument("--output_dir", type=str, default="results", help="Directory to save results")
    parser.add_argument("--verbose", action="store_true")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING,
                        format='%(asctime)s - %(levelname)s - %(message)s')

    if args.polygon:
        outer = parse_polygon(args.polygon)
    else:
        outer = rectangle(args.north, args.south, args.east, args.west)
    rings = [outer] + [parse_polygon(h) for h in args.hole]

    drone = DRONE_PRESETS[args.drone]
    parameters = MissionParameters(
        gsd_cm=args.gsd,
        front_overlap_pct=args.front_overlap,
        side_overlap_pct=args.side_overlap,
        drone_speed_ms=args.speed,
        max_battery_time_min=args.battery if args.battery is not None else drone.usable_battery_time_min,
        heading_deg=args.heading,
        turn_radius_m=args.turn_radius,
    )

    diagnostics = Diagnostics()
    try:
        aoi = AreaOfInterest.from_rings(rings, diagnostics)
        planner = SurveyPlanner(aoi, drone, parameters, diagnostics=diagnostics)
        print("Planning survey...")
        start_time = datetime.datetime.now()
        plan = planner.plan()
    except SurveyPlanningError as e:
        print(f"Error: {e}")
        return 1
    duration = (datetime.datetime.now() - start_time).total_seconds()

    altitude = altitude_for_gsd(args.gsd, drone)
    print(f"Planned {plan.battery_count} missions at heading {plan.heading:.0f} deg in {duration:.2f} seconds.")
    print(f"Total time {plan.total_time_min:.1f} min, {plan.total_photos} photos, "
          f"{plan.total_area_acres:.2f} acres, altitude {altitude:.1f} m AGL.")
    if altitude > 120:
        print(f"High altitude ({altitude:.1f}m) - check local regulations")
    elif altitude < 10:
        print(f"Very low altitude ({altitude:.1f}m) - may be impractical")
    for w in plan.warnings:
        print(f"Warning: {w}")

    results_dir = args.output_dir
    if not os.path.exists(results_dir):
        os.makedirs(results_dir)
    timestamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")

    log_path = os.path.join(results_dir, f"run_{timestamp}_log.txt")
    with open(log_path, "w") as f:
        f.write(f"Run ID: {timestamp}\n")
        f.write(f"Date: {datetime.datetime.now()}\n")
        f.write(f"--------------------------------\n")
        f.write(f"Drone: {args.drone}\n")
        f.write(f"GSD: {args.gsd} cm/px (altitude {altitude:.1f} m AGL)\n")
        f.write(f"Line Spacing: {plan.line_spacing_m:.2f} m\n")
        f.write(f"Photo Interval: {plan.photo_interval_m:.2f} m\n")
        f.write(f"Heading: {plan.heading:.1f} deg\n")
        f.write(f"Planning Duration: {duration:.2f} s\n")
        f.write(f"Total Time: {plan.total_time_min:.2f} min\n")
        f.write(f"Total Photos: {plan.total_photos}\n")
        f.write(f"Area: {plan.total_area_m2:.0f} m2 ({plan.total_area_acres:.2f} acres)\n")
        f.write(f"Transit Distance: {plan.transit_distance_m:.1f} m\n")
        f.write(f"--------------------------------\n")
        for m in plan.missions:
            f.write(f"{m.id}: {len(m.flight_lines)} lines, {m.estimated_time_min:.2f} min, "
                    f"{m.estimated_photos} photos, {len(m.path_coordinates())} path points\n")
        f.write(f"--------------------------------\n")
    print(f"Log saved to {log_path}")
    return 0

if __name__ == "__main__":
    raise SystemExit(main())
