import os
import logging
from dataclasses import replace

import pytest

from survey_path_planning import app
from survey_path_planning import planner as planner_module
from survey_path_planning.config import (DRONE_PRESETS, MissionParameters, altitude_for_gsd, line_spacing_for,
                                         photo_interval_for)
from survey_path_planning.diagnostics import ERROR, WARNING, Diagnostics
from survey_path_planning.exceptions import InvalidParameterError, InvalidPolygonError, SurveyPlanningError
from survey_path_planning.geometry import points_in_polygon
from survey_path_planning.models import SegmentKind
from survey_path_planning.planner import SurveyPlanner, generate_flight_plan


@pytest.fixture
def field(rect_aoi):
    return rect_aoi(400, 300, lat0=45.0, lng0=7.0)


def test_camera_formulas(phantom):
    assert line_spacing_for(3.0, 5472, 70) == pytest.approx(49.248)
    assert photo_interval_for(3.0, 3648, 70) == pytest.approx(32.832)
    assert altitude_for_gsd(1.0, DRONE_PRESETS['Matrice 4E']) == pytest.approx(37.2, abs=0.1)
    assert altitude_for_gsd(2.0, phantom) == pytest.approx(72.96)


@pytest.mark.parametrize("gsd", [1000.0, 50.1, 0.2])
def test_out_of_range_gsd_fails_before_any_geometry(monkeypatch, field, phantom, survey_parameters, gsd):
    def boom(*args, **kwargs):
        raise AssertionError("partitioning must not run")

    monkeypatch.setattr("survey_path_planning.planner.partition_area", boom)
    parameters = replace(survey_parameters, gsd_cm=gsd, front_overlap_pct=150)
    with pytest.raises(InvalidParameterError, match="GSD"):
        generate_flight_plan(field, phantom, parameters)


def test_invalid_parameters(field, phantom, survey_parameters):
    for changes in ({"side_overlap_pct": 100}, {"drone_speed_ms": 0}, {"max_battery_time_min": -1},
                    {"turn_radius_m": 0}):
        with pytest.raises(InvalidParameterError):
            generate_flight_plan(field, phantom, replace(survey_parameters, **changes))
    with pytest.raises(ValueError):
        generate_flight_plan(field, replace(phantom, image_width_px=0), survey_parameters)


def test_errors_share_a_base():
    assert issubclass(InvalidParameterError, SurveyPlanningError)
    assert issubclass(InvalidPolygonError, SurveyPlanningError)


def test_plan_covers_the_field(field, phantom, survey_parameters):
    plan = generate_flight_plan(field, phantom, survey_parameters)

    assert plan.heading in (0.0, 90.0)
    assert plan.battery_count == len(plan.missions) >= 1
    assert plan.total_area_m2 == field.area_m2
    assert plan.total_time_min == pytest.approx(sum(m.estimated_time_min for m in plan.missions))
    assert plan.total_photos == sum(m.estimated_photos for m in plan.missions)
    assert plan.line_spacing_m == pytest.approx(49.248)
    assert plan.photo_interval_m == pytest.approx(32.832)

    budget = survey_parameters.max_battery_time_min * 0.9
    for position, m in enumerate(plan.missions):
        assert m.index == position
        assert m.estimated_time_min <= budget or len(m.flight_lines) == 1
        lines = [s for s in m.path_segments if s.kind == SegmentKind.LINE]
        assert len(lines) == len(m.flight_lines)
        pts = [p for s in lines for p in s.coordinates]
        assert points_in_polygon([p.lat for p in pts], [p.lng for p in pts], field.rings).all()


def test_fastest_heading_wins(field, phantom, survey_parameters):
    planner = SurveyPlanner(field, phantom, survey_parameters)
    times = {h: planner.evaluate_heading(h)[1] for h in planner.candidate_headings()}
    plan = SurveyPlanner(field, phantom, survey_parameters).plan()

    assert plan.total_time_min == pytest.approx(min(times.values()))
    if times[0.0] <= times[90.0]:
        assert plan.heading == 0.0
    else:
        assert plan.heading == 90.0


def test_planning_is_deterministic(field, phantom, survey_parameters):
    first = generate_flight_plan(field, phantom, survey_parameters)
    second = generate_flight_plan(field, phantom, survey_parameters)
    assert first == second


def test_manual_heading(field, phantom, survey_parameters):
    parameters = replace(survey_parameters, heading_deg=405.0)
    planner = SurveyPlanner(field, phantom, parameters)
    assert planner.candidate_headings() == (45.0,)

    plan = planner.plan()
    assert plan.heading == 45.0
    for m in plan.missions:
        for fl in m.flight_lines:
            assert fl.heading == 45.0
        pts = [p for fl in m.flight_lines for p in fl.coordinates]
        assert points_in_polygon([p.lat for p in pts], [p.lng for p in pts], field.rings).all()


def test_field_with_a_hole(make_aoi, phantom, survey_parameters):
    hole = [(150, 100), (250, 100), (250, 200), (150, 200)]
    aoi = make_aoi([(0, 0), (400, 0), (400, 300), (0, 300)], holes_m=[hole], lat0=45.0, lng0=7.0)
    plan = generate_flight_plan(aoi, phantom, survey_parameters)

    assert plan.missions
    pts = [p for m in plan.missions for fl in m.flight_lines for p in fl.coordinates]
    assert points_in_polygon([p.lat for p in pts], [p.lng for p in pts], aoi.rings).all()


def test_small_spacing_is_reported(rect_aoi, phantom):
    aoi = rect_aoi(30, 30, lat0=45.0)
    parameters = MissionParameters(gsd_cm=0.5, front_overlap_pct=80, side_overlap_pct=99,
                                   drone_speed_ms=8.0, max_battery_time_min=18.0)
    seen = []
    diagnostics = Diagnostics(sink=lambda level, message, context: seen.append((level, message)))
    plan = generate_flight_plan(aoi, phantom, parameters, diagnostics=diagnostics)

    assert any("line spacing" in w for w in plan.warnings)
    assert any("Photo interval" in w for w in plan.warnings)
    assert (WARNING, plan.warnings[0]) in seen
    assert plan.missions


def test_diagnostics_reach_the_logger(caplog, field, phantom, survey_parameters):
    with caplog.at_level(logging.INFO, logger="survey_path_planning"):
        generate_flight_plan(field, phantom, survey_parameters)
    assert any("Evaluated heading" in r.getMessage() for r in caplog.records)


def test_invalid_polygon_is_rejected(tmp_path, capsys):
    status = app.main(["--polygon", "45.0,7.0;45.001,7.0", "--output_dir", str(tmp_path)])
    assert status == 1
    assert "at least 3 distinct vertices" in capsys.readouterr().out


def test_app_writes_a_run_log(tmp_path, capsys):
    out = tmp_path / "results"
    status = app.main(["--north", "45.003", "--south", "45.0", "--east", "7.004", "--west", "7.0",
                       "--gsd", "3", "--output_dir", str(out)])

    assert status == 0
    logs = os.listdir(out)
    assert len(logs) == 1 and logs[0].endswith("_log.txt")
    content = (out / logs[0]).read_text()
    assert "Total Time" in content
    assert "mission-0" in content
    assert "Planned" in capsys.readouterr().out


def test_app_reports_bad_gsd(tmp_path, capsys):
    status = app.main(["--gsd", "1000", "--output_dir", str(tmp_path)])
    assert status == 1
    assert "GSD" in capsys.readouterr().out
    assert os.listdir(tmp_path) == []


def test_parse_polygon():
    assert app.parse_polygon("45.0,7.0; 45.1,7.0;45.1,7.1;") == [(45.0, 7.0), (45.1, 7.0), (45.1, 7.1)]


def test_area_shorter_than_waypoint_spacing_is_planned(rect_aoi, phantom, survey_parameters):
    aoi = rect_aoi(40, 4, lat0=45.0)
    planner = SurveyPlanner(aoi, phantom, survey_parameters)
    plan = planner.plan()

    assert plan.missions
    assert plan.total_photos > 0
    for heading in planner.candidate_headings():
        assert planner.evaluate_heading(heading)[0]
    for message in planner.diagnostics.messages():
        assert "no flight lines" not in message.lower()
        assert "no missions" not in message.lower()
        assert "unable" not in message.lower()


def test_heading_without_missions_is_dropped(monkeypatch, field, phantom, survey_parameters):
    real = planner_module.partition_area

    def no_east_west(aoi, heading, *args, **kwargs):
        return [] if heading == 90.0 else real(aoi, heading, *args, **kwargs)

    monkeypatch.setattr(planner_module, "partition_area", no_east_west)
    plan = generate_flight_plan(field, phantom, survey_parameters)

    assert plan.heading == 0.0
    assert plan.missions
    assert "Heading produced no missions" in plan.warnings


def test_no_heading_with_missions_gives_an_empty_plan(monkeypatch, field, phantom, survey_parameters):
    monkeypatch.setattr(planner_module, "partition_area", lambda *args, **kwargs: [])
    diagnostics = Diagnostics()
    plan = generate_flight_plan(field, phantom, survey_parameters, diagnostics=diagnostics)

    assert plan.missions == ()
    assert plan.battery_count == 0
    assert plan.total_time_min == 0
    assert plan.heading == 0.0
    assert plan.warnings.count("Heading produced no missions") == 2
    assert any(w.startswith("Zero flight plan") for w in plan.warnings)
    assert any("No flight plan could be generated" in m for m in diagnostics.messages(ERROR))


def test_diagnostics_reused_across_plans(rect_aoi, phantom):
    aoi = rect_aoi(30, 30, lat0=45.0)
    parameters = MissionParameters(gsd_cm=0.5, front_overlap_pct=80, side_overlap_pct=99,
                                   drone_speed_ms=8.0, max_battery_time_min=18.0)
    diagnostics = Diagnostics()
    first = generate_flight_plan(aoi, phantom, parameters, diagnostics=diagnostics)
    per_plan = len(diagnostics.records)
    second = generate_flight_plan(aoi, phantom, parameters, diagnostics=diagnostics)

    assert first.warnings
    assert second.warnings == first.warnings
    assert len(diagnostics.records) == 2 * per_plan

    diagnostics.clear()
    assert diagnostics.records == []
    assert diagnostics.messages() == []
    generate_flight_plan(aoi, phantom, parameters, diagnostics=diagnostics)
    assert len(diagnostics.records) == per_plan
