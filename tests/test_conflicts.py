from core.services.conflict_service import (
    CameraInfoConflict,
    CaptureTimeConflict,
    GpsConflict,
    TimezoneConflict,
    detect_conflicts,
)

from fakes import make_asset


def test_empty_input_has_no_conflicts():
    assert detect_conflicts([]) == []


def test_gps_within_threshold_is_not_a_conflict():
    assets = [
        make_asset("a", latitude=51.5074, longitude=-0.1278),
        make_asset("b", latitude=51.50745, longitude=-0.12775),
    ]
    assert detect_conflicts(assets) == []


def test_gps_beyond_threshold_is_a_conflict():
    assets = [
        make_asset("a", latitude=51.5074, longitude=-0.1278),
        make_asset("b", latitude=52.0, longitude=-0.5),
    ]
    conflicts = detect_conflicts(assets)
    assert conflicts == [GpsConflict(values=[(51.5074, -0.1278), (52.0, -0.5)])]


def test_gps_longitude_only_difference_counts():
    assets = [
        make_asset("a", latitude=10.0, longitude=20.0),
        make_asset("b", latitude=10.0, longitude=20.001),
    ]
    assert isinstance(detect_conflicts(assets)[0], GpsConflict)


def test_gps_values_dedupe_within_threshold():
    assets = [
        make_asset("a", latitude=10.0, longitude=20.0),
        make_asset("b", latitude=10.00005, longitude=20.00005),
        make_asset("c", latitude=11.0, longitude=21.0),
    ]
    (conflict,) = detect_conflicts(assets)
    assert conflict.values == [(10.0, 20.0), (11.0, 21.0)]


def test_assets_without_field_are_ignored():
    assets = [
        make_asset("a", latitude=10.0, longitude=20.0, time_zone="UTC"),
        make_asset("b"),
        make_asset("c", time_zone="UTC"),
    ]
    assert detect_conflicts(assets) == []


def test_string_values_fold_case_and_whitespace():
    assets = [
        make_asset("a", time_zone="America/New_York"),
        make_asset("b", time_zone="  america/new_york "),
        make_asset("c", time_zone="AMERICA/NEW_YORK"),
    ]
    assert detect_conflicts(assets) == []


def test_timezone_conflict_keeps_first_seen_originals():
    assets = [
        make_asset("a", time_zone=" Europe/London"),
        make_asset("b", time_zone="America/New_York"),
        make_asset("c", time_zone="europe/london"),
    ]
    assert detect_conflicts(assets) == [
        TimezoneConflict(values=["Europe/London", "America/New_York"])
    ]


def test_camera_conflict_joins_make_and_model():
    assets = [
        make_asset("a", make="Apple", model="iPhone 12"),
        make_asset("b", make="apple", model="iphone 12"),
        make_asset("c", make="Canon", model="EOS R5"),
        make_asset("d", model="EOS R5"),
    ]
    assert detect_conflicts(assets) == [
        CameraInfoConflict(values=["Apple iPhone 12", "Canon EOS R5", "EOS R5"])
    ]


def test_capture_time_conflict():
    assets = [
        make_asset("a", date_time_original="2024-01-01T10:00:00"),
        make_asset("b", date_time_original="2024-01-02T10:00:00"),
    ]
    assert detect_conflicts(assets) == [
        CaptureTimeConflict(values=["2024-01-01T10:00:00", "2024-01-02T10:00:00"])
    ]


def test_multiple_conflicts_in_fixed_order():
    assets = [
        make_asset(
            "a", latitude=1.0, longitude=1.0, time_zone="UTC", make="A", date_time_original="x"
        ),
        make_asset(
            "b", latitude=2.0, longitude=2.0, time_zone="CET", make="B", date_time_original="y"
        ),
    ]
    kinds = [c.kind for c in detect_conflicts(assets)]
    assert kinds == ["gps", "timezone", "camera_info", "capture_time"]


def test_gps_chain_merging_to_one_point_is_not_a_conflict():
    assets = [
        make_asset("a", latitude=0.00008, longitude=0.0),
        make_asset("b", latitude=0.0, longitude=0.0),
        make_asset("c", latitude=0.00016, longitude=0.0),
    ]
    assert detect_conflicts(assets) == []
