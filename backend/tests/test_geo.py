from __future__ import annotations

import math

import pytest

from saferoute.geo import (
    bounding_box,
    deg_to_rad,
    distance_m,
    haversine_m,
    is_finite_coord,
    lng_delta,
    normalize_coord,
    path_length_m,
    point_to_polyline_distance_m,
    rad_to_deg,
    unwrapped_destination,
    wrap_lng,
)


def test_haversine_zero_for_identical_points() -> None:
    assert haversine_m(-12.05, -77.04, -12.05, -77.04) == 0.0


def test_one_degree_of_latitude_is_about_111_km() -> None:
    assert haversine_m(0.0, 0.0, 1.0, 0.0) == pytest.approx(111_194.9, abs=1.0)


def test_haversine_is_symmetric() -> None:
    a = (-12.0464, -77.0428)
    b = (-12.1219, -77.0297)
    assert distance_m(a, b) == pytest.approx(distance_m(b, a))


def test_nan_input_propagates() -> None:
    assert math.isnan(haversine_m(float("nan"), 0.0, 0.0, 0.0))


def test_degree_radian_conversions() -> None:
    assert deg_to_rad(180.0) == pytest.approx(math.pi)
    assert rad_to_deg(math.pi / 2.0) == pytest.approx(90.0)


def test_path_length_sums_consecutive_legs() -> None:
    pts = [(0.0, 0.0), (1.0, 0.0), (1.0, 1.0)]
    expected = distance_m(pts[0], pts[1]) + distance_m(pts[1], pts[2])
    assert path_length_m(pts) == pytest.approx(expected)
    assert path_length_m(pts[:1]) == 0.0
    assert path_length_m([]) == 0.0


def test_bounding_box_uses_lng_lat_order() -> None:
    pts = [(-12.0, -77.1), (-12.2, -77.0), (-12.1, -77.05)]
    assert bounding_box(pts) == [-77.1, -12.2, -77.0, -12.0]
    assert bounding_box([]) == [0.0, 0.0, 0.0, 0.0]


def test_is_finite_coord_rejects_out_of_range_and_nan() -> None:
    assert is_finite_coord(-12.0, -77.0)
    assert not is_finite_coord(91.0, 0.0)
    assert not is_finite_coord(0.0, 181.0)
    assert not is_finite_coord(float("nan"), 0.0)
    assert not is_finite_coord(0.0, float("inf"))


def test_point_to_polyline_distance() -> None:
    line = [(0.0, 0.0), (0.0, 0.01)]
    assert point_to_polyline_distance_m((0.0, 0.005), line) == pytest.approx(0.0, abs=1e-6)
    assert point_to_polyline_distance_m((0.001, 0.005), line) == pytest.approx(111.19, abs=0.5)
    # Beyond the segment end the distance is to the endpoint.
    assert point_to_polyline_distance_m((0.0, 0.02), line) == pytest.approx(distance_m((0.0, 0.02), (0.0, 0.01)), rel=1e-3)


def test_point_to_polyline_degenerate_inputs() -> None:
    assert point_to_polyline_distance_m((0.0, 0.0), []) == math.inf
    assert point_to_polyline_distance_m((0.0, 0.0), [(1.0, 0.0)]) == pytest.approx(111_194.9, abs=1.0)


def test_wrap_lng_folds_into_range_and_keeps_valid_values() -> None:
    assert wrap_lng(180.0) == 180.0
    assert wrap_lng(-180.0) == -180.0
    assert wrap_lng(-77.0428) == -77.0428
    assert wrap_lng(180.00008) == pytest.approx(-179.99992)
    assert wrap_lng(-181.0) == pytest.approx(179.0)
    assert wrap_lng(540.0) == pytest.approx(-180.0)


def test_normalize_coord_clamps_latitude_past_the_pole() -> None:
    lat, lng = normalize_coord((90.00019, 180.5))
    assert lat == 90.0
    assert lng == pytest.approx(-179.5)
    assert normalize_coord((-90.2, 0.0)) == (-90.0, 0.0)


def test_lng_delta_takes_the_short_way_round() -> None:
    assert lng_delta(10.0, 20.0) == 10.0
    assert lng_delta(179.99, -179.99) == pytest.approx(0.02)
    assert lng_delta(-179.99, 179.99) == pytest.approx(-0.02)


def test_unwrapped_destination_only_shifts_antimeridian_trips() -> None:
    assert unwrapped_destination((-12.0, -77.0), (-12.1, -77.1)) == (-12.1, -77.1)
    lat, lng = unwrapped_destination((0.0, 179.99), (0.0, -179.99))
    assert lat == 0.0
    assert lng == pytest.approx(180.01)


def test_point_to_polyline_distance_across_the_antimeridian() -> None:
    line = [(0.0, 179.999), (0.0, -179.999)]
    assert point_to_polyline_distance_m((0.001, 179.9995), line) == pytest.approx(111.19, abs=0.5)
    assert point_to_polyline_distance_m((0.001, -179.9995), line) == pytest.approx(111.19, abs=0.5)
