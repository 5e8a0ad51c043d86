from __future__ import annotations

import math

import pytest

from city_collision.projection import (
    EARTH_RADIUS_METERS,
    LocalEquirectangularProjection,
    deg_to_rad,
    rad_to_deg,
)


PARTHENON = {"lat": 37.9715379, "lon": 23.7266531}
AGORA = {"lat": 37.975, "lon": 23.723}
PNYX = {"lat": 37.973, "lon": 23.718}


def test_origin_projects_to_zero() -> None:
    projector = LocalEquirectangularProjection(origin=PARTHENON)
    p = projector.project(PARTHENON)
    assert abs(p.x) < 0.01
    assert abs(p.y) < 0.01


def test_agora_falls_northwest_of_parthenon() -> None:
    projector = LocalEquirectangularProjection(origin=PARTHENON)
    p = projector.project(AGORA)
    assert p.x < -200
    assert p.y > 200


def test_pnyx_falls_west_of_parthenon() -> None:
    projector = LocalEquirectangularProjection(origin=PARTHENON)
    p = projector.project(PNYX)
    assert p.x < -500
    assert p.y > 50


def test_one_degree_of_latitude_in_meters() -> None:
    projector = LocalEquirectangularProjection(origin={"lat": 0.0, "lon": 0.0})
    p = projector.project(lat=1.0, lon=0.0)
    assert math.isclose(p.y, EARTH_RADIUS_METERS * math.pi / 180.0)
    assert math.isclose(p.x, 0.0, abs_tol=1e-9)


def test_rotation_is_clockwise_from_east() -> None:
    projector = LocalEquirectangularProjection(origin=PARTHENON, rotation_degrees=90)
    p = projector.project({"lat": PARTHENON["lat"] + 0.001, "lon": PARTHENON["lon"]})
    assert p.x > 0
    assert abs(p.y) < 1e-6


def test_set_rotation_updates_grid() -> None:
    projector = LocalEquirectangularProjection(origin=PARTHENON)
    north = {"lat": PARTHENON["lat"] + 0.001, "lon": PARTHENON["lon"]}
    before = projector.project(north)
    projector.set_rotation(90)
    after = projector.project(north)
    assert math.isclose(after.x, before.y)


def test_geojson_position_is_lon_lat() -> None:
    projector = LocalEquirectangularProjection(origin=PARTHENON)
    assert projector.project_geojson_position([AGORA["lon"], AGORA["lat"]]) == projector.project(AGORA)
    with pytest.raises(TypeError):
        projector.project_geojson_position([23.7])


def test_invalid_inputs_raise_type_error() -> None:
    with pytest.raises(TypeError):
        LocalEquirectangularProjection(origin={"lat": "37.9", "lon": 23.7})
    with pytest.raises(TypeError):
        LocalEquirectangularProjection(origin=None)  # type: ignore[arg-type]
    projector = LocalEquirectangularProjection(origin=PARTHENON)
    with pytest.raises(TypeError):
        projector.project({"lat": None, "lon": 23.7})


def test_degree_radian_helpers() -> None:
    assert math.isclose(deg_to_rad(180.0), math.pi)
    assert math.isclose(rad_to_deg(math.pi / 2), 90.0)
