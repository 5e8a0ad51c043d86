from __future__ import annotations

import json
import math
from typing import Any, Dict, Mapping

import pytest

from city_collision.features import (
    CITY_WALL,
    LONG_WALL,
    ClassificationRule,
    FeatureCollectionError,
    average_geo_origin,
    classify_feature,
    extract_polylines,
    find_feature_points,
    load_geojson,
    require_features,
    within_walls_flags,
)
from city_collision.geometry_utils import Point2D


class PlanarProjector:
    """Treats lon/lat as x/y meters so fixtures can be written in meters."""

    def project(self, coordinate: Mapping[str, float]) -> Point2D:
        return Point2D(coordinate["lon"], coordinate["lat"])


def point(name: str, x: float, y: float, **props: Any) -> Dict[str, Any]:
    return {
        "type": "Feature",
        "properties": {"name": name, **props},
        "geometry": {"type": "Point", "coordinates": [x, y]},
    }


def line(props: Dict[str, Any], coords, multi: bool = False) -> Dict[str, Any]:
    return {
        "type": "Feature",
        "properties": props,
        "geometry": {"type": "MultiLineString" if multi else "LineString", "coordinates": coords},
    }


def test_classify_by_kind() -> None:
    assert classify_feature({"kind": "city_wall"}) == CITY_WALL
    assert classify_feature({"kind": "Classical FORTIFICATION"}) == CITY_WALL
    assert classify_feature({"kind": "long_wall"}) == LONG_WALL
    assert classify_feature({"kind": "wall_corridor"}) == LONG_WALL


def test_classify_by_name_fallback() -> None:
    assert classify_feature({"name": "Themistoclean City Wall"}) == CITY_WALL
    assert classify_feature({"name": "Northern Long Wall"}) == LONG_WALL
    assert classify_feature({"name": "Phaleric Wall"}) == LONG_WALL
    assert classify_feature({"name": "Makra Teiche"}) == LONG_WALL
    assert classify_feature({"kind": "road", "name": "Road along the city wall"}) == CITY_WALL


def test_kind_takes_precedence_over_name() -> None:
    assert classify_feature({"kind": "long_wall", "name": "City Wall spur"}) == LONG_WALL
    assert classify_feature({"kind": "fortification", "name": "Long Wall junction"}) == CITY_WALL


def test_unclassified_features() -> None:
    assert classify_feature({"kind": "road", "name": "Panathenaic Way"}) is None
    assert classify_feature({}) is None
    assert classify_feature(None) is None
    assert classify_feature({"name": 42}) is None


def test_custom_rules_extend_categories() -> None:
    rules = (ClassificationRule("aqueduct", "kind", ("aqueduct",)),)
    assert classify_feature({"kind": "Hadrianic Aqueduct"}, rules) == "aqueduct"
    assert classify_feature({"kind": "city_wall"}, rules) is None


def test_extract_polylines_splits_multilinestring() -> None:
    features = [
        line({"name": "Phaleric Wall"}, [[[0, 0], [10, 0]], [[10, 0], [10, 10]], [[20, 0], [30, 0]]], multi=True),
        line({"name": "Themistoclean City Wall"}, [[0, 0], [5, 5]]),
    ]
    lines = extract_polylines(features, PlanarProjector(), LONG_WALL)
    assert len(lines) == 3
    assert lines[0].points == [Point2D(0.0, 0.0), Point2D(10.0, 0.0)]
    assert all(item.category == LONG_WALL for item in lines)


def test_extract_polylines_drops_invalid_coordinates() -> None:
    features = [
        line({"kind": "long_wall"}, [[0, 0], [math.nan, 1], [10, 0]]),
        line({"kind": "long_wall"}, [[0, 0], ["a", 1]]),
        line({"kind": "long_wall"}, "not-a-list"),
        {"type": "Feature", "properties": {"kind": "long_wall"}, "geometry": {"type": "Polygon", "coordinates": []}},
        {"type": "Feature", "properties": {"kind": "long_wall"}, "geometry": None},
    ]
    lines = extract_polylines(features, PlanarProjector(), LONG_WALL)
    assert len(lines) == 1
    assert lines[0].points == [Point2D(0.0, 0.0), Point2D(10.0, 0.0)]


def test_find_feature_points_skips_invalid_coordinates() -> None:
    features = [
        point("A", 1.0, 2.0),
        point("B", math.inf, 2.0),
        {"type": "Feature", "properties": {"name": "C"}, "geometry": {"type": "Point", "coordinates": [1.0]}},
        point("D", 3.0, 4.0, within_walls=False),
    ]
    points = find_feature_points(features, PlanarProjector())
    assert [p.name for p in points] == ["A", "D"]
    assert points[1].world == Point2D(3.0, 4.0)
    assert points[1].properties["within_walls"] is False


def test_average_geo_origin() -> None:
    features = [point("A", 20.0, 30.0), point("B", 22.0, 40.0), line({}, [[0, 0], [1, 1]])]
    assert average_geo_origin(features) == {"lat": 35.0, "lon": 21.0}
    assert average_geo_origin([line({}, [[0, 0], [1, 1]])]) is None


def test_within_walls_flags_first_defined_wins() -> None:
    features = [
        point("Piraeus", 0.0, 0.0),
        point("Piraeus", 0.0, 0.0, within_walls=False),
        point("Piraeus", 0.0, 0.0, within_walls=True),
        point("Agora", 0.0, 0.0, within_walls=True),
    ]
    assert within_walls_flags(features) == {"Piraeus": False, "Agora": True}


def test_require_features() -> None:
    assert require_features({"features": []}) == []
    with pytest.raises(FeatureCollectionError):
        require_features({"type": "FeatureCollection"})
    with pytest.raises(FeatureCollectionError):
        require_features(None)
    with pytest.raises(ValueError):
        require_features({"features": "nope"})


def test_load_geojson_from_dict_and_path(tmp_path) -> None:
    data = {"type": "FeatureCollection", "features": [point("A", 1.0, 2.0)]}
    assert load_geojson(data) == data

    path = tmp_path / "places.geojson"
    path.write_text(json.dumps(data), encoding="utf-8")
    assert load_geojson(str(path)) == data
    assert load_geojson(path) == data


class _FakeResponse:
    def __init__(self, ok: bool, payload: Any = None, status_code: int = 200, reason: str = "OK") -> None:
        self.ok = ok
        self._payload = payload
        self.status_code = status_code
        self.reason = reason

    def json(self) -> Any:
        return self._payload


class _FakeSession:
    def __init__(self, response: _FakeResponse) -> None:
        self.response = response
        self.calls = []

    def get(self, url: str, headers=None, timeout=None) -> _FakeResponse:
        self.calls.append((url, headers, timeout))
        return self.response


def test_load_geojson_over_http() -> None:
    payload = {"features": []}
    session = _FakeSession(_FakeResponse(ok=True, payload=payload))
    assert load_geojson("https://example.org/athens.geojson", session=session) == payload
    url, headers, timeout = session.calls[0]
    assert url == "https://example.org/athens.geojson"
    assert "application/geo+json" in headers["Accept"]
    assert timeout == 10.0


def test_load_geojson_http_failure() -> None:
    session = _FakeSession(_FakeResponse(ok=False, status_code=404, reason="Not Found"))
    with pytest.raises(FeatureCollectionError, match="404"):
        load_geojson("http://example.org/missing.geojson", session=session)


def test_malformed_multilinestring_is_skipped() -> None:
    features = [
        line({"kind": "long_wall"}, 5, multi=True),
        line({"kind": "long_wall"}, None, multi=True),
        line({"kind": "long_wall"}, [[0, 0], [10, 0]]),
    ]
    lines = extract_polylines(features, PlanarProjector(), LONG_WALL)
    assert len(lines) == 1
    assert lines[0].points == [Point2D(0.0, 0.0), Point2D(10.0, 0.0)]
