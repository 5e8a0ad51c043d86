"""
GeoJSON ingestion for the collision engine.

Loads a feature collection from a dict, a local path or an HTTP URL,
classifies line features into wall categories through an ordered rule
list, and extracts projected points and polylines.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from collections.abc import Mapping
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union
import json
import logging

import requests

from .geometry_utils import Point2D, as_point, is_finite_number
from .projection import Projector


logger = logging.getLogger(__name__)

CITY_WALL = "city_wall"
LONG_WALL = "long_wall"

GEOJSON_ACCEPT = "application/geo+json, application/json"

GeoJsonSource = Union[str, Path, Mapping[str, Any]]


class FeatureCollectionError(ValueError):
    """The source is not a usable GeoJSON feature collection."""


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def _is_url(source: str) -> bool:
    lowered = source.lower()
    return lowered.startswith("http://") or lowered.startswith("https://")


def load_geojson(
    source: GeoJsonSource,
    session: Optional[requests.Session] = None,
    timeout: float = 10.0,
) -> Dict[str, Any]:
    """Return the parsed GeoJSON for a dict, an http(s) URL or a file path."""
    if isinstance(source, Mapping):
        return dict(source)
    if isinstance(source, str) and _is_url(source):
        http = session or requests
        response = http.get(source, headers={"Accept": GEOJSON_ACCEPT}, timeout=timeout)
        if not response.ok:
            raise FeatureCollectionError(
                f"Failed to load GeoJSON from {source}: {response.status_code} {response.reason}"
            )
        return response.json()
    with open(source, "r", encoding="utf-8") as f:
        return json.load(f)


def require_features(geojson: Any) -> List[Dict[str, Any]]:
    """Return the `features` list or raise FeatureCollectionError."""
    if not isinstance(geojson, Mapping) or not isinstance(geojson.get("features"), list):
        raise FeatureCollectionError("GeoJSON feature collection required")
    return geojson["features"]


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ClassificationRule:
    """Matches when a string property contains any needle (case-insensitive)."""

    category: str
    key: str
    needles: Tuple[str, ...]

    def matches(self, properties: Mapping[str, Any]) -> bool:
        value = properties.get(self.key)
        if not isinstance(value, str):
            return False
        lowered = value.lower()
        return any(needle in lowered for needle in self.needles)


# Evaluated top to bottom; the first match decides. Kind tags come
# before name heuristics so an explicit tag always wins.
DEFAULT_RULES: Tuple[ClassificationRule, ...] = (
    ClassificationRule(CITY_WALL, "kind", ("city_wall", "fortification")),
    ClassificationRule(LONG_WALL, "kind", ("wall_corridor", "long_wall")),
    ClassificationRule(CITY_WALL, "name", ("city wall",)),
    ClassificationRule(LONG_WALL, "name", ("long wall", "phaleric wall", "makra teiche")),
)


def classify_feature(
    properties: Optional[Mapping[str, Any]],
    rules: Sequence[ClassificationRule] = DEFAULT_RULES,
) -> Optional[str]:
    """Category of the first matching rule, or None when no rule applies."""
    if not properties:
        return None
    for rule in rules:
        if rule.matches(properties):
            return rule.category
    return None


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------


@dataclass
class FeaturePoint:
    """A projected Point feature."""

    world: Point2D
    properties: Dict[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> Optional[str]:
        name = self.properties.get("name")
        return name if isinstance(name, str) else None


@dataclass
class FeatureLine:
    """One projected polyline with the properties of its source feature."""

    points: List[Point2D]
    properties: Dict[str, Any] = field(default_factory=dict)
    category: Optional[str] = None


def _properties(feature: Any) -> Dict[str, Any]:
    if not isinstance(feature, Mapping):
        return {}
    props = feature.get("properties")
    return props if isinstance(props, dict) else {}


def _geometry(feature: Any) -> Optional[Mapping[str, Any]]:
    if not isinstance(feature, Mapping):
        return None
    geometry = feature.get("geometry")
    return geometry if isinstance(geometry, Mapping) else None


def lon_lat(position: Any) -> Optional[Tuple[float, float]]:
    """(lon, lat) of a GeoJSON position, or None if it is not finite."""
    if not isinstance(position, (list, tuple)) or len(position) < 2:
        return None
    lon, lat = position[0], position[1]
    if not (is_finite_number(lon) and is_finite_number(lat)):
        return None
    return float(lon), float(lat)


def project_position(position: Any, projector: Projector) -> Optional[Point2D]:
    coords = lon_lat(position)
    if coords is None:
        return None
    lon, lat = coords
    return as_point(projector.project({"lat": lat, "lon": lon}))


def find_feature_points(features: Iterable[Any], projector: Projector) -> List[FeaturePoint]:
    """Project every Point feature, in source order."""
    points: List[FeaturePoint] = []
    for feature in features:
        geometry = _geometry(feature)
        if geometry is None or geometry.get("type") != "Point":
            continue
        world = project_position(geometry.get("coordinates"), projector)
        if world is None:
            logger.debug("Skipping point feature with invalid coordinates: %r", _properties(feature).get("name"))
            continue
        points.append(FeaturePoint(world=world, properties=_properties(feature)))
    return points


def _project_line(coordinates: Any, projector: Projector) -> List[Point2D]:
    if not isinstance(coordinates, (list, tuple)):
        return []
    line = []
    for position in coordinates:
        world = project_position(position, projector)
        if world is not None:
            line.append(world)
    return line


def extract_polylines(
    features: Iterable[Any],
    projector: Projector,
    category: str,
    rules: Sequence[ClassificationRule] = DEFAULT_RULES,
) -> List[FeatureLine]:
    """
    Projected polylines of every LineString / MultiLineString feature
    classified as `category`. Each MultiLineString part is its own line;
    lines left with fewer than two finite points are dropped.
    """
    result: List[FeatureLine] = []
    for feature in features:
        geometry = _geometry(feature)
        if geometry is None:
            continue
        gtype = geometry.get("type")
        if gtype == "LineString":
            parts = [geometry.get("coordinates")]
        elif gtype == "MultiLineString":
            coordinates = geometry.get("coordinates")
            parts = coordinates if isinstance(coordinates, (list, tuple)) else []
        else:
            continue
        properties = _properties(feature)
        if classify_feature(properties, rules) != category:
            continue
        for part in parts:
            line = _project_line(part, projector)
            if len(line) >= 2:
                result.append(FeatureLine(points=line, properties=properties, category=category))
            else:
                logger.debug("Dropping %s part of %r with %d valid points", category, properties.get("name"), len(line))
    return result


def average_geo_origin(features: Iterable[Any]) -> Optional[Dict[str, float]]:
    """Mean lat/lon of all finite Point features, or None if there are none."""
    sum_lat = 0.0
    sum_lon = 0.0
    count = 0
    for feature in features:
        geometry = _geometry(feature)
        if geometry is None or geometry.get("type") != "Point":
            continue
        coords = lon_lat(geometry.get("coordinates"))
        if coords is None:
            continue
        sum_lon += coords[0]
        sum_lat += coords[1]
        count += 1
    if count == 0:
        return None
    return {"lat": sum_lat / count, "lon": sum_lon / count}


def within_walls_flags(features: Iterable[Any]) -> Dict[str, bool]:
    """Name -> `within_walls` value of the first feature of that name carrying one."""
    flags: Dict[str, bool] = {}
    for feature in features:
        props = _properties(feature)
        name = props.get("name")
        if not isinstance(name, str) or name in flags:
            continue
        if "within_walls" in props and props["within_walls"] is not None:
            flags[name] = props["within_walls"]
    return flags
