from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple
import logging

import numpy as np
import requests
import yaml

from telemetry.logger import TelemetryLogger

from .features import (
    CITY_WALL,
    DEFAULT_RULES,
    LONG_WALL,
    ClassificationRule,
    FeaturePoint,
    GeoJsonSource,
    average_geo_origin,
    extract_polylines,
    find_feature_points,
    load_geojson,
    require_features,
    within_walls_flags,
)
from .geometry_utils import (
    Point2D,
    Polygon,
    compute_convex_hull,
    create_polygon_record,
    distance,
    is_finite_number,
    point_in_polygon,
    points_in_polygon,
    vertex_mean,
)
from .projection import LocalEquirectangularProjection, ProjectionError, Projector
from .shapes import (
    DEFAULT_CAP_SEGMENTS,
    DEFAULT_CLIFF_SEGMENTS,
    buffer_polyline,
    create_circle_polygon,
    create_ellipse_polygon,
)
from .slope import SlopeSampler, normalize_slope_sampler


logger = logging.getLogger(__name__)

DEFAULT_GEOJSON_PATH = Path(__file__).resolve().parent / "data" / "athens_places.geojson"
DEFAULT_CITY_WALL_BUFFER_METERS = 2.5
DEFAULT_LONG_WALL_BUFFER_METERS = 4.0
DEFAULT_CITY_POINT_RADIUS_METERS = 20000.0
DEFAULT_SLOPE_THRESHOLD = 0.35  # tangent of ~19 degrees
DEFAULT_ACROPOLIS_MAJOR_RADIUS = 130.0  # meters, east-west
DEFAULT_ACROPOLIS_MINOR_RADIUS = 90.0  # meters, north-south
ACROPOLIS_NAME = "Acropolis of Athens"


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass
class CollisionConfig:
    """Static construction options for CollisionGeometry."""

    geojson_url: str = str(DEFAULT_GEOJSON_PATH)
    city_wall_buffer: float = DEFAULT_CITY_WALL_BUFFER_METERS
    long_wall_buffer: float = DEFAULT_LONG_WALL_BUFFER_METERS
    city_point_radius: float = DEFAULT_CITY_POINT_RADIUS_METERS
    slope_threshold: float = DEFAULT_SLOPE_THRESHOLD
    acropolis_radii: Dict[str, float] = field(
        default_factory=lambda: {
            "major": DEFAULT_ACROPOLIS_MAJOR_RADIUS,
            "minor": DEFAULT_ACROPOLIS_MINOR_RADIUS,
        }
    )
    cap_segments: int = DEFAULT_CAP_SEGMENTS
    cliff_segments: int = DEFAULT_CLIFF_SEGMENTS
    hill_segments: int = 24
    hill_radius_factor: float = 0.6
    reference_location: str = ACROPOLIS_NAME
    telemetry_path: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "CollisionConfig":
        """Build from a flat mapping or one nested under `collision`; unknown keys are ignored."""
        if not data:
            return cls()
        section = data.get("collision", data)
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in section.items() if k in known and v is not None}
        if "acropolis_radii" in kwargs:
            kwargs["acropolis_radii"] = dict(kwargs["acropolis_radii"])
        return cls(**kwargs)

    @classmethod
    def from_yaml(cls, path: str) -> "CollisionConfig":
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_dict(yaml.safe_load(f))

    def ellipse_radii(self) -> Tuple[float, float]:
        """(major, minor) radii, falling back to defaults for non-finite values."""
        radii = self.acropolis_radii or {}
        major = radii.get("major")
        minor = radii.get("minor")
        return (
            float(major) if is_finite_number(major) else DEFAULT_ACROPOLIS_MAJOR_RADIUS,
            float(minor) if is_finite_number(minor) else DEFAULT_ACROPOLIS_MINOR_RADIUS,
        )


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CityModel:
    """Everything one load derives; replaced wholesale on the next load."""

    city_wall: Tuple[Polygon, ...]
    long_walls: Tuple[Polygon, ...]
    additional: Tuple[Polygon, ...]
    acropolis: Tuple[Polygon, ...]
    named_locations: Dict[str, Point2D]
    all_polygons: Tuple[Polygon, ...] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        # Cliff polygons are gated by slope and stay out of the hard set.
        object.__setattr__(self, "all_polygons", self.city_wall + self.long_walls + self.additional)


class CollisionGeometry:
    """Walkability model built from a GeoJSON feature collection.

    Parameters
    ----------
    config : CollisionConfig, optional
        Buffer radii, segment counts, acropolis radii and slope threshold.
    projector : Projector, optional
        Shared lat/lon -> meters projection. When absent, `load` builds
        one from an explicit or inferred origin.
    slope_map : callable or object with `sample(x, y)`, optional
        Terrain slope sampler gating the cliff polygons.
    telemetry_logger : TelemetryLogger, optional
        Receives one record per successful load.
    rules : sequence of ClassificationRule
        Ordered wall classification rules.
    """

    def __init__(
        self,
        config: Optional[CollisionConfig] = None,
        projector: Optional[Projector] = None,
        slope_map: Any = None,
        telemetry_logger: Any = None,
        rules: Sequence[ClassificationRule] = DEFAULT_RULES,
    ) -> None:
        self.config = config or CollisionConfig()
        self.projector: Optional[Projector] = projector
        self.slope_threshold = float(self.config.slope_threshold)
        self.rules = tuple(rules)
        self.telemetry_logger = telemetry_logger
        self._owns_telemetry = False
        if self.telemetry_logger is None and self.config.telemetry_path:
            self.telemetry_logger = TelemetryLogger(self.config.telemetry_path)
            self._owns_telemetry = True
        self._slope_sampler: Optional[SlopeSampler] = normalize_slope_sampler(slope_map)
        self._model: Optional[CityModel] = None

    def close(self) -> None:
        """Close the telemetry logger if this instance opened it."""
        if self._owns_telemetry and self.telemetry_logger is not None:
            self.telemetry_logger.close()

    def __enter__(self) -> "CollisionGeometry":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------
    @property
    def loaded(self) -> bool:
        return self._model is not None

    @property
    def model(self) -> Optional[CityModel]:
        return self._model

    @property
    def city_wall_polygons(self) -> Tuple[Polygon, ...]:
        return self._model.city_wall if self._model else ()

    @property
    def long_wall_polygons(self) -> Tuple[Polygon, ...]:
        return self._model.long_walls if self._model else ()

    @property
    def additional_polygons(self) -> Tuple[Polygon, ...]:
        return self._model.additional if self._model else ()

    @property
    def acropolis_polygons(self) -> Tuple[Polygon, ...]:
        return self._model.acropolis if self._model else ()

    @property
    def all_polygons(self) -> Tuple[Polygon, ...]:
        return self._model.all_polygons if self._model else ()

    @property
    def named_locations(self) -> Dict[str, Point2D]:
        return dict(self._model.named_locations) if self._model else {}

    @property
    def slope_sampler(self) -> Optional[SlopeSampler]:
        return self._slope_sampler

    def summary(self) -> Dict[str, Any]:
        """Polygon counts per collection and other load facts."""
        return {
            "loaded": self.loaded,
            "city_wall_polygons": len(self.city_wall_polygons),
            "long_wall_polygons": len(self.long_wall_polygons),
            "additional_polygons": len(self.additional_polygons),
            "acropolis_polygons": len(self.acropolis_polygons),
            "all_polygons": len(self.all_polygons),
            "named_locations": len(self.named_locations),
            "slope_threshold": self.slope_threshold,
            "slope_sampler": self._slope_sampler is not None,
        }

    def to_dict(self) -> Dict[str, Any]:
        """Serialize polygons and named locations to plain lists."""
        return {
            "city_wall": [p.to_list() for p in self.city_wall_polygons],
            "long_walls": [p.to_list() for p in self.long_wall_polygons],
            "additional": [p.to_list() for p in self.additional_polygons],
            "acropolis": [p.to_list() for p in self.acropolis_polygons],
            "named_locations": {name: [pt.x, pt.y] for name, pt in self.named_locations.items()},
        }

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------
    def load(
        self,
        geojson: Optional[GeoJsonSource] = None,
        url: Optional[str] = None,
        origin: Optional[Mapping[str, float]] = None,
        projector: Optional[Projector] = None,
        session: Optional[requests.Session] = None,
        additional_polygons: Optional[Sequence[Sequence[Any]]] = None,
    ) -> "CollisionGeometry":
        """Rebuild all derived geometry from a feature collection.

        `geojson` may be a parsed dict, a path or a URL; when omitted the
        source is `url` or else `config.geojson_url`. Raises
        FeatureCollectionError for a malformed collection and
        ProjectionError when no origin can be inferred.
        """
        source = geojson if geojson is not None else (url or self.config.geojson_url)
        data = load_geojson(source, session=session)
        features = require_features(data)

        if projector is not None:
            self.projector = projector
        elif self.projector is None:
            resolved_origin = origin or average_geo_origin(features)
            if resolved_origin is None:
                raise ProjectionError("Unable to infer origin for projection")
            self.projector = LocalEquirectangularProjection(origin=resolved_origin)

        points = find_feature_points(features, self.projector)
        named = self._ingest_points(points)
        city_wall = self._build_city_wall(features, named)
        long_walls = self._build_long_walls(features)
        acropolis = self._build_acropolis(points, named)
        additional = self._build_additional(additional_polygons)

        self._model = CityModel(
            city_wall=tuple(city_wall),
            long_walls=tuple(long_walls),
            additional=tuple(additional),
            acropolis=tuple(acropolis),
            named_locations=named,
        )
        summary = self.summary()
        logger.info(
            "Collision geometry loaded: %d city wall, %d long wall, %d additional, %d cliff polygons; %d named locations",
            summary["city_wall_polygons"],
            summary["long_wall_polygons"],
            summary["additional_polygons"],
            summary["acropolis_polygons"],
            summary["named_locations"],
        )
        if self.telemetry_logger is not None:
            self.telemetry_logger.log_load(summary)
        return self

    def _ingest_points(self, points: Sequence[FeaturePoint]) -> Dict[str, Point2D]:
        named: Dict[str, Point2D] = {}
        for item in points:
            if item.name is not None:
                # Later duplicates overwrite earlier ones.
                named[item.name] = item.world
        return named

    def _build_city_wall(
        self,
        features: Sequence[Any],
        named: Mapping[str, Point2D],
    ) -> List[Polygon]:
        polylines = extract_polylines(features, self.projector, CITY_WALL, self.rules)
        polygons: List[Polygon] = []
        if polylines:
            for line in polylines:
                polygons.extend(
                    buffer_polyline(
                        line.points,
                        self.config.city_wall_buffer,
                        closed=False,
                        cap_segments=self.config.cap_segments,
                    )
                )
            return polygons

        hull = self._synthesize_city_perimeter(features, named)
        if len(hull) < 3:
            logger.warning("No city wall geometry and too few named locations to synthesize one")
            return polygons
        return buffer_polyline(
            hull,
            self.config.city_wall_buffer,
            closed=True,
            cap_segments=self.config.cap_segments,
        )

    def _synthesize_city_perimeter(
        self,
        features: Sequence[Any],
        named: Mapping[str, Point2D],
    ) -> List[Point2D]:
        """Convex hull of named locations near the reference point."""
        if not named:
            return []
        reference = named.get(self.config.reference_location) or vertex_mean(list(named.values()))
        flags = within_walls_flags(features)
        candidates = [
            location
            for name, location in named.items()
            if flags.get(name) is not False and distance(location, reference) <= self.config.city_point_radius
        ]
        logger.debug(
            "Synthesizing city wall from %d of %d named locations around (%.1f, %.1f)",
            len(candidates),
            len(named),
            reference.x,
            reference.y,
        )
        if len(candidates) < 3:
            return []
        return compute_convex_hull(candidates)

    def _build_long_walls(self, features: Sequence[Any]) -> List[Polygon]:
        polygons: List[Polygon] = []
        for line in extract_polylines(features, self.projector, LONG_WALL, self.rules):
            polygons.extend(
                buffer_polyline(
                    line.points,
                    self.config.long_wall_buffer,
                    closed=False,
                    cap_segments=self.config.cap_segments,
                )
            )
        return polygons

    def _build_acropolis(
        self,
        points: Sequence[FeaturePoint],
        named: Mapping[str, Point2D],
    ) -> List[Polygon]:
        center = named.get(ACROPOLIS_NAME)
        if center is None:
            return []
        major, minor = self.config.ellipse_radii()
        polygons: List[Polygon] = []
        ellipse = create_polygon_record(
            create_ellipse_polygon(center, major, minor, self.config.cliff_segments)
        )
        if ellipse is not None:
            polygons.append(ellipse)
        hill_radius = minor * self.config.hill_radius_factor
        for item in points:
            if item.name is None or "hill" not in item.name.lower():
                continue
            hill = create_polygon_record(
                create_circle_polygon(item.world, hill_radius, self.config.hill_segments)
            )
            if hill is not None:
                polygons.append(hill)
        return polygons

    def _build_additional(self, rings: Optional[Sequence[Sequence[Any]]]) -> List[Polygon]:
        polygons: List[Polygon] = []
        for ring in rings or ():
            polygon = create_polygon_record(ring)
            if polygon is not None:
                polygons.append(polygon)
        return polygons

    # ------------------------------------------------------------------
    # Slope
    # ------------------------------------------------------------------
    def set_slope_map(self, slope_map: Any, threshold: Optional[float] = None) -> None:
        """Swap the slope sampler; a finite `threshold` replaces the current one."""
        self._slope_sampler = normalize_slope_sampler(slope_map)
        if is_finite_number(threshold):
            self.slope_threshold = float(threshold)  # type: ignore[arg-type]

    def _slope_blocks(self, sampler: SlopeSampler, x: float, y: float) -> bool:
        try:
            slope = sampler(x, y)
        except Exception:  # noqa: BLE001 - external terrain callback
            logger.debug("Slope sampler raised at (%.2f, %.2f); treating as blocked", x, y, exc_info=True)
            return True
        if not is_finite_number(slope):
            return True
        return slope > self.slope_threshold

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def is_walkable(self, x: float, y: float) -> bool:
        """True if an agent may stand at planar position (x, y)."""
        if not (is_finite_number(x) and is_finite_number(y)):
            return False
        model = self._model
        if model is None:
            return True
        sampler = self._slope_sampler
        if sampler is not None:
            for polygon in model.acropolis:
                if point_in_polygon(x, y, polygon):
                    if self._slope_blocks(sampler, x, y):
                        return False
                    break
        else:
            for polygon in model.acropolis:
                if point_in_polygon(x, y, polygon):
                    return False
        for polygon in model.all_polygons:
            if point_in_polygon(x, y, polygon):
                return False
        return True

    def walkable_mask(self, xs: Any, ys: Any) -> np.ndarray:
        """Element-wise `is_walkable` over broadcastable coordinate arrays."""
        try:
            ax, ay = np.broadcast_arrays(
                np.asarray(xs, dtype=np.float64),
                np.asarray(ys, dtype=np.float64),
            )
        except (TypeError, ValueError):
            return np.zeros(np.shape(xs), dtype=bool)
        shape = ax.shape
        ax = ax.ravel()
        ay = ay.ravel()
        finite = np.isfinite(ax) & np.isfinite(ay)
        model = self._model
        if model is None:
            return finite.reshape(shape)
        blocked = ~finite
        sampler = self._slope_sampler
        if sampler is not None:
            unresolved = finite.copy()
            for polygon in model.acropolis:
                inside = points_in_polygon(ax, ay, polygon) & unresolved
                for i in np.flatnonzero(inside):
                    if self._slope_blocks(sampler, float(ax[i]), float(ay[i])):
                        blocked[i] = True
                unresolved &= ~inside
        else:
            for polygon in model.acropolis:
                blocked |= points_in_polygon(ax, ay, polygon)
        for polygon in model.all_polygons:
            blocked |= points_in_polygon(ax, ay, polygon)
        return (~blocked).reshape(shape)


def create_collision_geometry(
    config: Optional[CollisionConfig] = None,
    projector: Optional[Projector] = None,
    slope_map: Any = None,
    **load_kwargs: Any,
) -> CollisionGeometry:
    """Construct a CollisionGeometry and load it in one call."""
    geometry = CollisionGeometry(config=config, projector=projector, slope_map=slope_map)
    return geometry.load(**load_kwargs)
