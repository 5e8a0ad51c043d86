"""
Top-level package for the city collision / walkability engine.

Components:
- projection: local equirectangular lat/lon -> meters projection
- geometry_utils: point/polygon types, point-in-polygon, convex hull
- shapes: segment rectangles, circle/ellipse rings, polyline buffering
- features: GeoJSON loading, wall classification rules, extraction
- slope: slope sampler variants for cliff gating
- collision: CollisionGeometry, the walkability query object
- render: pygame-based debug visualization (imported on demand)
"""

from .collision import (
    CityModel,
    CollisionConfig,
    CollisionGeometry,
    create_collision_geometry,
)
from .features import ClassificationRule, FeatureCollectionError, classify_feature, load_geojson
from .geometry_utils import Point2D, Polygon, compute_convex_hull, point_in_polygon
from .projection import LocalEquirectangularProjection, ProjectionError
from .shapes import buffer_polyline, create_circle_polygon, create_ellipse_polygon
from .slope import CallbackSlopeSampler, SampledSlopeSampler, normalize_slope_sampler

__all__ = [
    "CityModel",
    "CollisionConfig",
    "CollisionGeometry",
    "create_collision_geometry",
    "ClassificationRule",
    "FeatureCollectionError",
    "classify_feature",
    "load_geojson",
    "Point2D",
    "Polygon",
    "compute_convex_hull",
    "point_in_polygon",
    "LocalEquirectangularProjection",
    "ProjectionError",
    "buffer_polyline",
    "create_circle_polygon",
    "create_ellipse_polygon",
    "CallbackSlopeSampler",
    "SampledSlopeSampler",
    "normalize_slope_sampler",
]
