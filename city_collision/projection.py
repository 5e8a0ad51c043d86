"""
Local equirectangular projection from WGS84 lat/lon to planar meters.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Optional, Protocol, Sequence
import math

from .geometry_utils import Point2D


EARTH_RADIUS_METERS = 6378137.0


class ProjectionError(ValueError):
    """No projection could be built (for example, no origin available)."""


class Projector(Protocol):
    """Anything that maps a {lat, lon} coordinate to local planar meters."""

    def project(self, coordinate: Mapping[str, float]) -> Point2D:
        ...


def deg_to_rad(degrees: float) -> float:
    return degrees * math.pi / 180.0


def rad_to_deg(radians: float) -> float:
    return radians * 180.0 / math.pi


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class LocalEquirectangularProjection:
    """Equirectangular projection centered on a geographic origin.

    Parameters
    ----------
    origin : mapping
        {"lat": ..., "lon": ...} of the local coordinate origin.
    rotation_degrees : float
        Grid rotation applied after projection, clockwise from east.
    radius : float
        Earth radius in meters.
    """

    def __init__(
        self,
        origin: Mapping[str, float],
        rotation_degrees: float = 0.0,
        radius: float = EARTH_RADIUS_METERS,
    ) -> None:
        if not isinstance(origin, Mapping) or not _is_number(origin.get("lat")) or not _is_number(origin.get("lon")):
            raise TypeError("Origin with numeric lat and lon must be provided")
        self.radius = float(radius)
        self.origin_lat = float(origin["lat"])
        self.origin_lon = float(origin["lon"])
        self.origin_lat_rad = deg_to_rad(self.origin_lat)
        self.origin_lon_rad = deg_to_rad(self.origin_lon)
        self._cos_origin_lat = math.cos(self.origin_lat_rad)
        self.set_rotation(rotation_degrees)

    def set_rotation(self, rotation_degrees: float = 0.0) -> None:
        """Update the rotation of the local grid."""
        self.rotation_degrees = float(rotation_degrees)
        self.rotation_radians = deg_to_rad(-self.rotation_degrees)
        self._cos_rotation = math.cos(self.rotation_radians)
        self._sin_rotation = math.sin(self.rotation_radians)

    def project(
        self,
        coordinate: Optional[Mapping[str, float]] = None,
        *,
        lat: Optional[float] = None,
        lon: Optional[float] = None,
    ) -> Point2D:
        """Project a WGS84 coordinate into the local plane (meters)."""
        if coordinate is not None:
            if not isinstance(coordinate, Mapping):
                raise TypeError("Coordinate must be a mapping with lat and lon")
            lat = coordinate.get("lat")
            lon = coordinate.get("lon")
        if not _is_number(lat) or not _is_number(lon):
            raise TypeError("Coordinate must contain numeric lat and lon")

        x = self.radius * (deg_to_rad(lon) - self.origin_lon_rad) * self._cos_origin_lat
        y = self.radius * (deg_to_rad(lat) - self.origin_lat_rad)

        rx = x * self._cos_rotation - y * self._sin_rotation
        ry = x * self._sin_rotation + y * self._cos_rotation
        return Point2D(rx, ry)

    def project_geojson_position(self, position: Sequence[float]) -> Point2D:
        """Project a GeoJSON [lon, lat] position."""
        if not isinstance(position, (list, tuple)) or len(position) < 2:
            raise TypeError("GeoJSON position must be a [lon, lat] array")
        lon, lat = position[0], position[1]
        return self.project(lat=lat, lon=lon)

    def __repr__(self) -> str:
        return (
            f"LocalEquirectangularProjection(origin=({self.origin_lat}, {self.origin_lon}), "
            f"rotation_degrees={self.rotation_degrees})"
        )
