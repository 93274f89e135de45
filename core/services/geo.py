"""Spherical geometry helpers.

Positions are interpolated along the great circle joining them so that tracks
crossing the antimeridian or running close to a pole stay on the shortest path.
"""

from __future__ import annotations

import math

from core.models import LatLng

EARTH_RADIUS_M = 6371000.0


def _to_vector(p: LatLng) -> tuple[float, float, float]:
    lat, lng = math.radians(p.lat), math.radians(p.lng)
    return (math.cos(lat) * math.cos(lng), math.cos(lat) * math.sin(lng), math.sin(lat))


def haversine_m(a: LatLng, b: LatLng) -> float:
    """Great-circle distance between `a` and `b` in meters."""
    phi1, phi2 = math.radians(a.lat), math.radians(b.lat)
    dphi, dlon = math.radians(b.lat - a.lat), math.radians(b.lng - a.lng)
    h = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlon / 2) ** 2
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def angular_distance(a: LatLng, b: LatLng) -> float:
    """Central angle between `a` and `b` in radians."""
    return haversine_m(a, b) / EARTH_RADIUS_M


def interpolate(start: LatLng, end: LatLng, fraction: float) -> LatLng:
    """Return the point at `fraction` of the way from `start` to `end`.

    Uses spherical linear interpolation. `fraction` 0 gives `start` and 1 gives
    `end`; values outside [0, 1] extrapolate along the same great circle.
    """
    if start == end or fraction == 0:
        return start
    if fraction == 1:
        return end

    angle = angular_distance(start, end)
    sin_angle = math.sin(angle)
    if sin_angle < 1e-12:
        # Coincident points (or numerically so).
        return start

    a = math.sin((1 - fraction) * angle) / sin_angle
    b = math.sin(fraction * angle) / sin_angle
    x1, y1, z1 = _to_vector(start)
    x2, y2, z2 = _to_vector(end)
    x = a * x1 + b * x2
    y = a * y1 + b * y2
    z = a * z1 + b * z2

    lat = math.degrees(math.atan2(z, math.sqrt(x * x + y * y)))
    lng = math.degrees(math.atan2(y, x))
    return LatLng(lat, lng)
