"""
Geo helpers - great-circle distances and search boxes.

The session store has no native geo-radius query, so every radius or
vicinity filter runs client-side with these helpers.
"""

import math

from flipapp.models.location import GeoPoint

EARTH_RADIUS_METERS = 6_371_008.8
METERS_PER_MILE = 1609.34


def haversine_meters(a: GeoPoint, b: GeoPoint) -> float:
    """Straight-line (great-circle) distance between two points, in meters."""
    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    d_lat = lat2 - lat1
    d_lon = math.radians(b.longitude - a.longitude)

    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
    )
    return 2 * EARTH_RADIUS_METERS * math.asin(min(1.0, math.sqrt(h)))


def miles_to_meters(miles: float) -> float:
    return miles * METERS_PER_MILE


def meters_to_latitude_degrees(meters: float) -> float:
    """Degrees of latitude spanned by `meters` along a meridian."""
    return math.degrees(meters / EARTH_RADIUS_METERS)


def bounding_box(center: GeoPoint, span_degrees: float) -> tuple[float, float, float, float]:
    """
    Box of `span_degrees` around `center`, as (west, north, east, south).

    A 0.002° span is roughly 200 m across.
    """
    half = span_degrees / 2
    return (
        center.longitude - half,
        min(90.0, center.latitude + half),
        center.longitude + half,
        max(-90.0, center.latitude - half),
    )
