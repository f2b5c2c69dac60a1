# geo_utils.py
# Spherical-earth formulas for the Qibla bearing and distance, plus
# angle wrapping and compass labels. Deterministic, no state.

import math

from .qibla_config import EARTH_RADIUS_M, EARTH_RADIUS_MILES


COMPASS_POINTS = (
    "N", "NNE", "NE", "ENE", "E", "ESE", "SE", "SSE",
    "S", "SSW", "SW", "WSW", "W", "WNW", "NW", "NNW",
)


def normalize_degrees(angle: float) -> float:
    """Wrap any angle into [0, 360)."""
    return ((angle % 360) + 360) % 360


def _central_angle(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Haversine central angle in radians between two points."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    half_d_phi = (phi2 - phi1) / 2
    half_d_lambda = math.radians(lon2 - lon1) / 2
    h = math.sin(half_d_phi) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(half_d_lambda) ** 2
    return 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance between two points in metres.

    Args:
        lat1, lon1: Origin in decimal degrees.
        lat2, lon2: Destination in decimal degrees.

    Returns:
        Distance in metres.
    """
    return EARTH_RADIUS_M * _central_angle(lat1, lon1, lat2, lon2)


def distance_miles(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance between two points in miles (R = 3959 mi).

    Args:
        lat1, lon1: Origin in decimal degrees.
        lat2, lon2: Destination in decimal degrees.

    Returns:
        Distance in miles, 0.0 for identical points.
    """
    return EARTH_RADIUS_MILES * _central_angle(lat1, lon1, lat2, lon2)


def calculate_bearing(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Forward azimuth (bearing) from point 1 to point 2 in degrees [0, 360).

    The bearing from a point to itself is undefined; 0.0 is returned.

    Args:
        lat1, lon1: Origin in decimal degrees.
        lat2, lon2: Destination in decimal degrees.

    Returns:
        Bearing in degrees.
    """
    if lat1 == lat2 and lon1 == lon2:
        return 0.0
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_lambda = math.radians(lon2) - math.radians(lon1)
    east = math.sin(d_lambda) * math.cos(phi2)
    north = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(d_lambda)
    theta = math.degrees(math.atan2(east, north))
    return (theta + 360) % 360


def cardinal_direction(bearing: float) -> str:
    """
    16-point compass label for a bearing, e.g. 58.5 -> "ENE".

    Args:
        bearing: Bearing in degrees, any range.

    Returns:
        Compass point string.
    """
    index = int((normalize_degrees(bearing) + 11.25) // 22.5) % 16
    return COMPASS_POINTS[index]
