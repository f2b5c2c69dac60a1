# models.py
# Shared data structures and enums used across all modules.

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .geo_utils import calculate_bearing, cardinal_direction, distance_miles
from .qibla_config import KAABA_LAT, KAABA_LON


# ---------------------------------------------------------------------------
# Coordinate
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Coord:
    """Immutable geographic coordinate, validated on construction."""
    lat: float
    lon: float

    def __post_init__(self) -> None:
        if not (math.isfinite(self.lat) and math.isfinite(self.lon)):
            raise ValueError(f"Coordinate must be finite, got ({self.lat}, {self.lon})")
        if not -90.0 <= self.lat <= 90.0:
            raise ValueError(f"Latitude out of range: {self.lat}")
        if not -180.0 <= self.lon <= 180.0:
            raise ValueError(f"Longitude out of range: {self.lon}")

    def format(self) -> str:
        return f"{self.lat:.4f}, {self.lon:.4f}"

    def to_dict(self) -> dict:
        return {"lat": self.lat, "lon": self.lon}

    @staticmethod
    def from_dict(d: dict) -> "Coord":
        return Coord(float(d["lat"]), float(d["lon"]))


KAABA = Coord(KAABA_LAT, KAABA_LON)


@dataclass(frozen=True)
class LocationFix:
    """A single raw position report from the location service (unvalidated)."""
    latitude: float
    longitude: float
    accuracy_m: Optional[float] = None
    timestamp: Optional[float] = None

    def to_coord(self) -> Coord:
        """Raises ValueError for a non-finite or out-of-range fix."""
        return Coord(self.latitude, self.longitude)

    @staticmethod
    def at(coord: Coord, accuracy_m: Optional[float] = None) -> "LocationFix":
        return LocationFix(coord.lat, coord.lon, accuracy_m=accuracy_m)


# ---------------------------------------------------------------------------
# Bearing
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BearingResult:
    """Direction and distance from the user to the Kaaba."""
    bearing_degrees: float       # [0, 360), clockwise from true north
    distance_miles: float

    @property
    def distance_km(self) -> float:
        return self.distance_miles * 1.609344

    @property
    def cardinal(self) -> str:
        return cardinal_direction(self.bearing_degrees)

    @staticmethod
    def between(origin: Coord, target: Coord = KAABA) -> "BearingResult":
        """Bearing and distance from origin to target (the Kaaba by default)."""
        return BearingResult(
            bearing_degrees=calculate_bearing(origin.lat, origin.lon, target.lat, target.lon),
            distance_miles=distance_miles(origin.lat, origin.lon, target.lat, target.lon),
        )


# ---------------------------------------------------------------------------
# Device orientation
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class OrientationEvent:
    """Raw device-orientation reading. None means the field was not reported."""
    alpha: Optional[float] = None
    beta: Optional[float] = None
    gamma: Optional[float] = None
    compass_heading: Optional[float] = None    # iOS webkitCompassHeading
    timestamp: Optional[float] = None          # seconds


@dataclass(frozen=True)
class Platform:
    """What we know about the runtime the sensor events come from."""
    user_agent: str = ""
    requires_orientation_permission: bool = False


# ---------------------------------------------------------------------------
# Session status
# ---------------------------------------------------------------------------

class CalibrationState(Enum):
    INITIALIZING = "initializing"
    CALIBRATED   = "calibrated"
    MANUAL_MODE  = "manual_mode"


@dataclass
class QiblaSnapshot:
    """Emitted by QiblaSession on every state change."""
    calibration_state: CalibrationState
    bearing_degrees: Optional[float] = None
    distance_miles: Optional[float] = None
    needle_rotation_degrees: Optional[float] = None
    error_message: Optional[str] = None
    error_kind: Optional[str] = None
    manual_mode_offered: bool = False
    location: Optional[Coord] = None
    smoothed_heading: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "calibration_state": self.calibration_state.value,
            "bearing_degrees": self.bearing_degrees,
            "distance_miles": self.distance_miles,
            "needle_rotation_degrees": self.needle_rotation_degrees,
            "error_message": self.error_message,
            "error_kind": self.error_kind,
            "manual_mode_offered": self.manual_mode_offered,
            "location": self.location.to_dict() if self.location else None,
            "smoothed_heading": self.smoothed_heading,
        }
