# errors.py
# Failure taxonomy for the Qibla engine.
# QiblaSession catches every QiblaError and turns it into snapshot state;
# nothing here is meant to reach the UI as an exception.

from typing import Optional


class QiblaError(Exception):
    """Base class. `kind` is a stable identifier, `user_message` is shown in the UI."""

    kind: str = "qibla_error"
    default_message: Optional[str] = "Something went wrong."
    shows_error_panel: bool = True
    offers_manual_mode: bool = False

    def __init__(self, detail: Optional[str] = None) -> None:
        super().__init__(detail or self.default_message or self.kind)
        self.detail = detail

    @property
    def user_message(self) -> Optional[str]:
        return self.default_message


# ---------------------------------------------------------------------------
# Location
# ---------------------------------------------------------------------------

class LocationError(QiblaError):
    kind = "location_error"


class LocationDenied(LocationError):
    kind = "location_denied"
    default_message = "Location access denied"


class LocationUnavailable(LocationError):
    kind = "location_unavailable"
    default_message = "Your position is currently unavailable"


class LocationTimeout(LocationError):
    kind = "location_timeout"
    default_message = "Timed out while getting your location"


# Geolocation API PositionError codes
_LOCATION_ERROR_CODES = {
    1: LocationDenied,
    2: LocationUnavailable,
    3: LocationTimeout,
}


def location_error_from_code(code: int, detail: Optional[str] = None) -> LocationError:
    """Map a Geolocation API error code to the matching exception instance."""
    return _LOCATION_ERROR_CODES.get(code, LocationUnavailable)(detail)


# ---------------------------------------------------------------------------
# Orientation
# ---------------------------------------------------------------------------

class OrientationError(QiblaError):
    kind = "orientation_error"


class OrientationPermissionDenied(OrientationError):
    kind = "orientation_permission_denied"
    default_message = "Compass permission denied"
    offers_manual_mode = True


class NoOrientationSignal(OrientationError):
    """Probe window elapsed without a single usable heading sample."""
    kind = "no_orientation_signal"
    default_message = None
    shows_error_panel = False


class DeviceOrientationUnsupported(OrientationError):
    kind = "device_orientation_unsupported"
    default_message = None
    shows_error_panel = False
