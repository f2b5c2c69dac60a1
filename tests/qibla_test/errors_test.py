import pytest

from qibla.compass.errors import (
    DeviceOrientationUnsupported,
    LocationDenied,
    LocationTimeout,
    LocationUnavailable,
    NoOrientationSignal,
    OrientationPermissionDenied,
    location_error_from_code,
)


@pytest.mark.parametrize("code, cls", [
    (1, LocationDenied),
    (2, LocationUnavailable),
    (3, LocationTimeout),
    (99, LocationUnavailable),
])
def test_geolocation_codes_map_to_errors(code, cls):
    error = location_error_from_code(code, "from browser")
    assert type(error) is cls
    assert error.detail == "from browser"


def test_only_denied_cases_offer_manual_mode():
    assert OrientationPermissionDenied().offers_manual_mode
    assert not LocationDenied().offers_manual_mode


def test_silent_fallbacks_have_no_message():
    for error in (NoOrientationSignal(), DeviceOrientationUnsupported()):
        assert not error.shows_error_panel
        assert error.user_message is None
        assert str(error) == error.kind
