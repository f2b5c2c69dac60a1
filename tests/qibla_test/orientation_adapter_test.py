import math

import pytest

from qibla.compass.models import OrientationEvent, Platform
from qibla.compass.orientation_adapter import heading_from_event, is_ios_family

ANDROID = Platform(user_agent="Mozilla/5.0 (Linux; Android 14; Pixel 8) Chrome/126.0 Mobile")
IPHONE = Platform(user_agent="Mozilla/5.0 (iPhone; CPU iPhone OS 17_5 like Mac OS X) Safari/604.1")
IPADOS = Platform(
    user_agent="Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) Safari/605.1.15",
    requires_orientation_permission=True,
)


def test_android_alpha_is_inverted():
    assert heading_from_event(OrientationEvent(alpha=90.0), ANDROID) == pytest.approx(270.0)


@pytest.mark.parametrize("platform", [ANDROID, IPHONE, IPADOS, Platform()])
def test_compass_heading_wins_on_every_platform(platform):
    event = OrientationEvent(alpha=200.0, compass_heading=45.0)
    assert heading_from_event(event, platform) == pytest.approx(45.0)


def test_ios_alpha_is_used_directly():
    assert heading_from_event(OrientationEvent(alpha=90.0), IPHONE) == pytest.approx(90.0)
    assert heading_from_event(OrientationEvent(alpha=90.0), IPADOS) == pytest.approx(90.0)


def test_android_alpha_zero_normalises_to_zero():
    assert heading_from_event(OrientationEvent(alpha=0.0), ANDROID) == 0.0


def test_compass_heading_is_normalised():
    assert heading_from_event(OrientationEvent(compass_heading=360.0), ANDROID) == 0.0


def test_event_without_heading_fields_is_discarded():
    assert heading_from_event(OrientationEvent(beta=10.0, gamma=-5.0), ANDROID) is None


def test_non_finite_compass_heading_falls_back_to_alpha():
    event = OrientationEvent(alpha=30.0, compass_heading=math.nan)
    assert heading_from_event(event, ANDROID) == pytest.approx(330.0)


def test_ios_family_detection():
    assert is_ios_family(IPHONE)
    assert is_ios_family(IPADOS)
    assert not is_ios_family(ANDROID)
    assert not is_ios_family(Platform())
