# orientation_adapter.py
# Turns a raw device-orientation event into one compass heading in [0, 360),
# 0 = top of the device points north.

import math
import re
from typing import Optional

from .geo_utils import normalize_degrees
from .models import OrientationEvent, Platform


_IOS_UA = re.compile(r"iPhone|iPad|iPod", re.IGNORECASE)


def _present(value: Optional[float]) -> bool:
    return value is not None and math.isfinite(value)


def is_ios_family(platform: Platform) -> bool:
    """
    Best-effort iOS detection.

    iPadOS reports a desktop Safari user agent, so the permission-gated
    orientation API (iOS 13+) is accepted as evidence too.
    """
    if platform.requires_orientation_permission:
        return True
    return bool(_IOS_UA.search(platform.user_agent or ""))


def heading_from_event(event: OrientationEvent, platform: Platform) -> Optional[float]:
    """
    Resolve the heading carried by an orientation event.

    Priority:
        1. compass_heading (already referenced to north by the OS)
        2. alpha as-is on iOS-family devices
        3. 360 - alpha elsewhere (alpha runs counter-clockwise)

    Args:
        event:    Raw orientation reading.
        platform: Runtime description used for the iOS fallback.

    Returns:
        Heading in degrees [0, 360), or None when the event carries nothing usable.
    """
    if _present(event.compass_heading):
        heading = event.compass_heading
    elif _present(event.alpha) and is_ios_family(platform):
        heading = event.alpha
    elif _present(event.alpha):
        heading = 360 - event.alpha
    else:
        return None
    return normalize_degrees(heading)
