# sources.py
# Contracts for the two sensor collaborators QiblaSession depends on,
# plus simulated implementations used by the CLI and the tests.
# Real bindings (browser, mobile shell) subclass the two base classes.

import asyncio
import logging
from typing import Callable, Iterable, List, Optional, Union

from .errors import LocationError, LocationUnavailable
from .events import EventSource, Subscription
from .models import Coord, LocationFix, OrientationEvent

logger = logging.getLogger(__name__)

FixHandler = Callable[[LocationFix], None]
ErrorHandler = Callable[[LocationError], None]
LocationItem = Union[LocationFix, Coord, LocationError]


# ---------------------------------------------------------------------------
# Contracts
# ---------------------------------------------------------------------------

class LocationService:
    """Position provider (Geolocation API style)."""

    def watch_position(self, on_fix: FixHandler, on_error: ErrorHandler) -> Subscription:
        """Continuous fixes until the returned subscription is cancelled."""
        raise NotImplementedError

    async def get_current_position(self) -> LocationFix:
        """One-shot fix. Raises a LocationError subclass on failure."""
        raise NotImplementedError


class OrientationSource:
    """Device-orientation event stream (DeviceOrientationEvent style)."""

    supported: bool = True
    requires_permission: bool = False

    async def request_permission(self) -> bool:
        """Ask the platform for access. Only meaningful when requires_permission."""
        return True

    def subscribe(self, handler: Callable[[OrientationEvent], None]) -> Subscription:
        raise NotImplementedError


# ---------------------------------------------------------------------------
# Simulated location
# ---------------------------------------------------------------------------

def _as_item(item: LocationItem) -> Union[LocationFix, LocationError]:
    if isinstance(item, Coord):
        return LocationFix.at(item)
    return item


class SimulatedLocationService(LocationService):
    """
    Replays queued fixes/errors to every new watcher, then forwards
    whatever is pushed while the watch is open.

    Args:
        initial: Items delivered (asynchronously, in order) to each new watcher.
    """

    def __init__(self, initial: Optional[Iterable[LocationItem]] = None) -> None:
        self._initial: List[Union[LocationFix, LocationError]] = [
            _as_item(i) for i in (initial or [])
        ]
        self._watchers = EventSource("location")
        self._last: Optional[Union[LocationFix, LocationError]] = (
            self._initial[-1] if self._initial else None
        )
        self.watch_calls = 0

    @property
    def watcher_count(self) -> int:
        return self._watchers.listener_count

    def watch_position(self, on_fix: FixHandler, on_error: ErrorHandler) -> Subscription:
        self.watch_calls += 1

        def dispatch(item: Union[LocationFix, LocationError]) -> None:
            if isinstance(item, LocationError):
                on_error(item)
            else:
                on_fix(item)

        sub = self._watchers.subscribe(dispatch)
        loop = asyncio.get_running_loop()
        for item in self._initial:
            loop.call_soon(self._deliver, sub, item)
        return sub

    @staticmethod
    def _deliver(sub: Subscription, item: Union[LocationFix, LocationError]) -> None:
        if sub.active:
            sub.handler(item)

    def push(self, item: LocationItem) -> None:
        """Deliver a fix (or error) to every open watch."""
        item = _as_item(item)
        self._last = item
        self._watchers.emit(item)

    async def get_current_position(self) -> LocationFix:
        if self._last is None:
            raise LocationUnavailable("no simulated fix queued")
        if isinstance(self._last, LocationError):
            raise self._last
        return self._last


# ---------------------------------------------------------------------------
# Simulated orientation
# ---------------------------------------------------------------------------

class SimulatedOrientationSource(OrientationSource):
    """
    Orientation source driven by the caller through emit().

    Args:
        supported:           False mimics a browser without the API.
        requires_permission: True mimics the iOS 13+ permission prompt.
        grant:               Answer given to request_permission().
        permission_error:    Raised by request_permission() instead of answering.
    """

    def __init__(
        self,
        supported: bool = True,
        requires_permission: bool = False,
        grant: bool = True,
        permission_error: Optional[Exception] = None,
    ) -> None:
        self.supported = supported
        self.requires_permission = requires_permission
        self._grant = grant
        self._permission_error = permission_error
        self._listeners = EventSource("orientation")
        self.permission_requests = 0

    @property
    def listener_count(self) -> int:
        return self._listeners.listener_count

    async def request_permission(self) -> bool:
        self.permission_requests += 1
        if self._permission_error is not None:
            raise self._permission_error
        return self._grant

    def subscribe(self, handler: Callable[[OrientationEvent], None]) -> Subscription:
        return self._listeners.subscribe(handler)

    def emit(self, event: OrientationEvent) -> None:
        self._listeners.emit(event)

    def emit_stream(
        self,
        duration_s: float,
        rate_hz: float = 60.0,
        start: float = 0.0,
        **fields: float,
    ) -> int:
        """
        Emit a constant reading with synthetic timestamps spanning duration_s.

        Returns:
            Number of events emitted.
        """
        count = int(duration_s * rate_hz) + 1
        for i in range(count):
            self.emit(OrientationEvent(timestamp=start + i / rate_hz, **fields))
        logger.debug(f"Emitted {count} simulated orientation events")
        return count
