# qibla_session.py
# State machine behind one Qibla compass screen.
# Owns the location watch, the orientation listener, the heading smoother
# and the calibration state; the UI only observes snapshots.

import asyncio
import logging
import time
from typing import Callable, Optional

from .errors import (
    DeviceOrientationUnsupported,
    LocationDenied,
    LocationError,
    LocationUnavailable,
    NoOrientationSignal,
    OrientationError,
    OrientationPermissionDenied,
    QiblaError,
)
from .events import EventSource, Subscription
from .heading_smoother import HeadingSmoother
from .models import (
    BearingResult,
    CalibrationState,
    Coord,
    LocationFix,
    OrientationEvent,
    Platform,
    QiblaSnapshot,
)
from .orientation_adapter import heading_from_event
from .qibla_config import QiblaConfig
from .qibla_store import QiblaStore
from .sources import LocationService, OrientationSource

logger = logging.getLogger(__name__)


class QiblaSession:
    """
    Stateful Qibla engine for a single compass session.

    Typical lifecycle:
        session = QiblaSession(location_service, orientation_source, store=QiblaStore(config))
        session.subscribe(render)
        await session.start()
        ...
        session.dispose()

    Args:
        location_service:   Position provider.
        orientation_source: Device-orientation provider; None means unsupported.
        store:              Optional persisted state (last fix, permission flags).
        config:             Optional QiblaConfig; defaults to QiblaConfig().
        platform:           Runtime description used to interpret raw headings.
    """

    def __init__(
        self,
        location_service: LocationService,
        orientation_source: Optional[OrientationSource] = None,
        store: Optional[QiblaStore] = None,
        config: Optional[QiblaConfig] = None,
        platform: Optional[Platform] = None,
    ) -> None:
        self.config = config or QiblaConfig()
        self.platform = platform or Platform()
        self._location_service = location_service
        self._orientation_source = orientation_source
        self._store = store
        self._observers = EventSource("qibla")

        self._state = CalibrationState.INITIALIZING
        self._location: Optional[Coord] = None
        self._bearing: Optional[BearingResult] = None
        self._error: Optional[QiblaError] = None

        self._smoother = HeadingSmoother(self.config.smoothing_window)
        self._smoothed_heading: Optional[float] = None
        self._first_sample_at: Optional[float] = None
        self._event_clock = False               # True when samples carry their own timestamps
        self._valid_samples = 0

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._location_sub: Optional[Subscription] = None
        self._first_fix: Optional[asyncio.Future] = None
        self._orientation_sub: Optional[Subscription] = None
        self._probe_handle: Optional[asyncio.TimerHandle] = None

    # ------------------------------------------------------------------
    # Read-only properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> CalibrationState:
        return self._state

    @property
    def location(self) -> Optional[Coord]:
        return self._location

    @property
    def bearing(self) -> Optional[BearingResult]:
        return self._bearing

    @property
    def smoothed_heading(self) -> Optional[float]:
        return self._smoothed_heading

    @property
    def error(self) -> Optional[QiblaError]:
        return self._error

    @property
    def is_tracking_heading(self) -> bool:
        return self._orientation_sub is not None and self._orientation_sub.active

    @property
    def snapshot(self) -> QiblaSnapshot:
        error = self._error
        shown = error is not None and error.shows_error_panel
        return QiblaSnapshot(
            calibration_state=self._state,
            bearing_degrees=self._bearing.bearing_degrees if self._bearing else None,
            distance_miles=self._bearing.distance_miles if self._bearing else None,
            needle_rotation_degrees=self.current_needle_rotation(),
            error_message=error.user_message if shown else None,
            error_kind=error.kind if error else None,
            manual_mode_offered=bool(shown and error.offers_manual_mode),
            location=self._location,
            smoothed_heading=self._smoothed_heading,
        )

    def current_needle_rotation(self) -> Optional[float]:
        """
        Angle to rotate the needle by, in degrees.

        Calibrated: bearing minus the device heading, so the needle points at
        the Kaaba whichever way the phone faces. Otherwise the plain bearing
        from north. None until a location is known.
        """
        if self._bearing is None:
            return None
        if self._state is CalibrationState.CALIBRATED and self._smoothed_heading is not None:
            return self._bearing.bearing_degrees - self._smoothed_heading
        return self._bearing.bearing_degrees

    def subscribe(self, handler: Callable[[QiblaSnapshot], None]) -> Subscription:
        """Register for a snapshot after every state change."""
        return self._observers.subscribe(handler)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> QiblaSnapshot:
        """Show the cached fix, then acquire location and heading concurrently."""
        logger.info("Qibla session starting.")
        self._restore_cached_location()
        await asyncio.gather(self.acquire_location(), self.setup_heading_tracking())
        return self.snapshot

    async def retry(self) -> QiblaSnapshot:
        """Release everything, forget heading history and initialise again."""
        logger.info("Qibla session retry requested.")
        self.dispose()
        self._smoother = HeadingSmoother(self.config.smoothing_window)
        self._smoothed_heading = None
        self._first_sample_at = None
        self._event_clock = False
        self._valid_samples = 0
        self._error = None
        self._set_state(CalibrationState.INITIALIZING, "retry")
        self._notify()
        return await self.start()

    def use_manual_mode(self) -> None:
        """
        User accepted the manual-mode offer from the error panel.

        Only acknowledges an existing fallback; a calibrated or initialising
        session leaves that state through retry() alone.
        """
        if self._state is not CalibrationState.MANUAL_MODE:
            logger.info(f"Manual mode not offered in state {self._state.value}, ignoring.")
            return
        if isinstance(self._error, OrientationError):
            self._error = None
        if self._store is not None:
            self._store.log_event(self.snapshot, "manual_mode_selected")
        self._notify()

    def dispose(self) -> None:
        """Release the location watch, orientation listener and probe timer. Idempotent."""
        self._release_location()
        self._release_orientation()

    # ------------------------------------------------------------------
    # Location
    # ------------------------------------------------------------------

    async def acquire_location(self) -> Optional[BearingResult]:
        """
        Open a continuous location watch and wait for its first answer.

        Returns:
            The BearingResult after the first response (None if it failed
            and nothing was cached).
        """
        self._release_location()
        loop = asyncio.get_running_loop()
        first_fix = loop.create_future()
        self._first_fix = first_fix

        def on_error(error: LocationError) -> None:
            if not first_fix.done():
                first_fix.set_result(error)
            elif self._location is None:
                self._fail_location(error)
            else:
                logger.warning(f"Location watch error after a fix, keeping last position: {error}")

        def on_fix(fix: LocationFix) -> None:
            try:
                coord = fix.to_coord()
            except ValueError as e:
                on_error(LocationUnavailable(str(e)))
                return
            self._apply_location(coord, fix.accuracy_m)
            if not first_fix.done():
                first_fix.set_result(None)

        self._location_sub = self._location_service.watch_position(on_fix, on_error)
        error = await first_fix
        if error is not None:
            self._fail_location(error)
        return self._bearing

    async def refresh_location(self) -> Optional[BearingResult]:
        """One-shot position request on top of the running watch."""
        try:
            fix = await self._location_service.get_current_position()
            coord = fix.to_coord()
        except LocationError as e:
            self._fail_location(e)
            return self._bearing
        except ValueError as e:
            self._fail_location(LocationUnavailable(str(e)))
            return self._bearing
        self._apply_location(coord, fix.accuracy_m)
        return self._bearing

    def _restore_cached_location(self) -> None:
        if self._store is None or self._location is not None:
            return
        if not self._store.location_permission_granted():
            return
        cached = self._store.load_location()
        if cached is None:
            return
        self._location = cached
        self._bearing = BearingResult.between(cached)
        logger.info(f"Showing cached location {cached.format()} while waiting for a fix.")
        self._notify()

    def _apply_location(self, coord: Coord, accuracy_m: Optional[float] = None) -> None:
        self._location = coord
        self._bearing = BearingResult.between(coord)
        if isinstance(self._error, LocationError):
            self._error = None
        accuracy = f" ±{accuracy_m:.0f} m" if accuracy_m is not None else ""
        logger.info(
            f"Fix {coord.format()}{accuracy} → Qibla {self._bearing.bearing_degrees:.1f}° "
            f"({self._bearing.cardinal}), {self._bearing.distance_miles:.0f} mi"
        )
        if self._store is not None:
            self._store.save_location(coord)
        self._notify()

    def _fail_location(self, error: LocationError) -> None:
        logger.warning(f"Location request failed: {error.kind} ({error})")
        if isinstance(error, LocationDenied) and self._store is not None:
            self._store.set_location_permission(False)
        self._error = error
        if self._store is not None:
            self._store.log_event(self.snapshot, error.kind)
        self._notify()

    def _release_location(self) -> None:
        if self._location_sub is not None:
            self._location_sub.unsubscribe()
            self._location_sub = None
        if self._first_fix is not None and not self._first_fix.done():
            self._first_fix.set_result(None)
        self._first_fix = None

    # ------------------------------------------------------------------
    # Heading
    # ------------------------------------------------------------------

    async def setup_heading_tracking(self) -> CalibrationState:
        """
        Ask for orientation access if needed, start listening and arm the
        no-signal probe.

        Returns:
            Calibration state once setup has finished (INITIALIZING while
            samples are awaited, MANUAL_MODE if tracking is impossible).
        """
        self._release_orientation()
        self._loop = asyncio.get_running_loop()
        source = self._orientation_source

        if source is None or not source.supported:
            self._enter_manual_mode(DeviceOrientationUnsupported())
            return self._state

        if source.requires_permission:
            try:
                granted = await source.request_permission()
            except Exception as e:
                # requestPermission() rejects outright when not user-initiated
                logger.warning(f"Orientation permission request failed: {e}")
                granted = False
            if self._store is not None:
                self._store.set_orientation_permission(granted)
            if not granted:
                self._enter_manual_mode(OrientationPermissionDenied())
                return self._state

        self._orientation_sub = source.subscribe(self._on_orientation)
        self._probe_handle = self._loop.call_later(self.config.probe_timeout_s, self._on_probe_timeout)
        logger.info(f"Listening for orientation events (probe {self.config.probe_timeout_s:.1f}s).")
        return self._state

    def _on_orientation(self, event: OrientationEvent) -> None:
        heading = heading_from_event(event, self.platform)
        if heading is None:
            return

        if self._first_sample_at is None:
            # The first sample fixes the clock for the rest of the session.
            self._event_clock = event.timestamp is not None
            self._first_sample_at = self._sample_time(event)
            self._arm_calibration_deadline()
            logger.info("Orientation signal confirmed.")

        self._valid_samples += 1
        self._smoothed_heading = self._smoother.add_sample(heading)

        now = self._sample_time(event)
        if (
            self._state is CalibrationState.INITIALIZING
            and now is not None
            and self._valid_samples >= self.config.calibration_min_samples
            and now - self._first_sample_at >= self.config.calibration_window_s
        ):
            self._cancel_probe()
            self._set_state(CalibrationState.CALIBRATED, "calibrated")
        self._notify()

    def _sample_time(self, event: OrientationEvent) -> Optional[float]:
        """Event timestamp on an event-clock session, loop time otherwise.

        None when the session runs on event timestamps and this event has none;
        such a sample is smoothed but does not advance calibration.
        """
        if self._event_clock:
            return event.timestamp
        return self._now()

    def _arm_calibration_deadline(self) -> None:
        # Replaces the no-signal probe: samples must reach the threshold in time.
        self._cancel_probe()
        deadline = self.config.calibration_window_s + self.config.probe_timeout_s
        self._probe_handle = self._loop.call_later(deadline, self._on_calibration_timeout)

    def _on_probe_timeout(self) -> None:
        self._probe_handle = None
        if self._first_sample_at is None and self._state is CalibrationState.INITIALIZING:
            self._enter_manual_mode(NoOrientationSignal())

    def _on_calibration_timeout(self) -> None:
        self._probe_handle = None
        if self._state is CalibrationState.INITIALIZING:
            logger.info(f"Only {self._valid_samples} heading samples before the deadline.")
            self._enter_manual_mode(NoOrientationSignal())

    def _enter_manual_mode(self, error: OrientationError) -> None:
        self._release_orientation()
        if error.shows_error_panel:
            logger.warning(f"Heading tracking unavailable: {error.kind}")
            self._error = error
        else:
            logger.info(f"Falling back to manual mode: {error.kind}")
            if self._error is None:
                self._error = error
        self._set_state(CalibrationState.MANUAL_MODE, error.kind)
        self._notify()

    def _cancel_probe(self) -> None:
        if self._probe_handle is not None:
            self._probe_handle.cancel()
            self._probe_handle = None

    def _release_orientation(self) -> None:
        self._cancel_probe()
        if self._orientation_sub is not None:
            self._orientation_sub.unsubscribe()
            self._orientation_sub = None

    def _now(self) -> float:
        return self._loop.time() if self._loop is not None else time.monotonic()

    # ------------------------------------------------------------------
    # Notification
    # ------------------------------------------------------------------

    def _set_state(self, state: CalibrationState, event: str) -> None:
        if state is self._state:
            return
        logger.info(f"Calibration state {self._state.value} → {state.value} ({event})")
        self._state = state
        if self._store is not None:
            self._store.log_event(self.snapshot, event)

    def _notify(self) -> None:
        self._observers.emit(self.snapshot)
