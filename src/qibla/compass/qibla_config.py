# qibla_config.py
# All tuneable constants in one place.
# Pass a QiblaConfig instance to every module that needs settings.

import os
from dataclasses import dataclass


# ---------------------------------------------------------------------------
# Earth model constants (used by geo_utils)
# ---------------------------------------------------------------------------

EARTH_RADIUS_MILES: float = 3959.0
EARTH_RADIUS_M: float = 6_371_000.0

KAABA_LAT: float = 21.4224779
KAABA_LON: float = 39.8251832


# ---------------------------------------------------------------------------
# Main config
# ---------------------------------------------------------------------------

@dataclass
class QiblaConfig:
    # Heading smoothing
    smoothing_window: int = 5              # samples kept for the circular mean

    # Calibration
    probe_timeout_s: float = 2.0           # no valid sample within this → manual mode
    calibration_window_s: float = 1.5      # seconds of samples before "calibrated"
    calibration_min_samples: int = 5

    # Persistence
    log_dir: str = "."                     # directory for state + session log
    state_filename: str = "qibla_state.json"
    event_log_filename: str = "qibla_session.jsonl"

    def __post_init__(self) -> None:
        if self.smoothing_window < 1:
            raise ValueError("smoothing_window must be at least 1")
        if self.probe_timeout_s <= 0 or self.calibration_window_s < 0:
            raise ValueError("timing windows must be positive")

    @property
    def state_filepath(self) -> str:
        return os.path.join(self.log_dir, self.state_filename)

    @property
    def event_log_filepath(self) -> str:
        return os.path.join(self.log_dir, self.event_log_filename)
