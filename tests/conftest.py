import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = PROJECT_ROOT / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from qibla.compass.qibla_config import QiblaConfig
from qibla.compass.qibla_store import QiblaStore


@pytest.fixture()
def fast_config(tmp_path) -> QiblaConfig:
    """Short timing windows so async scenarios finish in well under a second."""
    return QiblaConfig(
        probe_timeout_s=0.05,
        calibration_window_s=1.5,
        log_dir=str(tmp_path),
    )


@pytest.fixture()
def store(fast_config) -> QiblaStore:
    return QiblaStore(fast_config)
