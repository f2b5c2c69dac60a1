# heading_smoother.py
# Circular moving average over the last N compass headings.

from collections import deque
from typing import Deque, Tuple

import numpy as np

from .geo_utils import normalize_degrees


class HeadingSmoother:
    """
    Keeps a FIFO of recent headings and returns their circular mean.

    Headings are averaged as unit vectors, so 350° and 10° average to 0°
    rather than 180°.

    Usage:
        smoother = HeadingSmoother(window=5)

        # Inside the orientation callback:
        smoothed = smoother.add_sample(heading)
    """

    def __init__(self, window: int = 5) -> None:
        if window < 1:
            raise ValueError("window must be at least 1")
        self.window = window
        self._history: Deque[float] = deque(maxlen=window)

    def __len__(self) -> int:
        return len(self._history)

    @property
    def samples(self) -> Tuple[float, ...]:
        """Held samples, oldest first."""
        return tuple(self._history)

    def add_sample(self, heading: float) -> float:
        """Append a heading (oldest is evicted when full) and return the new mean."""
        self._history.append(float(heading))
        return self.mean()

    def mean(self) -> float:
        if not self._history:
            raise ValueError("HeadingSmoother.mean() called with no samples")
        angles = np.radians(np.fromiter(self._history, dtype=float))
        avg_sin = np.sin(angles).mean()
        avg_cos = np.cos(angles).mean()
        return normalize_degrees(float(np.degrees(np.arctan2(avg_sin, avg_cos))))
