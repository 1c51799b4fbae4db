"""Simulated exchange reserves.

No free reserves feed exists, so the series is synthetic: a noisy level
around 2,000,000 units drifting down by 200,000 over the period.
"""
from typing import Optional

import numpy as np
import pandas as pd

from .base import ReservesSource

BASE_LEVEL = 2_000_000.0
NOISE_AMPLITUDE = 100_000.0
TOTAL_DRIFT = -200_000.0


class SimulatedReservesSource(ReservesSource):
    """Seeded synthetic reserves on midnight-UTC daily timestamps ending today.

    Args:
        seed: Seed for the noise generator
        end: Last day of the series (defaults to today, UTC)
    """

    name = "simulated_reserves"

    def __init__(self, seed: Optional[int] = 1337, end=None):
        self.seed = seed
        self.end = end

    def fetch(self, asset: str = "BTC", days: int = 365) -> pd.DataFrame:
        end = pd.Timestamp(self.end) if self.end is not None else pd.Timestamp.now(tz='UTC')
        end = (end.tz_localize('UTC') if end.tzinfo is None else end.tz_convert('UTC')).normalize()
        timestamps = pd.date_range(end=end, periods=days, freq='D')

        rng = np.random.default_rng(self.seed)
        noise = rng.uniform(-1.0, 1.0, size=days) * NOISE_AMPLITUDE
        trend = TOTAL_DRIFT * np.arange(days) / max(days - 1, 1)
        return pd.DataFrame({'timestamp': timestamps, 'value': BASE_LEVEL + noise + trend})
