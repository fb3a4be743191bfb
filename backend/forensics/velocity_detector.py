"""
velocity_detector.py – Detect senders issuing bursts of transactions.

A sender is high-velocity when, starting from any of its transactions, more
than VELOCITY_MAX_TX of its transactions (the starting one included) fall
within VELOCITY_WINDOW_MINUTES.
"""
from __future__ import annotations

import logging
from typing import List

import numpy as np
import pandas as pd

from .config import VELOCITY_MAX_TX, VELOCITY_WINDOW_MINUTES

log = logging.getLogger(__name__)


def detect_high_velocity(df: pd.DataFrame) -> List[str]:
    """Return high-velocity sender IDs in first-appearance order."""
    window = np.timedelta64(int(VELOCITY_WINDOW_MINUTES * 60), "s")
    flagged: List[str] = []

    for sender, grp in df.groupby("sender_id", sort=False):
        if len(grp) <= VELOCITY_MAX_TX:
            continue
        times = np.sort(grp["timestamp"].to_numpy())
        # Number of transactions in [times[i], times[i] + window] for every i.
        counts = np.searchsorted(times, times + window, side="right") - np.arange(len(times))
        if (counts > VELOCITY_MAX_TX).any():
            flagged.append(sender)

    log.info("High-velocity accounts: %d", len(flagged))
    return flagged
