"""
smurf_detector.py – Detect smurfing patterns (fan-in / fan-out).

Smurfing
--------
  Fan-in  : SMURF_MIN_COUNTERPARTIES+ unique senders → 1 receiver within a
            SMURF_WINDOW_HOURS sliding window, with the funds consolidated
            onward (mule / collection account).
  Fan-out : 1 sender → SMURF_MIN_COUNTERPARTIES+ unique receivers, all of its
            outgoing transfers inside one SMURF_WINDOW_HOURS span (distributor).

False-positive control (fan-in)
-------------------------------
A qualifying window is rejected when
  • its median incoming amount is ≥ SMURF_SMALL_TX_THRESHOLD – large
    legitimate payments, not structured deposits;
  • one sender pays roughly daily (20–28 h gaps) near-identical amounts –
    a salary / recurring-payment recipient;
  • less than SMURF_CONSOLIDATION_RATIO of the window's incoming total leaves
    the account within SMURF_WINDOW_HOURS of the first incoming transfer.

The first window that survives these checks ends the search; the hub's
counterparties are all senders from that window's first transfer up to
SMURF_WINDOW_HOURS later.

Accounts already claimed by an SCC ring are skipped on both sides; rings
take precedence over smurfing.
"""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Dict, List, Set, Tuple

import numpy as np
import pandas as pd

from .config import (
    RING_RISK,
    SALARY_AMOUNT_TOLERANCE,
    SALARY_GAP_MAX_HOURS,
    SALARY_GAP_MIN_HOURS,
    SALARY_MATCH_RATIO,
    SALARY_MIN_TX,
    SMURF_CONSOLIDATION_RATIO,
    SMURF_MIN_COUNTERPARTIES,
    SMURF_SMALL_TX_THRESHOLD,
    SMURF_WINDOW_HOURS,
)
from .utils import sliding_windows, unique_in_order

log = logging.getLogger(__name__)


def _is_salary_pattern(senders: list, times: list, amounts: list) -> bool:
    """
    True if any single sender in the (time-sorted) window pays at a daily
    rhythm with near-identical amounts on at least SALARY_MATCH_RATIO of its
    consecutive gaps.
    """
    by_sender: Dict[str, List[Tuple]] = {}
    for sender, ts, amount in zip(senders, times, amounts):
        by_sender.setdefault(sender, []).append((ts, amount))

    for payments in by_sender.values():
        if len(payments) < SALARY_MIN_TX:
            continue
        daily_matches = 0
        for (prev_ts, prev_amt), (ts, amt) in zip(payments, payments[1:]):
            hours = (ts - prev_ts).total_seconds() / 3600
            if not SALARY_GAP_MIN_HOURS <= hours <= SALARY_GAP_MAX_HOURS:
                continue
            if prev_amt > 0 and abs(amt - prev_amt) / prev_amt < SALARY_AMOUNT_TOLERANCE:
                daily_matches += 1
        if daily_matches >= (len(payments) - 1) * SALARY_MATCH_RATIO:
            return True
    return False


def _outgoing_index(df: pd.DataFrame) -> Dict[str, Tuple[list, list]]:
    """sender → (timestamps, amounts) of its outgoing transfers."""
    return {
        sender: (grp["timestamp"].tolist(), grp["amount"].tolist())
        for sender, grp in df.groupby("sender_id", sort=False)
    }


def _fan_in_hubs(df: pd.DataFrame, ringed: Set[str]) -> Dict[str, List[str]]:
    window = timedelta(hours=SMURF_WINDOW_HOURS)
    outgoing = _outgoing_index(df)
    hubs: Dict[str, List[str]] = {}

    for receiver, grp in df.groupby("receiver_id", sort=False):
        if receiver in ringed or grp["sender_id"].nunique() < SMURF_MIN_COUNTERPARTIES:
            continue
        grp = grp.sort_values("timestamp", kind="stable")
        times   = grp["timestamp"].tolist()
        senders = grp["sender_id"].tolist()
        amounts = grp["amount"].tolist()
        out_times, out_amounts = outgoing.get(receiver, ([], []))

        for start, end in sliding_windows(times, window):
            window_senders = unique_in_order(senders[start:end + 1])
            if len(window_senders) < SMURF_MIN_COUNTERPARTIES:
                continue

            window_amounts = amounts[start:end + 1]
            if float(np.median(window_amounts)) >= SMURF_SMALL_TX_THRESHOLD:
                continue
            if _is_salary_pattern(senders[start:end + 1], times[start:end + 1], window_amounts):
                continue

            first_in = times[start]
            exited = sum(
                amt for ts, amt in zip(out_times, out_amounts)
                if first_in <= ts <= first_in + window
            )
            if exited >= sum(window_amounts) * SMURF_CONSOLIDATION_RATIO:
                # Record every sender active in the full span from first_in.
                span_end = start
                while span_end + 1 < len(times) and times[span_end + 1] <= first_in + window:
                    span_end += 1
                hubs[receiver] = unique_in_order(senders[start:span_end + 1])
                break

    return hubs


def _fan_out_hubs(df: pd.DataFrame, ringed: Set[str]) -> Dict[str, List[str]]:
    window = timedelta(hours=SMURF_WINDOW_HOURS)
    hubs: Dict[str, List[str]] = {}

    for sender, grp in df.groupby("sender_id", sort=False):
        if sender in ringed or len(grp) < SMURF_MIN_COUNTERPARTIES:
            continue
        receivers = unique_in_order(grp["receiver_id"])
        if len(receivers) < SMURF_MIN_COUNTERPARTIES:
            continue
        if grp["timestamp"].max() - grp["timestamp"].min() <= window:
            hubs[sender] = receivers

    return hubs


def detect_smurfing(df: pd.DataFrame, ringed: Set[str] | None = None) -> Dict[str, Dict[str, List[str]]]:
    """
    Detect fan-in and fan-out hubs.

    Parameters
    ----------
    df     : transaction DataFrame
    ringed : accounts already claimed by an SCC ring (never re-classified)

    Returns
    -------
    {"fan_in": {hub: [senders]}, "fan_out": {hub: [receivers]}} with hubs in
    first-appearance order and counterparties in first-appearance order.
    """
    ringed = ringed or set()
    fan_in = _fan_in_hubs(df, ringed)
    fan_out = _fan_out_hubs(df, ringed)
    log.info("Smurfing detection: %d fan-in hubs, %d fan-out hubs", len(fan_in), len(fan_out))
    return {"fan_in": fan_in, "fan_out": fan_out}


def build_smurf_rings(smurfing: Dict[str, Dict[str, List[str]]]) -> Tuple[List[Dict], List[Dict]]:
    """
    Turn each hub into its own ring: the hub followed by its counterparties.

    Returns (fan_in_rings, fan_out_rings).
    """
    def _rings(hubs: Dict[str, List[str]], pattern: str) -> List[Dict]:
        return [
            {
                "members":        [hub] + counterparties,
                "pattern":        pattern,
                "hub":            hub,
                "counterparties": counterparties,
                "risk_score":     RING_RISK[pattern],
            }
            for hub, counterparties in hubs.items()
        ]

    return (
        _rings(smurfing["fan_in"], "smurfing_fan_in"),
        _rings(smurfing["fan_out"], "smurfing_fan_out"),
    )
