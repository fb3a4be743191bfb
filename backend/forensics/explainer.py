"""
explainer.py – Behavioural tags and analyst-facing explanations.

This pass is independent of the scoring detectors.  It re-reads each flagged
account's own transactions and derives four behaviour tags plus ring
membership:

  FAN_IN             ≥ 5 unique senders inside some 24 h window
  FAN_OUT            ≥ 5 unique receivers inside some 24 h window
  PASS_THROUGH       ≥ 80 % of incoming volume leaves between the first
                     incoming transfer and 2 h after the last one
  DORMANT_ACTIVATION a gap of more than 7 days anywhere in the timeline
  RING_MEMBER        the account carries a ring_id

The tags drive the explanation paragraph and the edge classification in the
formatter; they never change scores.
"""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from .config import (
    DORMANCY_DAYS,
    EXPLAIN_FAN_MIN_COUNTERPARTIES,
    EXPLAIN_FAN_WINDOW_HOURS,
    PASS_THROUGH_RATIO,
    PASS_THROUGH_WINDOW_HOURS,
)
from .scoring import ScoreBoard
from .utils import sliding_windows

log = logging.getLogger(__name__)

_EMPTY = pd.DataFrame({
    "transaction_id": pd.Series(dtype=object),
    "sender_id":      pd.Series(dtype=object),
    "receiver_id":    pd.Series(dtype=object),
    "amount":         pd.Series(dtype=float),
    "timestamp":      pd.Series(dtype="datetime64[ns]"),
})

_SENTENCES: Dict[str, str] = {
    "HUB": "This account acts as a high-velocity hub, aggregating and dispersing funds simultaneously.",
    "FAN_IN": "This account behaves like a mule/collection account, aggregating funds from multiple sources.",
    "FAN_OUT": "This account functions as a distributor, dispersing funds to multiple targets.",
    "PASS_THROUGH": "The transaction velocity and concentration indicate layering activity with rapid fund pass-through.",
    "DORMANT_ACTIVATION": "It shows sudden activation after a long dormant period.",
    "GENERIC": "This account shows suspicious activity patterns warranting further investigation.",
}


def _peak_counterparties(txs: pd.DataFrame, party_col: str) -> int:
    """
    Largest number of unique counterparties seen in any qualifying window,
    or 0 when no window reaches EXPLAIN_FAN_MIN_COUNTERPARTIES.
    """
    if txs[party_col].nunique() < EXPLAIN_FAN_MIN_COUNTERPARTIES:
        return 0
    txs = txs.sort_values("timestamp", kind="stable")
    times = txs["timestamp"].tolist()
    parties = txs[party_col].tolist()

    peak = 0
    for start, end in sliding_windows(times, timedelta(hours=EXPLAIN_FAN_WINDOW_HOURS)):
        unique = len(set(parties[start:end + 1]))
        if unique >= EXPLAIN_FAN_MIN_COUNTERPARTIES:
            peak = max(peak, unique)
    return peak


def _pass_through_share(incoming: pd.DataFrame, outgoing: pd.DataFrame) -> Optional[float]:
    """Share of incoming volume leaving inside the rapid window, None if undefined."""
    if incoming.empty or outgoing.empty:
        return None
    total_in = float(incoming["amount"].sum())
    if total_in <= 0:
        return None
    first_in = incoming["timestamp"].min()
    cutoff = incoming["timestamp"].max() + timedelta(hours=PASS_THROUGH_WINDOW_HOURS)
    in_window = (outgoing["timestamp"] >= first_in) & (outgoing["timestamp"] <= cutoff)
    return float(outgoing.loc[in_window, "amount"].sum()) / total_in


def _longest_gap(incoming: pd.DataFrame, outgoing: pd.DataFrame) -> timedelta:
    times = np.sort(np.concatenate([
        incoming["timestamp"].to_numpy(dtype="datetime64[ns]"),
        outgoing["timestamp"].to_numpy(dtype="datetime64[ns]"),
    ]))
    if len(times) < 2:
        return timedelta(0)
    return pd.Timedelta(np.diff(times).max()).to_pytimedelta()


def explain_account(
    incoming: pd.DataFrame,
    outgoing: pd.DataFrame,
    ring_id: Optional[str] = None,
) -> Dict:
    """
    Derive behaviour tags, short reasons and an explanation paragraph.

    Returns
    -------
    dict with keys:
        tags        : list[str]  – subset of FAN_IN, FAN_OUT, PASS_THROUGH,
                                   DORMANT_ACTIVATION, RING_MEMBER
        reason      : list[str]  – one factual statement per tag
        explanation : str
    """
    tags: List[str] = []
    reasons: List[str] = []

    senders = _peak_counterparties(incoming, "sender_id")
    if senders:
        tags.append("FAN_IN")
        reasons.append(f"Fan-In aggregation from {senders} unique accounts")

    receivers = _peak_counterparties(outgoing, "receiver_id")
    if receivers:
        tags.append("FAN_OUT")
        reasons.append(f"Fan-Out dispersion to {receivers} unique accounts")

    share = _pass_through_share(incoming, outgoing)
    if share is not None and share >= PASS_THROUGH_RATIO:
        tags.append("PASS_THROUGH")
        reasons.append(f"{int(share * 100 + 0.5)}% funds transferred within rapid window")

    if _longest_gap(incoming, outgoing) > timedelta(days=DORMANCY_DAYS):
        tags.append("DORMANT_ACTIVATION")
        reasons.append(f"Sudden activation after dormant period (>{DORMANCY_DAYS:g} days)")

    if ring_id:
        tags.append("RING_MEMBER")
        reasons.append(f"Connected to fraud ring {ring_id}")

    parts: List[str] = []
    if ring_id:
        parts.append(f"This account is a confirmed member of fraud ring {ring_id}.")
    if "FAN_IN" in tags and "FAN_OUT" in tags:
        parts.append(_SENTENCES["HUB"])
    elif "FAN_IN" in tags:
        parts.append(_SENTENCES["FAN_IN"])
    elif "FAN_OUT" in tags:
        parts.append(_SENTENCES["FAN_OUT"])
    for tag in ("PASS_THROUGH", "DORMANT_ACTIVATION"):
        if tag in tags:
            parts.append(_SENTENCES[tag])
    if not parts:
        parts.append(_SENTENCES["GENERIC"])

    return {"tags": tags, "reason": reasons, "explanation": " ".join(parts)}


def explain_accounts(df: pd.DataFrame, board: ScoreBoard) -> Dict[str, Dict]:
    """Run explain_account for every account with a positive score."""
    incoming_by = {acc: grp for acc, grp in df.groupby("receiver_id", sort=False)}
    outgoing_by = {acc: grp for acc, grp in df.groupby("sender_id", sort=False)}

    explanations = {
        acc: explain_account(
            incoming_by.get(acc, _EMPTY),
            outgoing_by.get(acc, _EMPTY),
            board.ring_id(acc),
        )
        for acc in board.suspicious()
    }
    log.info("Explanations generated for %d accounts", len(explanations))
    return explanations
