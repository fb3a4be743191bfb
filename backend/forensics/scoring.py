"""
scoring.py – Suspicion scoring engine.

Scoring model
-------------
Contributions are additive; an account can collect points from several
detectors.  Stages run in a fixed order against one ScoreBoard:

1. SCC ring membership   – scc_size_<N>            +SCORE_SCC_MEMBER
2. Fan-in hub / sources  – fan_in_smurfing         +SCORE_FAN_HUB
                           smurfing_source         +SCORE_FAN_COUNTERPARTY
3. Fan-out hub / sinks   – fan_out_smurfing        +SCORE_FAN_HUB
                           smurfing_destination    +SCORE_FAN_COUNTERPARTY
4. Shell intermediaries  – shell_network           +SCORE_SHELL
5. Burst senders         – high_velocity           +SCORE_HIGH_VELOCITY

Legitimate-hub suppression
--------------------------
After all stages, every graph node with more than LEGIT_HUB_MIN_DEGREE
transactions and no severe pattern (scc_size_* or shell_network) loses
LEGIT_HUB_PENALTY points, floored at 0.  Merchants and exchanges look like
fan hubs by volume alone; cycles and shell layering do not occur in their
normal business.

Only the raw score decides whether an account is suspicious (score > 0);
clamping to MAX_SCORE happens on read.
"""
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

import networkx as nx

from .config import (
    LEGIT_HUB_MIN_DEGREE,
    LEGIT_HUB_PENALTY,
    MAX_SCORE,
    SCORE_FAN_COUNTERPARTY,
    SCORE_FAN_HUB,
    SCORE_HIGH_VELOCITY,
    SCORE_SCC_MEMBER,
    SCORE_SHELL,
)
from .graph_builder import total_degree

log = logging.getLogger(__name__)

# ring pattern → (hub tag, counterparty tag)
SMURF_TAGS: Dict[str, tuple] = {
    "smurfing_fan_in":  ("fan_in_smurfing", "smurfing_source"),
    "smurfing_fan_out": ("fan_out_smurfing", "smurfing_destination"),
}


def is_severe(pattern: str) -> bool:
    return pattern.startswith("scc_size_") or pattern == "shell_network"


class ScoreBoard:
    """
    Per-account accumulator owned by one analysis run.

    scores   : raw additive score (may exceed MAX_SCORE)
    patterns : detector tags in the order they were first applied
    ring_ids : first ring that claimed the account
    """

    def __init__(self) -> None:
        self.scores: Dict[str, float] = {}
        self.patterns: Dict[str, List[str]] = {}
        self.ring_ids: Dict[str, str] = {}

    def add(self, account: str, pattern: str, points: float) -> None:
        self.scores[account] = self.scores.get(account, 0.0) + points
        tags = self.patterns.setdefault(account, [])
        if pattern not in tags:
            tags.append(pattern)

    def claim(self, account: str, ring_id: str) -> None:
        """Attach ``ring_id`` unless the account already belongs to a ring."""
        self.ring_ids.setdefault(account, ring_id)

    def penalize(self, account: str, points: float) -> None:
        self.scores[account] = max(0.0, self.scores.get(account, 0.0) - points)

    def raw_score(self, account: str) -> float:
        return self.scores.get(account, 0.0)

    def score(self, account: str) -> float:
        """Clamped, rounded score for reporting."""
        return float(min(MAX_SCORE, max(0.0, round(self.raw_score(account), 1))))

    def ring_id(self, account: str) -> Optional[str]:
        return self.ring_ids.get(account)

    def tags(self, account: str) -> List[str]:
        return list(self.patterns.get(account, []))

    def suspicious(self) -> List[str]:
        """Accounts with a strictly positive raw score, in first-scored order."""
        return [acc for acc, s in self.scores.items() if s > 0]


def apply_ring_scores(board: ScoreBoard, rings: List[Dict]) -> None:
    """Score SCC rings and smurfing rings; rings must already carry ring_id."""
    for ring in rings:
        ring_id = ring["ring_id"]
        if ring["pattern"] == "cycle":
            tag = f"scc_size_{ring['size']}"
            for acc in ring["members"]:
                board.add(acc, tag, SCORE_SCC_MEMBER)
                board.claim(acc, ring_id)
        else:
            hub_tag, counterparty_tag = SMURF_TAGS[ring["pattern"]]
            board.add(ring["hub"], hub_tag, SCORE_FAN_HUB)
            board.claim(ring["hub"], ring_id)
            # Counterparties are scored but stay outside the ring map.
            for acc in ring["counterparties"]:
                board.add(acc, counterparty_tag, SCORE_FAN_COUNTERPARTY)


def apply_flag_scores(board: ScoreBoard, accounts: Iterable[str], pattern: str, points: float) -> None:
    for acc in accounts:
        board.add(acc, pattern, points)


def suppress_legitimate_hubs(G: nx.DiGraph, board: ScoreBoard) -> List[str]:
    """
    Dampen high-degree accounts that show no severe pattern.

    Runs over every graph node, not only scored ones.  Returns the accounts
    whose score was reduced.
    """
    suppressed: List[str] = []
    for node in G.nodes:
        if total_degree(G, node) <= LEGIT_HUB_MIN_DEGREE:
            continue
        if any(is_severe(p) for p in board.patterns.get(node, [])):
            continue
        if board.raw_score(node) > 0:
            board.penalize(node, LEGIT_HUB_PENALTY)
            suppressed.append(node)

    log.info("Legitimate-hub suppression applied to %d accounts", len(suppressed))
    return suppressed


def calculate_scores(
    G: nx.DiGraph,
    rings: List[Dict],
    shell_accounts: Iterable[str],
    velocity_accounts: Iterable[str],
) -> ScoreBoard:
    """
    Build the per-account score board.

    Parameters
    ----------
    G                 : transaction graph (degrees for hub suppression)
    rings             : all rings with ring_id assigned, in ID order
    shell_accounts    : shell intermediaries from shell_detector
    velocity_accounts : burst senders from velocity_detector
    """
    board = ScoreBoard()
    apply_ring_scores(board, rings)
    apply_flag_scores(board, shell_accounts, "shell_network", SCORE_SHELL)
    apply_flag_scores(board, velocity_accounts, "high_velocity", SCORE_HIGH_VELOCITY)
    suppress_legitimate_hubs(G, board)

    log.info(
        "Scoring complete: %d accounts scored, %d suspicious",
        len(board.scores),
        len(board.suspicious()),
    )
    return board
