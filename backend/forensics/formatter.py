"""
formatter.py – Produce the final report and the graph projection.

JSON contract
-------------
{
  "suspicious_accounts": [{account_id, suspicion_score, detected_patterns,
                           ring_id|null, reason, explanation}],
  "fraud_rings":         [{ring_id, member_accounts, pattern_type, risk_score}],
  "summary":             {total_accounts_analyzed, suspicious_accounts_flagged,
                          fraud_rings_detected, fan_in_accounts,
                          fan_out_accounts, processing_time_seconds},
  "graph":               {nodes: [GraphNode], edges: [GraphEdge]},
  "parse_stats":         {...}   // when available
}

suspicious_accounts is sorted by descending score (ties keep first-scored
order).  Graph nodes follow first-appearance order; one edge per transaction.
Edge timestamps are the parsed instant rendered as "YYYY-MM-DD HH:MM:SS"
(naive UTC), whatever format the ledger used; fractions of a second and
offsets are not carried over.

Edge classification (first match wins)
--------------------------------------
ring_transfer  sender→receiver lies inside a cycle ring
pass_through   sender carries PASS_THROUGH
fan_out        sender carries FAN_OUT
fan_in         receiver carries FAN_IN
normal         otherwise
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Set, Tuple

import networkx as nx
import pandas as pd

from .scoring import ScoreBoard

log = logging.getLogger(__name__)


def _ring_edges(rings: List[Dict]) -> Set[Tuple[str, str]]:
    """All ordered member pairs of every cycle ring."""
    edges: Set[Tuple[str, str]] = set()
    for ring in rings:
        if ring["pattern"] != "cycle":
            continue
        for a in ring["members"]:
            for b in ring["members"]:
                if a != b:
                    edges.add((a, b))
    return edges


def classify_edge(
    sender: str,
    receiver: str,
    ring_edges: Set[Tuple[str, str]],
    behaviour: Dict[str, List[str]],
) -> str:
    if (sender, receiver) in ring_edges:
        return "ring_transfer"
    sender_tags = behaviour.get(sender, [])
    if "PASS_THROUGH" in sender_tags:
        return "pass_through"
    if "FAN_OUT" in sender_tags:
        return "fan_out"
    if "FAN_IN" in behaviour.get(receiver, []):
        return "fan_in"
    return "normal"


def _graph_payload(
    df: pd.DataFrame,
    G: nx.DiGraph,
    rings: List[Dict],
    board: ScoreBoard,
    explanations: Dict[str, Dict],
) -> Dict[str, List[Dict]]:
    suspicious = set(explanations)
    nodes: List[Dict] = []
    for node, attrs in G.nodes(data=True):
        nodes.append({
            "id":           node,
            "inDegree":     attrs["in_count"],
            "outDegree":    attrs["out_count"],
            "totalAmount":  round(attrs["total_volume"], 2),
            "isSuspicious": node in suspicious,
            "ringId":       board.ring_id(node),
            "patterns":     board.tags(node),
            "score":        board.score(node),
        })

    ring_edges = _ring_edges(rings)
    behaviour = {acc: exp["tags"] for acc, exp in explanations.items()}
    edges: List[Dict] = []
    for tx in df.itertuples(index=False):
        edges.append({
            "source":     tx.sender_id,
            "target":     tx.receiver_id,
            "amount":     float(tx.amount),
            "timestamp":  tx.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            "isRingEdge": (tx.sender_id, tx.receiver_id) in ring_edges,
            "edge_type":  classify_edge(tx.sender_id, tx.receiver_id, ring_edges, behaviour),
        })
    return {"nodes": nodes, "edges": edges}


def format_output(
    df: pd.DataFrame,
    G: nx.DiGraph,
    rings: List[Dict],
    board: ScoreBoard,
    explanations: Dict[str, Dict],
    smurfing: Dict[str, Dict[str, List[str]]],
    processing_time: float,
    parse_stats: dict | None = None,
) -> Dict[str, Any]:
    """
    Build the complete report.

    Parameters
    ----------
    df              : validated transactions
    G               : transaction graph
    rings           : all rings with ring_id, in ID order
    board           : scores after legitimate-hub suppression
    explanations    : explainer output keyed by suspicious account
    smurfing        : smurf_detector output (for the fan summary counts)
    processing_time : elapsed wall-clock seconds
    parse_stats     : optional parse diagnostic info
    """
    # 1. Suspicious accounts
    suspicious_accounts: List[Dict] = []
    for acc in board.suspicious():
        exp = explanations[acc]
        suspicious_accounts.append({
            "account_id":        acc,
            "suspicion_score":   board.score(acc),
            "detected_patterns": board.tags(acc),
            "ring_id":           board.ring_id(acc),
            "reason":            exp["reason"],
            "explanation":       exp["explanation"],
        })
    suspicious_accounts.sort(key=lambda a: a["suspicion_score"], reverse=True)

    # 2. Fraud rings
    fraud_rings: List[Dict] = [
        {
            "ring_id":         ring["ring_id"],
            "member_accounts": list(ring["members"]),
            "pattern_type":    ring["pattern"],
            "risk_score":      float(ring["risk_score"]),
        }
        for ring in rings
    ]

    # 3. Summary
    summary: Dict[str, Any] = {
        "total_accounts_analyzed":     G.number_of_nodes(),
        "suspicious_accounts_flagged": len(suspicious_accounts),
        "fraud_rings_detected":        len(fraud_rings),
        "fan_in_accounts":             len(smurfing["fan_in"]),
        "fan_out_accounts":            len(smurfing["fan_out"]),
        "processing_time_seconds":     round(processing_time, 4),
    }

    response: Dict[str, Any] = {
        "suspicious_accounts": suspicious_accounts,
        "fraud_rings":         fraud_rings,
        "summary":             summary,
        "graph":               _graph_payload(df, G, rings, board, explanations),
    }
    if parse_stats:
        response["parse_stats"] = parse_stats

    log.info(
        "Format complete: %d suspicious accounts, %d fraud rings",
        len(suspicious_accounts),
        len(fraud_rings),
    )
    return response
