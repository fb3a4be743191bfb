"""
graph_builder.py – Build a directed transaction graph from validated data.

Ordering
--------
Nodes are inserted in first-appearance order over the transaction stream
(sender before receiver within a row) and edges in the order each
(sender, receiver) pair first occurs.  NetworkX preserves insertion order for
both node iteration and successor iteration, so SCC discovery and shell-path
exploration are deterministic.
"""
from __future__ import annotations

import logging

import networkx as nx
import pandas as pd

log = logging.getLogger(__name__)


def build_graph(df: pd.DataFrame) -> nx.DiGraph:
    """
    Construct a directed graph from a validated transaction DataFrame.

    Parallel transactions collapse to one edge; the per-node counters still
    count every transaction.

    Node attributes
    ---------------
    in_count, out_count                      : int   – transactions received / sent
    total_sent, total_received, total_volume : float

    Edge attributes
    ---------------
    tx_count     : int
    total_amount : float
    """
    G = nx.DiGraph()

    # ── Node statistics ────────────────────────────────────────────────────────
    sent = df.groupby("sender_id", sort=False)["amount"].agg(["count", "sum"])
    recv = df.groupby("receiver_id", sort=False)["amount"].agg(["count", "sum"])

    # Interleave sender/receiver per row so pd.unique keeps first appearance.
    order = pd.unique(df[["sender_id", "receiver_id"]].to_numpy().ravel())
    s = sent.reindex(order).fillna(0)
    r = recv.reindex(order).fillna(0)

    G.add_nodes_from([
        (node, {
            "in_count":       int(n_in),
            "out_count":      int(n_out),
            "total_sent":     float(amt_out),
            "total_received": float(amt_in),
            "total_volume":   float(amt_out + amt_in),
        })
        for node, n_out, amt_out, n_in, amt_in in zip(
            order, s["count"], s["sum"], r["count"], r["sum"]
        )
    ])

    # ── Edges ──────────────────────────────────────────────────────────────────
    edge_stats = df.groupby(["sender_id", "receiver_id"], sort=False)["amount"].agg(
        tx_count="count",
        total_amount="sum",
    ).reset_index()

    G.add_edges_from([
        (row.sender_id, row.receiver_id, {
            "tx_count":     int(row.tx_count),
            "total_amount": float(row.total_amount),
        })
        for row in edge_stats.itertuples(index=False)
    ])

    log.info("Graph built: %d nodes, %d edges", G.number_of_nodes(), G.number_of_edges())
    return G


def total_degree(G: nx.DiGraph, node: str) -> int:
    """Transaction count touching ``node`` (incoming + outgoing)."""
    attrs = G.nodes[node]
    return attrs["in_count"] + attrs["out_count"]
