"""
shell_detector.py – Detect layered shell account chains.

Definition
----------
A potential shell is a low-activity account: between 1 and SHELL_MAX_DEGREE
transactions in total (incoming + outgoing).  A shell chain is any simple
directed path of at least SHELL_MIN_PATH accounts whose interior accounts
(everything except the first and last) are all potential shells.  The
interior accounts are flagged; the endpoints are the real origin and
destination and are left alone.

Algorithm
---------
Iterative DFS from every account, carrying the current path.  A path only
grows through potential-shell accounts, never revisits an account already on
it, and a path longer than SHELL_MAX_PATH accounts is not extended further.
Because branching is limited to accounts with at most SHELL_MAX_DEGREE
transactions, the search stays small on real ledgers.
"""
from __future__ import annotations

import logging
from typing import List

import networkx as nx

from .config import SHELL_MAX_DEGREE, SHELL_MAX_PATH, SHELL_MIN_PATH
from .graph_builder import total_degree

log = logging.getLogger(__name__)


def potential_shells(G: nx.DiGraph) -> set:
    return {n for n in G.nodes if 1 <= total_degree(G, n) <= SHELL_MAX_DEGREE}


def detect_shell_accounts(G: nx.DiGraph) -> List[str]:
    """
    Return the shell intermediaries, in the order they were first found.
    """
    shells = potential_shells(G)
    flagged: dict = {}

    for start in G.nodes:
        stack = [(start, [start])]
        while stack:
            node, path = stack.pop()
            if len(path) > SHELL_MAX_PATH:
                continue

            for nbr in G.successors(node):
                if nbr in path:
                    continue
                new_path = path + [nbr]
                interior = new_path[1:-1]
                if len(new_path) >= SHELL_MIN_PATH and all(n in shells for n in interior):
                    for n in interior:
                        flagged.setdefault(n, None)
                if nbr in shells:
                    stack.append((nbr, new_path))

    log.info(
        "Shell detection: %d shell accounts among %d low-activity candidates",
        len(flagged),
        len(shells),
    )
    return list(flagged)
