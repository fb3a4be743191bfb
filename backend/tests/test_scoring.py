from datetime import timedelta

import pytest

from forensics.cycle_detector import detect_cycles
from forensics.graph_builder import build_graph
from forensics.scoring import ScoreBoard, calculate_scores, is_severe
from forensics.shell_detector import detect_shell_accounts
from forensics.smurf_detector import build_smurf_rings, detect_smurfing
from forensics.utils import assign_ring_ids
from forensics.velocity_detector import detect_high_velocity


def _score(df):
    G = build_graph(df)
    cycles = detect_cycles(G)
    ringed = {a for r in cycles for a in r["members"]}
    fan_in, fan_out = build_smurf_rings(detect_smurfing(df, ringed))
    rings = assign_ring_ids(cycles, fan_in, fan_out)
    return calculate_scores(G, rings, detect_shell_accounts(G), detect_high_velocity(df))


# ---------------------------------------------------------------------------
# ScoreBoard
# ---------------------------------------------------------------------------
def test_scoreboard_accumulates_and_clamps():
    board = ScoreBoard()
    board.add("A", "scc_size_3", 60)
    board.add("A", "shell_network", 30)
    board.add("A", "high_velocity", 25)

    assert board.raw_score("A") == 115
    assert board.score("A") == 100.0
    assert board.tags("A") == ["scc_size_3", "shell_network", "high_velocity"]
    assert board.suspicious() == ["A"]


def test_scoreboard_keeps_first_ring():
    board = ScoreBoard()
    board.claim("A", "RING_001")
    board.claim("A", "RING_004")
    assert board.ring_id("A") == "RING_001"
    assert board.ring_id("B") is None


def test_penalty_floors_at_zero():
    board = ScoreBoard()
    board.add("A", "fan_in_smurfing", 40)
    board.penalize("A", 75)
    assert board.raw_score("A") == 0.0
    assert board.suspicious() == []


@pytest.mark.parametrize(
    "pattern, severe",
    [("scc_size_3", True), ("scc_size_12", True), ("shell_network", True),
     ("fan_in_smurfing", False), ("high_velocity", False)],
)
def test_is_severe(pattern, severe):
    assert is_severe(pattern) is severe


# ---------------------------------------------------------------------------
# Full scoring
# ---------------------------------------------------------------------------
def test_cycle_members_scored_and_claimed(make_df):
    hour = timedelta(hours=1)
    board = _score(make_df([
        ("A", "B", 100, hour * 0),
        ("B", "C", 100, hour * 1),
        ("C", "A", 100, hour * 2),
    ]))
    for acc in ("A", "B", "C"):
        assert board.tags(acc)[0] == "scc_size_3"
        assert board.ring_id(acc) == "RING_001"
        assert board.score(acc) >= 60


def test_legitimate_hub_is_suppressed(make_df, forensic_rows):
    board = _score(make_df(forensic_rows))

    assert board.tags("LegitMerchant") == ["fan_in_smurfing", "fan_out_smurfing", "high_velocity"]
    # 40 + 40 + 25 - 75
    assert board.score("LegitMerchant") == 30.0
    assert board.score("LegitMerchant") <= 50


def test_busy_ring_member_is_not_suppressed(make_df):
    hour = timedelta(hours=1)
    rows = [
        ("A", "B", 100, hour * 0),
        ("B", "C", 100, hour * 1),
        ("C", "A", 100, hour * 2),
    ]
    rows += [("A", f"X{i}", 10, timedelta(days=i)) for i in range(1, 21)]
    board = _score(make_df(rows))

    assert board.tags("A") == ["scc_size_3"]
    assert board.score("A") == 60.0


def test_smurf_counterparties_scored_without_ring(make_df, forensic_rows):
    board = _score(make_df(forensic_rows))

    assert board.tags("SmurfTarget") == ["fan_in_smurfing"]
    assert board.ring_id("SmurfTarget") == "RING_001"
    for i in range(1, 12):
        assert board.tags(f"SmurfS{i}") == ["smurfing_source"]
        assert board.score(f"SmurfS{i}") == 20.0
        assert board.ring_id(f"SmurfS{i}") is None
    assert board.tags("VelocityTarget1") == ["smurfing_destination"]
