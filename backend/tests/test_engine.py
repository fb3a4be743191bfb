"""
End-to-end checks of the analysis pipeline on in-memory CSV content.
"""
from datetime import timedelta

import pytest

from forensics.engine import analyze_csv
from forensics.models import AnalysisResult
from forensics.parser import EmptyDatasetError, NeedsMappingError

HOUR = timedelta(hours=1)
MINUTE = timedelta(minutes=1)

CYCLE = [
    ("A", "B", 500, HOUR * 0),
    ("B", "C", 490, HOUR * 1),
    ("C", "A", 480, HOUR * 2),
]


def _accounts(report):
    return {a["account_id"]: a for a in report["suspicious_accounts"]}


def _without_timing(report):
    report = dict(report)
    report["summary"] = {k: v for k, v in report["summary"].items() if k != "processing_time_seconds"}
    return report


# ---------------------------------------------------------------------------
# Rings
# ---------------------------------------------------------------------------
def test_cycle_ring_report(make_csv):
    report = analyze_csv(make_csv(CYCLE))

    assert report["fraud_rings"] == [{
        "ring_id": "RING_001",
        "member_accounts": ["A", "B", "C"],
        "pattern_type": "cycle",
        "risk_score": 91.0,
    }]
    accounts = _accounts(report)
    for acc in ("A", "B", "C"):
        assert accounts[acc]["ring_id"] == "RING_001"
        assert "scc_size_3" in accounts[acc]["detected_patterns"]
        assert accounts[acc]["explanation"].startswith(
            "This account is a confirmed member of fraud ring RING_001."
        )

    edges = report["graph"]["edges"]
    assert [e["edge_type"] for e in edges] == ["ring_transfer"] * 3
    assert all(e["isRingEdge"] for e in edges)


def test_mixed_ledger(make_csv, forensic_rows):
    report = analyze_csv(make_csv(forensic_rows))
    accounts = _accounts(report)

    # Shell chain
    assert "shell_network" in accounts["Shell1"]["detected_patterns"]
    assert "shell_network" in accounts["Shell2"]["detected_patterns"]
    assert "Shell1F" not in accounts
    assert "shell_network" in accounts["Shell2F"]["detected_patterns"]

    # Smurfing ring with every sender
    smurf_ring = next(r for r in report["fraud_rings"] if "SmurfTarget" in r["member_accounts"])
    assert smurf_ring["pattern_type"] == "smurfing_fan_in"
    assert len(smurf_ring["member_accounts"]) >= 12
    assert accounts["SmurfTarget"]["ring_id"] == smurf_ring["ring_id"]

    # Legitimate merchant dampened
    assert accounts["LegitMerchant"]["suspicion_score"] <= 50

    # Burst sender
    assert "high_velocity" in accounts["VelocityUser"]["detected_patterns"]

    assert [r["ring_id"] for r in report["fraud_rings"]] == [
        "RING_001", "RING_002", "RING_003", "RING_004",
    ]
    assert report["summary"]["fan_in_accounts"] == 2
    assert report["summary"]["fan_out_accounts"] == 2
    for acc in report["suspicious_accounts"]:
        assert acc["ring_id"] is None or acc["ring_id"].startswith("RING_")


def test_report_shape(make_csv, forensic_rows):
    report = analyze_csv(make_csv(forensic_rows))
    AnalysisResult.model_validate(report)

    scores = [a["suspicion_score"] for a in report["suspicious_accounts"]]
    assert scores == sorted(scores, reverse=True)
    assert all(0 < s <= 100 for s in scores)
    assert report["summary"]["suspicious_accounts_flagged"] == len(scores)
    assert report["summary"]["fraud_rings_detected"] == len(report["fraud_rings"])
    assert report["summary"]["total_accounts_analyzed"] == len(report["graph"]["nodes"])
    assert len(report["graph"]["edges"]) == len(forensic_rows)
    assert report["parse_stats"]["valid_rows"] == len(forensic_rows)


def test_edge_classification(make_csv, forensic_rows):
    report = analyze_csv(make_csv(forensic_rows))
    edge_types = {(e["source"], e["target"]): e["edge_type"] for e in report["graph"]["edges"]}

    assert edge_types[("SmurfS1", "SmurfTarget")] == "fan_in"
    assert edge_types[("SmurfTarget", "SmurfExit")] == "pass_through"
    assert edge_types[("VelocityUser", "VelocityTarget1")] == "fan_out"
    assert edge_types[("Shell1", "Shell2")] == "pass_through"
    assert edge_types[("ShellSrc", "Shell1")] == "normal"


def test_counterparty_keeps_cycle_ring(make_csv):
    rows = list(CYCLE)
    rows.append(("A", "T", 50, HOUR * 3))
    rows += [(f"S{i}", "T", 50, HOUR * 3 + MINUTE * i) for i in range(1, 5)]
    rows.append(("T", "Out", 500, HOUR * 4))

    report = analyze_csv(make_csv(rows))
    accounts = _accounts(report)

    assert accounts["A"]["ring_id"] == "RING_001"
    assert accounts["A"]["detected_patterns"][:2] == ["scc_size_3", "smurfing_source"]
    assert accounts["T"]["ring_id"] == "RING_002"
    assert report["fraud_rings"][1]["member_accounts"] == ["T", "A", "S1", "S2", "S3", "S4"]


# ---------------------------------------------------------------------------
# Determinism & errors
# ---------------------------------------------------------------------------
def test_repeated_runs_are_identical(make_csv, forensic_rows):
    text = make_csv(forensic_rows)
    assert _without_timing(analyze_csv(text)) == _without_timing(analyze_csv(text))


def test_edge_timestamps_are_normalised():
    text = (
        "transaction_id,sender_id,receiver_id,amount,timestamp\n"
        "T1,A,B,100,2026-01-02T10:00:00\n"
        "T2,B,C,100,2026-01-02T11:30:00\n"
    )
    edges = analyze_csv(text)["graph"]["edges"]
    assert [e["timestamp"] for e in edges] == ["2026-01-02 10:00:00", "2026-01-02 11:30:00"]


def test_quiet_ledger_has_no_findings(make_csv):
    rows = [("A", "B", 100, HOUR * 0), ("C", "D", 100, HOUR * 1)]
    report = analyze_csv(make_csv(rows))

    assert report["suspicious_accounts"] == []
    assert report["fraud_rings"] == []
    assert [e["edge_type"] for e in report["graph"]["edges"]] == ["normal", "normal"]


def test_no_valid_rows():
    with pytest.raises(EmptyDatasetError):
        analyze_csv("sender_id,receiver_id,amount\nA,A,5\n")


def test_unknown_columns():
    with pytest.raises(NeedsMappingError):
        analyze_csv(b"alpha,beta,gamma\nA,B,10\n")
