from datetime import timedelta

from forensics.explainer import explain_account, explain_accounts
from forensics.scoring import ScoreBoard

MINUTE = timedelta(minutes=1)
HOUR = timedelta(hours=1)


def _split(df, account):
    return df[df["receiver_id"] == account], df[df["sender_id"] == account]


def test_fan_in_collector(make_df):
    df = make_df([(f"S{i}", "Hub", 10, MINUTE * i) for i in range(6)])
    result = explain_account(*_split(df, "Hub"))

    assert result["tags"] == ["FAN_IN"]
    assert result["reason"] == ["Fan-In aggregation from 6 unique accounts"]
    assert "mule/collection account" in result["explanation"]


def test_hub_in_both_directions(make_df):
    rows = [(f"S{i}", "Hub", 10, MINUTE * i) for i in range(5)]
    rows += [("Hub", f"R{i}", 10, HOUR * 30 + MINUTE * i) for i in range(5)]
    result = explain_account(*_split(make_df(rows), "Hub"))

    assert result["tags"][:2] == ["FAN_IN", "FAN_OUT"]
    assert result["reason"][1] == "Fan-Out dispersion to 5 unique accounts"
    assert "high-velocity hub" in result["explanation"]


def test_pass_through(make_df):
    df = make_df([
        ("P", "M", 1000, HOUR * 0),
        ("M", "Q", 900, HOUR * 1),
    ])
    result = explain_account(*_split(df, "M"))

    assert result["tags"] == ["PASS_THROUGH"]
    assert result["reason"] == ["90% funds transferred within rapid window"]
    assert "layering activity" in result["explanation"]


def test_slow_exit_is_not_pass_through(make_df):
    df = make_df([
        ("P", "M", 1000, HOUR * 0),
        ("M", "Q", 900, HOUR * 3),
    ])
    assert explain_account(*_split(df, "M"))["tags"] == []


def test_dormant_activation(make_df):
    df = make_df([
        ("P", "D", 100, timedelta(days=0)),
        ("D", "Q", 100, timedelta(days=10)),
    ])
    result = explain_account(*_split(df, "D"))

    assert result["tags"] == ["DORMANT_ACTIVATION"]
    assert result["reason"] == ["Sudden activation after dormant period (>7 days)"]
    assert result["explanation"] == "It shows sudden activation after a long dormant period."


def test_ring_member_sentence_comes_first(make_df):
    df = make_df([
        ("A", "B", 100, HOUR * 0),
        ("B", "A", 100, HOUR * 5),
    ])
    result = explain_account(*_split(df, "A"), ring_id="RING_001")

    assert result["tags"] == ["RING_MEMBER"]
    assert result["reason"] == ["Connected to fraud ring RING_001"]
    assert result["explanation"].startswith("This account is a confirmed member of fraud ring RING_001.")


def test_generic_explanation(make_df):
    df = make_df([("A", "B", 100, HOUR * 0)])
    result = explain_account(*_split(df, "A"))

    assert result == {
        "tags": [],
        "reason": [],
        "explanation": "This account shows suspicious activity patterns warranting further investigation.",
    }


def test_explain_accounts_covers_only_suspicious(make_df):
    df = make_df([
        ("A", "B", 100, HOUR * 0),
        ("B", "C", 100, HOUR * 1),
    ])
    board = ScoreBoard()
    board.add("B", "shell_network", 30)

    explanations = explain_accounts(df, board)
    assert list(explanations) == ["B"]
    assert explanations["B"]["tags"] == ["PASS_THROUGH"]


def test_account_without_incoming(make_df):
    df = make_df([("A", "B", 100, HOUR * 0)])
    board = ScoreBoard()
    board.add("A", "high_velocity", 25)

    assert explain_accounts(df, board)["A"]["tags"] == []
