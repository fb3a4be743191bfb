"""
Shared fixtures: CSV / DataFrame factories and a mixed-pattern ledger.

Rows are ``(sender, receiver, amount, offset)`` where ``offset`` is a
timedelta from BASE_TIME.
"""
from datetime import datetime, timedelta

import pytest

from forensics.parser import parse_csv

BASE_TIME = datetime(2026, 1, 1, 12, 0, 0)
HEADER = "transaction_id,sender_id,receiver_id,amount,timestamp"


def _to_csv(rows):
    lines = [HEADER]
    for i, (sender, receiver, amount, offset) in enumerate(rows, start=1):
        ts = (BASE_TIME + offset).strftime("%Y-%m-%d %H:%M:%S")
        lines.append(f"TX{i},{sender},{receiver},{amount},{ts}")
    return "\n".join(lines) + "\n"


@pytest.fixture
def make_csv():
    return _to_csv


@pytest.fixture
def make_df():
    def _make(rows):
        df, _ = parse_csv(_to_csv(rows))
        return df
    return _make


@pytest.fixture
def forensic_rows():
    """
    One ledger exercising every detector:

    - ShellSrc → Shell1 → Shell2 → ShellDst         valid shell chain
    - ShellSrcF → Shell1F → Shell2F → ShellDstF,
      plus X, Y → Shell1F                          Shell1F has degree 4
    - SmurfS1..11 → SmurfTarget → SmurfExit         fan-in mule that forwards
    - LegitC1..25 → LegitMerchant → LegitSup1..25   busy legitimate hub
    - VelocityUser → VelocityTarget1..11            11 transfers in 10 minutes
    """
    seconds = lambda n: timedelta(seconds=n)  # noqa: E731
    minutes = lambda n: timedelta(minutes=n)  # noqa: E731

    rows = [
        ("ShellSrc", "Shell1", 100, seconds(0)),
        ("Shell1", "Shell2", 99, seconds(1)),
        ("Shell2", "ShellDst", 98, seconds(2)),
        ("ShellSrcF", "Shell1F", 100, seconds(0)),
        ("Shell1F", "Shell2F", 99, seconds(1)),
        ("Shell2F", "ShellDstF", 98, seconds(2)),
        ("X", "Shell1F", 10, seconds(1)),
        ("Y", "Shell1F", 10, seconds(1)),
    ]
    rows += [(f"SmurfS{i}", "SmurfTarget", 50, minutes(i)) for i in range(1, 12)]
    rows.append(("SmurfTarget", "SmurfExit", 500, minutes(20)))
    for i in range(1, 26):
        rows.append((f"LegitC{i}", "LegitMerchant", 50, seconds(60 * i)))
        rows.append(("LegitMerchant", f"LegitSup{i}", 50, seconds(60 * i + 30)))
    rows += [("VelocityUser", f"VelocityTarget{i}", 10, minutes(i)) for i in range(1, 12)]
    return rows
