"""
parser.py – CSV ingestion, column auto-mapping and row validation.

Column mapping
--------------
Exported ledgers rarely use our canonical header names.  Each header is
normalised (lower-case, non-alphanumerics collapsed to "_") and matched
against a hint list per canonical field: exact match first, then substring
match in either direction.  A header is consumed by at most one field.

  sender_id, receiver_id, amount   – mandatory; failure raises NeedsMappingError
  timestamp, transaction_id        – optional; synthesised per row when absent

Row validation
--------------
  • amount stripped of currency symbols / separators, must be numeric and ≥ 0
  • sender and receiver must be non-blank
  • self-transfers (sender == receiver) dropped
  • timestamps parsed with a format cascade; unparseable rows dropped
  • duplicate transaction_id values are kept and reported as a warning
  • fields beyond the header are ignored; the row is kept and a warning recorded

Dropped rows never raise; they are counted in the returned stats.
"""
from __future__ import annotations

import io
import logging
import re
from typing import Dict, List, Mapping, Optional, Tuple

import numpy as np
import pandas as pd

from .config import GENERATED_TIMESTAMP, GENERATED_TX_ID, PREVIEW_SAMPLE_ROWS

log = logging.getLogger(__name__)

CANONICAL_COLUMNS = ["transaction_id", "sender_id", "receiver_id", "amount", "timestamp"]
REQUIRED_FIELDS = ("sender_id", "receiver_id", "amount")

# Matching order matters: a header consumed by an earlier field is unavailable later.
_MATCH_ORDER = ("sender_id", "receiver_id", "amount", "timestamp", "transaction_id")

COLUMN_HINTS: Dict[str, List[str]] = {
    "transaction_id": [
        "transaction_id", "txn_id", "trans_id", "tx_id", "id", "transaction",
        "txn", "trans_no", "reference", "ref",
    ],
    "sender_id": [
        "sender_id", "sender", "from", "from_id", "from_account", "source",
        "source_id", "payer", "payer_id", "originator", "debit_account",
        "source_account",
    ],
    "receiver_id": [
        "receiver_id", "receiver", "to", "to_id", "to_account", "target",
        "target_id", "payee", "payee_id", "beneficiary", "credit_account",
        "dest", "destination", "destination_id", "dest_account",
    ],
    "amount": [
        "amount", "value", "sum", "total", "amt", "price", "payment",
        "transfer_amount", "txn_amount", "transaction_amount",
    ],
    "timestamp": [
        "timestamp", "date", "time", "datetime", "created_at", "created",
        "txn_date", "transaction_date", "trans_date", "occurred_at", "ts", "year",
    ],
}

_TS_FORMATS = ["%Y-%m-%d %H:%M:%S", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M", "%Y-%m-%d"]


class ParseError(ValueError):
    """Base class for fatal ingestion errors."""


class NeedsMappingError(ParseError):
    """Mandatory columns could not be auto-detected; the caller must supply a mapping."""

    code = "NEEDS_MAPPING"

    def __init__(self, headers: List[str]):
        self.headers = list(headers)
        super().__init__(self.code)


class ColumnNotFoundError(ParseError):
    """A confirmed mapping names a column the file does not have."""


class EmptyDatasetError(ParseError):
    """No valid transactions remain after validation."""


def _decode_bytes(raw: bytes) -> str:
    """Try UTF-8 (BOM tolerant), then latin-1 fallback."""
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        return raw.decode("latin-1", errors="replace")


def normalize_header(header: str) -> str:
    h = re.sub(r"[^a-z0-9]", "_", str(header).lower())
    return re.sub(r"_+", "_", h).strip("_")


def auto_map_columns(headers: List[str]) -> Optional[Dict[str, str]]:
    """
    Map canonical fields to the given headers.

    Returns None when any of sender_id / receiver_id / amount cannot be
    matched.  Unmatched optional fields get the generated-value sentinels.
    """
    normalized = [normalize_header(h) for h in headers]
    used: set = set()
    mapping: Dict[str, str] = {}

    for field in _MATCH_ORDER:
        hints = COLUMN_HINTS[field]
        best = next(
            (i for i, h in enumerate(normalized) if i not in used and h and h in hints),
            None,
        )
        if best is None:
            best = next(
                (
                    i for i, h in enumerate(normalized)
                    if i not in used and h and any(hint in h or h in hint for hint in hints)
                ),
                None,
            )
        if best is not None:
            mapping[field] = headers[best]
            used.add(best)

    if any(field not in mapping for field in REQUIRED_FIELDS):
        return None

    mapping.setdefault("timestamp", GENERATED_TIMESTAMP)
    mapping.setdefault("transaction_id", GENERATED_TX_ID)
    return mapping


def _header_names(values: List) -> List[str]:
    """Trim header cells, name blank ones and de-duplicate like pandas does."""
    names: List[str] = []
    for i, value in enumerate(values):
        name = str(value).replace("\ufeff", "").strip() or f"Unnamed: {i}"
        base, k = name, 1
        while name in names:
            name = f"{base}.{k}"
            k += 1
        names.append(name)
    return names


def _read_frame(text: str) -> Tuple[pd.DataFrame, int]:
    """
    Read delimited text into an all-string DataFrame with trimmed headers.

    Fields are matched to headers by position.  Rows longer than the header
    keep their leading fields and the rest are ignored.  Returns the frame
    and the number of rows whose ignored fields were not blank; a trailing
    delimiter alone is not counted.
    """
    read_opts = dict(
        header=None,
        dtype=str,
        keep_default_na=False,
        skip_blank_lines=True,
        engine="python",
    )
    try:
        width = pd.read_csv(io.StringIO(text), nrows=1, **read_opts).shape[1]
        extra_field_rows = 0

        def _truncate(fields: List[str]) -> List[str]:
            nonlocal extra_field_rows
            if any(str(f).strip() for f in fields[width:]):
                extra_field_rows += 1
            return fields[:width]

        grid = pd.read_csv(io.StringIO(text), on_bad_lines=_truncate, **read_opts)
    except pd.errors.EmptyDataError as exc:
        raise EmptyDatasetError("CSV file is empty – no header row found.") from exc
    except pd.errors.ParserError as exc:
        raise ParseError(f"CSV parse error: {exc}") from exc

    grid = grid.fillna("")
    raw = grid.iloc[1:].reset_index(drop=True)
    raw.columns = _header_names(grid.iloc[0].tolist())
    return raw, extra_field_rows


def _as_text(data: bytes | str) -> str:
    return data if isinstance(data, str) else _decode_bytes(data)


def preview_csv(data: bytes | str) -> dict:
    """
    Inspect headers and the first rows without validating anything.

    Never raises on unrecognised columns; ``needs_mapping`` tells the caller
    whether a manual mapping step is required.
    """
    try:
        raw, _ = _read_frame(_as_text(data))
    except ParseError:
        return {
            "headers": [],
            "needs_mapping": True,
            "auto_mapping": None,
            "row_count": 0,
            "sample_rows": [],
        }

    headers = list(raw.columns)
    auto_mapping = auto_map_columns(headers)
    sample = raw.head(PREVIEW_SAMPLE_ROWS)
    return {
        "headers": headers,
        "needs_mapping": auto_mapping is None,
        "auto_mapping": auto_mapping,
        "row_count": len(raw),
        "sample_rows": [[str(v).strip() for v in row] for row in sample.itertuples(index=False)],
    }


def _resolve_mapping(mapping: Mapping[str, str], headers: List[str]) -> Dict[str, str]:
    resolved = dict(mapping)
    resolved.setdefault("transaction_id", GENERATED_TX_ID)
    resolved.setdefault("timestamp", GENERATED_TIMESTAMP)
    sentinels = {"transaction_id": GENERATED_TX_ID, "timestamp": GENERATED_TIMESTAMP}

    for field in CANONICAL_COLUMNS:
        column = resolved.get(field) or ""
        if column == sentinels.get(field):
            continue
        if column not in headers:
            raise ColumnNotFoundError(
                f"Could not find mapped column {column!r} for '{field}'. "
                f"Found: {headers}. Please verify your column mapping."
            )
    return resolved


def _parse_timestamps(series: pd.Series) -> pd.Series:
    """Try each known format then fall back to mixed-format inference (naive UTC)."""
    for fmt in _TS_FORMATS:
        parsed = pd.to_datetime(series, format=fmt, errors="coerce", utc=True)
        if parsed.notna().all():
            break
    else:
        parsed = pd.to_datetime(series, format="mixed", errors="coerce", utc=True)
    return parsed.dt.tz_localize(None)


def parse_csv(
    file_bytes: bytes | str,
    mapping: Optional[Mapping[str, str]] = None,
) -> Tuple[pd.DataFrame, dict]:
    """
    Parse and validate CSV content into a transaction DataFrame.

    Parameters
    ----------
    file_bytes : raw upload (bytes) or already-decoded text
    mapping    : canonical field → header name.  When omitted the columns are
                 auto-detected and NeedsMappingError is raised on failure.

    Returns
    -------
    df    : pd.DataFrame – columns transaction_id, sender_id, receiver_id,
                           amount (float), timestamp (datetime64)
    stats : dict         – parse statistics and warnings

    Raises
    ------
    NeedsMappingError, ColumnNotFoundError, EmptyDatasetError
    """
    stats: dict = {
        "total_rows": 0,
        "valid_rows": 0,
        "dropped_rows": 0,
        "non_numeric_amounts": 0,
        "negative_amounts": 0,
        "missing_accounts": 0,
        "self_transactions": 0,
        "bad_timestamps": 0,
        "duplicate_tx_ids": 0,
        "extra_field_rows": 0,
        "warnings": [],
    }

    # 1. Decode & read ─────────────────────────────────────────────────────────
    raw, stats["extra_field_rows"] = _read_frame(_as_text(file_bytes))
    headers = list(raw.columns)
    stats["total_rows"] = len(raw)
    if stats["extra_field_rows"]:
        stats["warnings"].append(
            f"Ignored extra fields beyond the header in {stats['extra_field_rows']} rows."
        )
    log.info("CSV loaded: %d raw rows, headers=%s", len(raw), headers)

    # 2. Resolve column mapping ────────────────────────────────────────────────
    if mapping is None:
        mapping = auto_map_columns(headers)
        if mapping is None:
            log.info("Column auto-mapping failed; manual mapping required")
            raise NeedsMappingError(headers)
    mapping = _resolve_mapping(mapping, headers)

    # 3. Project onto the canonical schema ─────────────────────────────────────
    ordinal = pd.Series(np.arange(1, len(raw) + 1), index=raw.index).astype(str)
    blank = pd.Series("", index=raw.index, dtype=object)

    def _column(field: str, sentinel: Optional[str] = None) -> pd.Series:
        name = mapping[field]
        if name == sentinel:
            return blank
        return raw[name].astype(str).str.strip()

    tx_ids = _column("transaction_id", GENERATED_TX_ID)
    tx_ids = tx_ids.where(tx_ids != "", "TXN_" + ordinal.str.zfill(6))

    day = ((ordinal.astype(int) % 28) + 1).astype(str).str.zfill(2)
    ts_raw = _column("timestamp", GENERATED_TIMESTAMP)
    ts_raw = ts_raw.where(ts_raw != "", "2026-01-" + day + " 00:00:00")

    df = pd.DataFrame({
        "transaction_id": tx_ids,
        "sender_id":      _column("sender_id"),
        "receiver_id":    _column("receiver_id"),
        "amount":         _column("amount").str.replace(r"[^0-9.\-]", "", regex=True),
        "timestamp":      ts_raw,
    })

    # 4. Parse & validate amount ───────────────────────────────────────────────
    df["amount"] = pd.to_numeric(df["amount"], errors="coerce")
    bad = df["amount"].isna()
    stats["non_numeric_amounts"] = int(bad.sum())
    if stats["non_numeric_amounts"]:
        stats["warnings"].append(
            f"Dropped {stats['non_numeric_amounts']} rows with non-numeric amount."
        )
        df = df[~bad].copy()

    # 5. Drop rows without both parties ────────────────────────────────────────
    missing = df["sender_id"].eq("") | df["receiver_id"].eq("")
    stats["missing_accounts"] = int(missing.sum())
    if stats["missing_accounts"]:
        stats["warnings"].append(
            f"Dropped {stats['missing_accounts']} rows with blank sender or receiver."
        )
        df = df[~missing].copy()

    # 6. Remove self-transactions ──────────────────────────────────────────────
    self_tx = df["sender_id"] == df["receiver_id"]
    stats["self_transactions"] = int(self_tx.sum())
    if stats["self_transactions"]:
        stats["warnings"].append(
            f"Dropped {stats['self_transactions']} self-transactions."
        )
        df = df[~self_tx].copy()

    neg = df["amount"] < 0
    stats["negative_amounts"] = int(neg.sum())
    if stats["negative_amounts"]:
        stats["warnings"].append(
            f"Dropped {stats['negative_amounts']} rows with negative amount."
        )
        df = df[~neg].copy()
    df["amount"] = df["amount"].astype(float)

    # 7. Parse timestamps ──────────────────────────────────────────────────────
    df["timestamp"] = _parse_timestamps(df["timestamp"])
    bad_ts = df["timestamp"].isna()
    stats["bad_timestamps"] = int(bad_ts.sum())
    if stats["bad_timestamps"]:
        stats["warnings"].append(
            f"Dropped {stats['bad_timestamps']} rows with unparseable timestamp."
        )
        df = df[~bad_ts].copy()

    # 8. Duplicate transaction ids are reported, not removed ───────────────────
    stats["duplicate_tx_ids"] = int(df.duplicated(subset=["transaction_id"]).sum())
    if stats["duplicate_tx_ids"]:
        stats["warnings"].append(
            f"Found {stats['duplicate_tx_ids']} duplicate transaction_id values."
        )

    if df.empty:
        raise EmptyDatasetError(
            "No valid transactions found in the CSV file. "
            f"Issues: {'; '.join(stats['warnings']) or 'no data rows'}"
        )

    df = df[CANONICAL_COLUMNS].reset_index(drop=True)
    stats["valid_rows"] = len(df)
    stats["dropped_rows"] = stats["total_rows"] - len(df)
    log.info("Parse complete: %d valid / %d total rows", stats["valid_rows"], stats["total_rows"])
    return df, stats
