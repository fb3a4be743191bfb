"""
models.py – Pydantic request / response models.
Defines the exact JSON contract the API must return.
"""
from __future__ import annotations
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

from .config import GENERATED_TIMESTAMP, GENERATED_TX_ID


class SuspiciousAccount(BaseModel):
    """ring_id is null, never a placeholder, when the account has no ring."""
    account_id: str
    suspicion_score: float = Field(..., ge=0.0, le=100.0)
    detected_patterns: List[str]
    ring_id: Optional[str] = Field(None, min_length=1)
    reason: List[str]
    explanation: str


class FraudRing(BaseModel):
    ring_id: str
    member_accounts: List[str] = Field(..., min_length=3)
    pattern_type: str
    risk_score: float = Field(..., ge=0.0, le=100.0)


class AnalysisSummary(BaseModel):
    total_accounts_analyzed: int
    suspicious_accounts_flagged: int
    fraud_rings_detected: int
    fan_in_accounts: int
    fan_out_accounts: int
    processing_time_seconds: float


class GraphNode(BaseModel):
    id: str
    inDegree: int
    outDegree: int
    totalAmount: float
    isSuspicious: bool
    ringId: Optional[str] = None
    patterns: List[str]
    score: float = Field(..., ge=0.0, le=100.0)


class GraphEdge(BaseModel):
    source: str
    target: str
    amount: float
    timestamp: str
    isRingEdge: bool
    edge_type: str


class GraphData(BaseModel):
    nodes: List[GraphNode]
    edges: List[GraphEdge]


class ParseStats(BaseModel):
    model_config = ConfigDict(extra="allow")

    total_rows: int
    valid_rows: int
    dropped_rows: int
    non_numeric_amounts: int
    negative_amounts: int
    missing_accounts: int
    self_transactions: int
    bad_timestamps: int
    duplicate_tx_ids: int
    extra_field_rows: int = 0
    warnings: List[str]


class AnalysisResult(BaseModel):
    suspicious_accounts: List[SuspiciousAccount]
    fraud_rings: List[FraudRing]
    summary: AnalysisSummary
    graph: GraphData
    parse_stats: Optional[ParseStats] = None


class ColumnMapping(BaseModel):
    """Canonical field → CSV header.  Optional fields default to generated values."""
    sender_id: str = Field(..., min_length=1)
    receiver_id: str = Field(..., min_length=1)
    amount: str = Field(..., min_length=1)
    transaction_id: str = GENERATED_TX_ID
    timestamp: str = GENERATED_TIMESTAMP


class CSVPreview(BaseModel):
    headers: List[str]
    needs_mapping: bool
    auto_mapping: Optional[ColumnMapping] = None
    row_count: int
    sample_rows: List[List[str]]
