"""
main.py – FastAPI application entry point.

Endpoints
---------
GET  /          – root status
GET  /health    – liveness / readiness probe with version info
POST /preview   – upload CSV, return headers, auto-detected mapping, sample rows
POST /analyze   – upload CSV (+ optional confirmed column mapping), run the
                  full forensics pipeline, return JSON

Error mapping
-------------
- non-CSV upload                     → 400
- file over MAX_FILE_SIZE_BYTES      → 413
- columns not recognised             → 422 {"code": "NEEDS_MAPPING", "headers": [...]}
- incomplete / inconsistent mapping,
  no valid transactions              → 422 with message
"""
from __future__ import annotations

import logging
import uuid

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware

from .config import (
    CORS_ORIGINS,
    GENERATED_TIMESTAMP,
    GENERATED_TX_ID,
    MAX_FILE_SIZE_BYTES,
    MAX_FILE_SIZE_MB,
)
from .engine import analyze_csv
from .models import AnalysisResult, CSVPreview
from .parser import NeedsMappingError, ParseError, preview_csv

__version__ = "2.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s │ %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    log.info("Forensic Ledger Analyzer v%s starting up", __version__)
    yield
    log.info("Forensic Ledger Analyzer shutting down")


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Forensic Ledger Analyzer",
    description="Detect fraud rings, smurfing and shell layering in transaction ledgers",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Request-ID middleware
# ---------------------------------------------------------------------------
@app.middleware("http")
async def add_request_id(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
async def _read_upload(file: UploadFile) -> bytes:
    if not (file.filename or "").lower().endswith(".csv"):
        raise HTTPException(status_code=400, detail="Only CSV files are accepted.")

    file_bytes = await file.read()
    if len(file_bytes) > MAX_FILE_SIZE_BYTES:
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum size is {MAX_FILE_SIZE_MB} MB.",
        )
    return file_bytes


def _confirmed_mapping(
    sender_id: Optional[str],
    receiver_id: Optional[str],
    amount: Optional[str],
    transaction_id: Optional[str],
    timestamp: Optional[str],
) -> Optional[dict]:
    """Build a mapping from form fields; None when the caller sent none."""
    fields = (sender_id, receiver_id, amount, transaction_id, timestamp)
    if not any(fields):
        return None
    if not (sender_id and receiver_id and amount):
        raise HTTPException(
            status_code=422,
            detail="Please map at least Sender, Receiver, and Amount columns.",
        )
    return {
        "sender_id":      sender_id,
        "receiver_id":    receiver_id,
        "amount":         amount,
        "transaction_id": transaction_id or GENERATED_TX_ID,
        "timestamp":      timestamp or GENERATED_TIMESTAMP,
    }


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@app.get("/", include_in_schema=False)
def root():
    return {"status": "ok", "service": "Forensic Ledger Analyzer", "version": __version__}


@app.get("/health")
def health():
    """Liveness / readiness probe."""
    return {
        "status": "healthy",
        "version": __version__,
        "max_file_size_mb": MAX_FILE_SIZE_MB,
    }


@app.post("/preview", response_model=CSVPreview)
async def preview(file: UploadFile = File(...)):
    """Show detected headers and the proposed column mapping before analysis."""
    file_bytes = await _read_upload(file)
    result = preview_csv(file_bytes)
    log.info(
        "Preview %s: %d rows, needs_mapping=%s",
        file.filename,
        result["row_count"],
        result["needs_mapping"],
    )
    return result


@app.post("/analyze", response_model=AnalysisResult)
async def analyze(
    file: UploadFile = File(...),
    sender_id: Optional[str] = Form(None),
    receiver_id: Optional[str] = Form(None),
    amount: Optional[str] = Form(None),
    transaction_id: Optional[str] = Form(None),
    timestamp: Optional[str] = Form(None),
):
    """
    Upload a CSV of transactions and receive a forensic analysis.

    Columns are auto-detected unless a mapping is supplied as form fields
    (header name per canonical field).
    """
    file_bytes = await _read_upload(file)
    mapping = _confirmed_mapping(sender_id, receiver_id, amount, transaction_id, timestamp)

    try:
        result = analyze_csv(file_bytes, mapping)
    except NeedsMappingError as exc:
        log.info("Column mapping required for %s: headers=%s", file.filename, exc.headers)
        raise HTTPException(
            status_code=422,
            detail={
                "code": exc.code,
                "message": "Columns could not be detected automatically; supply a mapping.",
                "headers": exc.headers,
            },
        )
    except ParseError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    log.info(
        "Analysis complete for %s in %.2fs: %d rings, %d flagged accounts",
        file.filename,
        result["summary"]["processing_time_seconds"],
        result["summary"]["fraud_rings_detected"],
        result["summary"]["suspicious_accounts_flagged"],
    )
    return result
