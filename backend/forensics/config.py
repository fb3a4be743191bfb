"""
config.py – Centralised configuration via environment variables.
All tunable thresholds live here so nothing is scattered across modules.
"""
import os


# ── Service ────────────────────────────────────────────────────────────────────
MAX_FILE_SIZE_MB: int = int(os.getenv("MAX_FILE_SIZE_MB", "10"))
MAX_FILE_SIZE_BYTES: int = MAX_FILE_SIZE_MB * 1024 * 1024
CORS_ORIGINS: list = os.getenv("CORS_ORIGINS", "*").split(",")

# ── Column mapping ─────────────────────────────────────────────────────────────
# Reserved header values meaning "synthesise this column per row".
GENERATED_TX_ID: str = "__generated_tx_id__"
GENERATED_TIMESTAMP: str = "__generated_timestamp__"
PREVIEW_SAMPLE_ROWS: int = 5

# ── Ring (SCC) detection ───────────────────────────────────────────────────────
SCC_MIN_SIZE: int = 3
SCC_RISK_BASE: float = 85.0
SCC_RISK_PER_MEMBER: float = 2.0

# ── Smurfing detection ─────────────────────────────────────────────────────────
SMURF_WINDOW_HOURS: float = float(os.getenv("SMURF_WINDOW_HOURS", "24"))
SMURF_MIN_COUNTERPARTIES: int = int(os.getenv("SMURF_MIN_COUNTERPARTIES", "5"))
# Windows whose median incoming amount reaches this are large legitimate payments.
SMURF_SMALL_TX_THRESHOLD: float = float(os.getenv("SMURF_SMALL_TX_THRESHOLD", "10000"))
# Share of a window's incoming total that must leave within the window.
SMURF_CONSOLIDATION_RATIO: float = float(os.getenv("SMURF_CONSOLIDATION_RATIO", "0.7"))

# Salary exclusion (fan-in): one payer, roughly daily, near-identical amounts.
SALARY_MIN_TX: int = 3
SALARY_GAP_MIN_HOURS: float = 20.0
SALARY_GAP_MAX_HOURS: float = 28.0
SALARY_AMOUNT_TOLERANCE: float = 0.1
SALARY_MATCH_RATIO: float = 0.5

# ── Shell detection ────────────────────────────────────────────────────────────
SHELL_MAX_DEGREE: int = int(os.getenv("SHELL_MAX_DEGREE", "3"))
SHELL_MIN_PATH: int = 3
SHELL_MAX_PATH: int = int(os.getenv("SHELL_MAX_PATH", "6"))

# ── Velocity detection ─────────────────────────────────────────────────────────
VELOCITY_WINDOW_MINUTES: float = float(os.getenv("VELOCITY_WINDOW_MINUTES", "60"))
VELOCITY_MAX_TX: int = int(os.getenv("VELOCITY_MAX_TX", "10"))

# ── Scoring ────────────────────────────────────────────────────────────────────
SCORE_SCC_MEMBER: float = 60.0
SCORE_FAN_HUB: float = 40.0
SCORE_FAN_COUNTERPARTY: float = 20.0
SCORE_SHELL: float = 30.0
SCORE_HIGH_VELOCITY: float = 25.0
MAX_SCORE: float = 100.0

# Legitimate-hub suppression (merchants, exchanges, payroll processors).
LEGIT_HUB_MIN_DEGREE: int = int(os.getenv("LEGIT_HUB_MIN_DEGREE", "20"))
LEGIT_HUB_PENALTY: float = float(os.getenv("LEGIT_HUB_PENALTY", "75"))

# ── Explanation tags ───────────────────────────────────────────────────────────
EXPLAIN_FAN_WINDOW_HOURS: float = 24.0
EXPLAIN_FAN_MIN_COUNTERPARTIES: int = 5
PASS_THROUGH_WINDOW_HOURS: float = 2.0
PASS_THROUGH_RATIO: float = 0.8
DORMANCY_DAYS: float = 7.0

# ── Risk scores for fraud_rings ────────────────────────────────────────────────
RING_RISK: dict = {
    "smurfing_fan_in":  80.0,
    "smurfing_fan_out": 78.0,
}
