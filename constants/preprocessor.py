# ─────────────────────────────────────────────
# CLEANING RULES
# ─────────────────────────────────────────────

SENTINEL_VALUE = -200.0            # "no reading" marker in the source file

# Header cells pandas fills in for the empty trailing ";;" columns
UNNAMED_COLUMN_PREFIX = "Unnamed"

# {column: divisor} — known ingestion scaling errors
UNIT_CORRECTIONS = {"RH": 10.0}

# Outlier fence on the target: [Q1 - k*IQR, Q3 + k*IQR]
IQR_MULTIPLIER = 1.5
