"""
FILE: Schemas/preprocessor.py
------------------------------
Pydantic output schema for the cleaning stage.
PreprocessorOutput carries the cleaning summary forward in the
orchestrator state; the cleaned DataFrame travels separately.
"""

from pydantic import BaseModel, Field


# ─────────────────────────────────────────────
# PER-COLUMN ACTION LOG
# Records exactly what was done to each numeric column.
# ─────────────────────────────────────────────

class ColumnCleaningLog(BaseModel):
    column: str
    decimal_commas_fixed: int = 0           # cells whose ',' decimal separator was rewritten
    unit_divisor: float | None = None       # set when a unit correction was applied
    sentinels_replaced: int = 0             # -200 readings turned into missing
    nulls_imputed: int = 0                  # missing values filled with the column mean
    imputation_value: float | None = None   # mean used for imputation (pre outlier removal)


# ─────────────────────────────────────────────
# OUTLIER FENCE ON THE TARGET
# ─────────────────────────────────────────────

class OutlierBounds(BaseModel):
    column: str
    q1: float
    q3: float
    iqr: float
    lower: float
    upper: float
    degenerate: bool = False                # True when IQR == 0 — only rows equal to Q1 survive


# ─────────────────────────────────────────────
# MAIN OUTPUT SCHEMA
# ─────────────────────────────────────────────

class PreprocessorOutput(BaseModel):
    # ── Shape changes ──
    original_shape: tuple[int, int]
    final_shape: tuple[int, int]
    rows_dropped_total: int = 0

    dropped_columns: list[str] = Field(default_factory=list)
    column_logs: list[ColumnCleaningLog] = Field(default_factory=list)

    rows_dropped_missing_timestamp: int = 0

    # ── Target-only outlier filter ──
    outlier_bounds: OutlierBounds | None = None
    rows_dropped_outliers: int = 0

    # ── Summary for user display ──
    changes_summary: list[str] = Field(default_factory=list)   # plain English change log
    warnings: list[str] = Field(default_factory=list)          # non-fatal concerns
