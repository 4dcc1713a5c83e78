"""
FILE: core/preprocessor_engine.py
-----------------------------------
Pure cleaning logic for the Air Quality file.
No orchestration dependencies.

Steps, applied in this order on a copy of the raw DataFrame:
  1. Drop the empty trailing columns left by the ";;" line endings
  2. Coerce numeric fields: decimal comma → decimal point → float
     (a non-empty value that does not parse is fatal)
  3. Unit correction: RH / 10
  4. Sentinel -200 → NaN
  5. Mean imputation per numeric field (mean taken before outlier removal)
  6. Drop rows without Date or Time
  7. IQR outlier removal on the target only

Predictor outliers are deliberately left in place: the fence is a
single-field filter on the target.
"""

import logging

import numpy as np
import pandas as pd

from Schemas.preprocessor import ColumnCleaningLog, OutlierBounds, PreprocessorOutput
from constants.loader import DEFAULT_TARGET, NUMERIC_COLUMNS, TIMESTAMP_COLUMNS
from constants.preprocessor import (
    IQR_MULTIPLIER,
    SENTINEL_VALUE,
    UNIT_CORRECTIONS,
    UNNAMED_COLUMN_PREFIX,
)
from core.errors import ParseError

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────
# STEP 1 — DROP MALFORMED TRAILING COLUMNS
# ─────────────────────────────────────────────

def _drop_unnamed_columns(df: pd.DataFrame) -> tuple[pd.DataFrame, list[str]]:
    dropped = [c for c in df.columns if str(c).startswith(UNNAMED_COLUMN_PREFIX) or not str(c).strip()]
    return df.drop(columns=dropped), dropped


# ─────────────────────────────────────────────
# STEP 2 — COERCE DECIMAL-COMMA STRINGS TO FLOAT
# ─────────────────────────────────────────────

def _coerce_numeric_columns(
    df: pd.DataFrame,
    columns: list[str],
) -> tuple[pd.DataFrame, dict[str, int]]:
    """
    Rewrites '2,6' as 2.6 for every listed column.
    Empty cells become NaN. Any other value that fails to parse raises
    ParseError — rows are never skipped silently.

    Returns:
        df:           DataFrame with float columns
        comma_counts: {column_name: cells whose decimal comma was rewritten}
    """
    df = df.copy()
    comma_counts: dict[str, int] = {}

    for col in columns:
        if pd.api.types.is_numeric_dtype(df[col]):
            df[col] = df[col].astype(float)
            continue

        text = df[col].fillna("").astype(str).str.strip()
        has_comma = text.str.contains(",", regex=False)
        parsed = pd.to_numeric(text.str.replace(",", ".", regex=False), errors="coerce")

        bad = parsed.isna() & (text != "")
        if bad.any():
            first = bad.idxmax()
            raise ParseError(
                f"Column '{col}' has {int(bad.sum())} unparseable value(s); "
                f"first at row {first}: '{text.loc[first]}'."
            )

        df[col] = parsed.astype(float)
        if has_comma.any():
            comma_counts[col] = int(has_comma.sum())

    return df, comma_counts


# ─────────────────────────────────────────────
# STEP 3 — UNIT CORRECTION
# ─────────────────────────────────────────────

def _apply_unit_corrections(
    df: pd.DataFrame,
    corrections: dict[str, float],
) -> pd.DataFrame:
    """Divides each listed column by its divisor; sentinel readings keep their -200 marker."""
    df = df.copy()
    for col, divisor in corrections.items():
        if col not in df.columns:
            continue
        df[col] = df[col].where(df[col] == SENTINEL_VALUE, df[col] / divisor)
    return df


# ─────────────────────────────────────────────
# STEP 4 + 5 — SENTINELS AND MEAN IMPUTATION
# ─────────────────────────────────────────────

def _replace_sentinels(
    df: pd.DataFrame,
    columns: list[str],
) -> tuple[pd.DataFrame, dict[str, int]]:
    df = df.copy()
    replaced: dict[str, int] = {}
    for col in columns:
        mask = df[col] == SENTINEL_VALUE
        if mask.any():
            replaced[col] = int(mask.sum())
            df.loc[mask, col] = np.nan
    return df, replaced


def _impute_means(
    df: pd.DataFrame,
    columns: list[str],
) -> tuple[pd.DataFrame, dict[str, tuple[int, float]]]:
    """
    Fills NaN with the column mean over observed values.

    Returns:
        df:      imputed DataFrame
        imputed: {column_name: (count_filled, fill_value)}
    """
    df = df.copy()
    imputed: dict[str, tuple[int, float]] = {}
    for col in columns:
        null_count = int(df[col].isna().sum())
        if null_count == 0:
            continue
        fill_val = df[col].mean()
        if pd.isna(fill_val):
            raise ParseError(
                f"Column '{col}' has no valid readings — cannot impute a mean "
                f"for its {null_count} missing value(s)."
            )
        df[col] = df[col].fillna(fill_val)
        imputed[col] = (null_count, float(fill_val))
    return df, imputed


# ─────────────────────────────────────────────
# STEP 6 — ROWS WITHOUT A TIMESTAMP
# ─────────────────────────────────────────────

def _drop_missing_timestamps(df: pd.DataFrame) -> tuple[pd.DataFrame, int]:
    present = [c for c in TIMESTAMP_COLUMNS if c in df.columns]
    if not present:
        return df, 0
    stamps = df[present].fillna("").astype(str).apply(lambda s: s.str.strip())
    missing = (stamps == "").any(axis=1)
    return df.loc[~missing], int(missing.sum())


# ─────────────────────────────────────────────
# STEP 7 — IQR OUTLIER FILTER ON THE TARGET
# ─────────────────────────────────────────────

def compute_iqr_bounds(series: pd.Series, multiplier: float = IQR_MULTIPLIER) -> OutlierBounds:
    """Tukey fence for one column. A zero IQR collapses the fence to the single value Q1."""
    q1 = float(series.quantile(0.25))
    q3 = float(series.quantile(0.75))
    iqr = q3 - q1
    return OutlierBounds(
        column=str(series.name),
        q1=q1,
        q3=q3,
        iqr=iqr,
        lower=q1 - multiplier * iqr,
        upper=q3 + multiplier * iqr,
        degenerate=iqr == 0,
    )


def remove_target_outliers(
    df: pd.DataFrame,
    target: str,
    multiplier: float = IQR_MULTIPLIER,
) -> tuple[pd.DataFrame, OutlierBounds, int]:
    """Drops rows whose target lies outside [Q1 - k·IQR, Q3 + k·IQR]."""
    if df.empty:
        raise ParseError(f"No rows left to filter on '{target}'.")
    bounds = compute_iqr_bounds(df[target], multiplier)
    keep = df[target].between(bounds.lower, bounds.upper, inclusive="both")
    return df.loc[keep], bounds, int((~keep).sum())


# ─────────────────────────────────────────────
# MAIN — CLEAN DATASET
# ─────────────────────────────────────────────

def clean_dataset(
    raw_df: pd.DataFrame,
    target: str = DEFAULT_TARGET,
    unit_corrections: dict[str, float] | None = None,
    iqr_multiplier: float = IQR_MULTIPLIER,
) -> tuple[pd.DataFrame, PreprocessorOutput]:
    """
    Runs all seven cleaning steps in order. The input is never mutated.

    Returns:
        cleaned_df:          numeric fields as float, Date/Time kept as strings,
                             original row labels preserved
        preprocessor_output: structured summary of every change made
    """
    if target not in NUMERIC_COLUMNS:
        raise ParseError(f"Target '{target}' is not one of the numeric fields {NUMERIC_COLUMNS}.")

    corrections = UNIT_CORRECTIONS if unit_corrections is None else unit_corrections
    original_shape = raw_df.shape
    column_logs = {col: ColumnCleaningLog(column=col) for col in NUMERIC_COLUMNS}
    changes_summary: list[str] = []
    warnings: list[str] = []

    # ── STEP 1: Drop trailing unnamed columns ──
    df, dropped_columns = _drop_unnamed_columns(raw_df)
    if dropped_columns:
        changes_summary.append(f"Dropped malformed trailing column(s) {dropped_columns}.")

    # ── STEP 2: Decimal comma → float ──
    df, comma_counts = _coerce_numeric_columns(df, NUMERIC_COLUMNS)
    for col, count in comma_counts.items():
        column_logs[col].decimal_commas_fixed = count

    # ── STEP 3: Unit correction ──
    df = _apply_unit_corrections(df, corrections)
    for col, divisor in corrections.items():
        if col in column_logs:
            column_logs[col].unit_divisor = divisor
            changes_summary.append(f"'{col}': divided by {divisor:g} to correct its units.")

    # ── STEP 4: Sentinel → NaN ──
    df, replaced = _replace_sentinels(df, NUMERIC_COLUMNS)
    for col, count in replaced.items():
        column_logs[col].sentinels_replaced = count
        changes_summary.append(f"'{col}': {count} sentinel reading(s) ({SENTINEL_VALUE:g}) marked missing.")

    # ── STEP 5: Mean imputation (before outlier removal) ──
    df, imputed = _impute_means(df, NUMERIC_COLUMNS)
    for col, (count, value) in imputed.items():
        column_logs[col].nulls_imputed = count
        column_logs[col].imputation_value = round(value, 6)
        changes_summary.append(f"'{col}': imputed {count} missing value(s) with mean {value:.4f}.")
        if count / max(len(df), 1) >= 0.5:
            warnings.append(
                f"Column '{col}' was {count / len(df) * 100:.1f}% imputed — "
                f"it carries little information as a predictor."
            )

    # ── STEP 6: Drop rows without a timestamp ──
    df, missing_stamps = _drop_missing_timestamps(df)
    if missing_stamps:
        changes_summary.append(f"Dropped {missing_stamps} row(s) without Date/Time.")

    # ── STEP 7: Target-only IQR filter ──
    df, bounds, outliers = remove_target_outliers(df, target, iqr_multiplier)
    changes_summary.append(
        f"'{target}': removed {outliers} outlier row(s) outside "
        f"[{bounds.lower:.4f}, {bounds.upper:.4f}]."
    )
    if bounds.degenerate:
        warnings.append(
            f"'{target}' has zero IQR — only rows equal to {bounds.q1:g} were kept."
        )
        logger.warning("Zero IQR on %s; fence collapsed to %s", target, bounds.q1)

    logger.info(
        "Cleaned %d → %d rows (%d without timestamp, %d outliers)",
        original_shape[0], len(df), missing_stamps, outliers,
    )

    return df, PreprocessorOutput(
        original_shape=original_shape,
        final_shape=df.shape,
        rows_dropped_total=original_shape[0] - len(df),
        dropped_columns=dropped_columns,
        column_logs=list(column_logs.values()),
        rows_dropped_missing_timestamp=missing_stamps,
        outlier_bounds=bounds,
        rows_dropped_outliers=outliers,
        changes_summary=changes_summary,
        warnings=warnings,
    )
