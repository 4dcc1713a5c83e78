"""
FILE: core/profiler_engine.py
------------------------------
Descriptive statistics of the raw Air Quality file.
No orchestration dependencies — just pandas, scipy, and numpy.
Read-only: never mutates the DataFrame it is given.

Sentinel readings (-200) and empty cells are counted separately and
excluded from every statistic, so the profile shows what the sensors
actually reported.
"""

import logging

import numpy as np
import pandas as pd
from scipy import stats

from Schemas.data_profiler_schema import NumericColumnProfile, ProfilerOutput
from constants.data_profiler_constants import (
    MISSING_LOW_THRESHOLD,
    MISSING_MODERATE_THRESHOLD,
    SKEW_HIGH,
    SKEW_MODERATE,
)
from constants.loader import DEFAULT_TARGET, NUMERIC_COLUMNS, REQUIRED_COLUMNS, TIMESTAMP_COLUMNS
from constants.preprocessor import IQR_MULTIPLIER, SENTINEL_VALUE

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────
# PRIVATE HELPERS
# ─────────────────────────────────────────────

def _missing_severity(pct: float) -> str:
    if pct < MISSING_LOW_THRESHOLD:
        return "low"
    elif pct < MISSING_MODERATE_THRESHOLD:
        return "moderate"
    else:
        return "high"


def _skewness_interpretation(skew: float) -> str:
    abs_skew = abs(skew)
    if abs_skew < SKEW_MODERATE:
        return "symmetric"
    elif abs_skew < SKEW_HIGH:
        return "moderate skew"
    else:
        direction = "right" if skew > 0 else "left"
        return f"high {direction} skew"


def _lenient_numeric(series: pd.Series) -> pd.Series:
    """Decimal-comma strings → float; anything unparseable becomes NaN."""
    text = series.fillna("").astype(str).str.strip().str.replace(",", ".", regex=False)
    return pd.to_numeric(text, errors="coerce")


def _count_anomalies_iqr(clean: pd.Series) -> int:
    if len(clean) < 4:
        return 0
    q1 = clean.quantile(0.25)
    q3 = clean.quantile(0.75)
    iqr = q3 - q1
    lower = q1 - IQR_MULTIPLIER * iqr
    upper = q3 + IQR_MULTIPLIER * iqr
    return int(((clean < lower) | (clean > upper)).sum())


def _confidence_interval_95(clean: pd.Series) -> tuple[float, float] | None:
    n = len(clean)
    if n < 2 or clean.std() == 0:
        return None
    se = stats.sem(clean)
    ci = stats.t.interval(0.95, df=n - 1, loc=clean.mean(), scale=se)
    return (round(float(ci[0]), 4), round(float(ci[1]), 4))


def _correlation(x: pd.Series, y: pd.Series) -> float | None:
    both = pd.concat([x, y], axis=1).dropna()
    if len(both) < 3 or both.iloc[:, 0].std() == 0 or both.iloc[:, 1].std() == 0:
        return None
    r, _ = stats.pearsonr(both.iloc[:, 0], both.iloc[:, 1])
    return round(float(r), 4)


# ─────────────────────────────────────────────
# PUBLIC — MAIN PROFILING FUNCTION
# ─────────────────────────────────────────────

def profile_dataframe(df: pd.DataFrame, target: str = DEFAULT_TARGET) -> ProfilerOutput:
    """
    Profiles every declared numeric column of the raw file.
    Unparseable cells are counted and reported here but not raised —
    the preprocessor engine is where they become fatal.
    """
    n_rows, n_cols = df.shape
    warnings: list[str] = []
    profiles: list[NumericColumnProfile] = []

    valid: dict[str, pd.Series] = {}
    for col in NUMERIC_COLUMNS:
        raw = df[col]
        parsed = _lenient_numeric(raw)
        empty = raw.fillna("").astype(str).str.strip() == ""
        sentinel = parsed == SENTINEL_VALUE
        valid[col] = parsed.mask(sentinel)

        empty_count = int(empty.sum())
        sentinel_count = int(sentinel.sum())
        unparseable_count = int((parsed.isna() & ~empty).sum())
        missing_pct = round((empty_count + sentinel_count) / n_rows, 4) if n_rows else 0.0
        severity = _missing_severity(missing_pct)

        if unparseable_count:
            warnings.append(
                f"Column '{col}' has {unparseable_count} value(s) that are not numbers."
            )
        if severity == "high":
            warnings.append(
                f"Column '{col}' is missing {missing_pct*100:.1f}% of readings — "
                f"most of it will be mean-imputed."
            )

        clean = valid[col].dropna()
        has = len(clean) > 0
        skew_val = round(float(clean.skew()), 4) if len(clean) > 2 and clean.std() > 0 else None
        q1_val = round(float(clean.quantile(0.25)), 4) if has else None
        q3_val = round(float(clean.quantile(0.75)), 4) if has else None

        profiles.append(NumericColumnProfile(
            column=col,
            empty_count=empty_count,
            sentinel_count=sentinel_count,
            unparseable_count=unparseable_count,
            missing_pct=missing_pct,
            missing_severity=severity,
            mean=round(float(clean.mean()), 4) if has else None,
            median=round(float(clean.median()), 4) if has else None,
            std=round(float(clean.std()), 4) if len(clean) > 1 else None,
            min=round(float(clean.min()), 4) if has else None,
            max=round(float(clean.max()), 4) if has else None,
            q1=q1_val,
            q3=q3_val,
            iqr=round(q3_val - q1_val, 4) if has else None,
            skewness=skew_val,
            skewness_interpretation=_skewness_interpretation(skew_val) if skew_val is not None else None,
            confidence_interval_95=_confidence_interval_95(clean),
            anomaly_count=_count_anomalies_iqr(clean),
        ))

    # ── Correlation with the target, once every column is parsed ──
    if target in valid:
        for profile in profiles:
            if profile.column != target:
                profile.correlation_with_target = _correlation(valid[profile.column], valid[target])

    timestamp_missing = df[TIMESTAMP_COLUMNS].isna().any(axis=1)

    logger.info("Profiled %d numeric columns over %d rows", len(profiles), n_rows)
    return ProfilerOutput(
        n_rows=n_rows,
        n_cols=n_cols,
        target=target,
        numeric_columns=profiles,
        extra_columns=[c for c in df.columns if c not in REQUIRED_COLUMNS],
        rows_missing_timestamp=int(timestamp_missing.sum()),
        warnings=warnings,
    )
