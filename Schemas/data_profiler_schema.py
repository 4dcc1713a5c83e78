"""
FILE: Schemas/data_profiler_schema.py
--------------------------------------
Pydantic output schemas for the raw-data profiler.
Describes the file as loaded, before any cleaning is applied.
"""

from pydantic import BaseModel, Field


class NumericColumnProfile(BaseModel):
    column: str
    empty_count: int                             # blank cells in the file
    sentinel_count: int                          # readings equal to -200
    unparseable_count: int = 0                   # non-empty cells that are not numbers
    missing_pct: float                           # (empty + sentinel) / n_rows
    missing_severity: str                        # "low" | "moderate" | "high"
    mean: float | None = None
    median: float | None = None
    std: float | None = None
    min: float | None = None
    max: float | None = None
    q1: float | None = None
    q3: float | None = None
    iqr: float | None = None
    skewness: float | None = None
    skewness_interpretation: str | None = None  # "symmetric" | "moderate skew" | "high ... skew"
    confidence_interval_95: tuple[float, float] | None = None
    anomaly_count: int = 0                       # readings outside the 1.5·IQR fence
    correlation_with_target: float | None = None # Pearson r over rows where both are valid


class ProfilerOutput(BaseModel):
    n_rows: int
    n_cols: int
    target: str
    numeric_columns: list[NumericColumnProfile] = Field(default_factory=list)
    extra_columns: list[str] = Field(default_factory=list)   # columns outside the declared layout
    rows_missing_timestamp: int = 0
    warnings: list[str] = Field(default_factory=list)
