"""
Shared fixtures: synthetic Air Quality readings rendered the way the UCI
export writes them (semicolons, decimal commas, -200 sentinels, two empty
trailing columns).
"""

from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from constants.loader import NUMERIC_COLUMNS

TARGET = "C6H6(GT)"
PREDICTORS = [c for c in NUMERIC_COLUMNS if c != TARGET]


def format_reading(value) -> str:
    """2.6 → '2,6'; NaN/None → '' (empty cell)."""
    if value is None or (isinstance(value, float) and np.isnan(value)):
        return ""
    text = f"{float(value):.4f}".rstrip("0").rstrip(".")
    return text.replace(".", ",")


def make_readings(n_rows: int = 60, seed: int = 0, noise: float = 0.2) -> dict[str, np.ndarray]:
    """Numeric fields with the target a noisy linear function of four predictors."""
    rng = np.random.default_rng(seed)
    readings: dict[str, np.ndarray] = {}
    for i, col in enumerate(PREDICTORS):
        readings[col] = rng.normal(loc=100 + 25 * i, scale=5 + i, size=n_rows)
    readings["RH"] = rng.uniform(200, 800, size=n_rows)      # ingested ten times too large

    z = {c: (v - v.mean()) / v.std() for c, v in readings.items()}
    readings[TARGET] = (
        10
        + 2.0 * z["PT08.S2(NMHC)"]
        + 1.0 * z["CO(GT)"]
        - 0.5 * z["T"]
        + 0.5 * z["PT08.S1(CO)"]
        + rng.normal(scale=noise, size=n_rows)
    )
    return readings


def make_raw_frame(readings: dict[str, np.ndarray]) -> pd.DataFrame:
    """String DataFrame shaped like load_dataset() output."""
    n_rows = len(next(iter(readings.values())))
    stamps = pd.date_range("2004-03-10 18:00", periods=n_rows, freq="h")
    frame = {
        "Date": [t.strftime("%d/%m/%Y") for t in stamps],
        "Time": [t.strftime("%H.%M.%S") for t in stamps],
    }
    for col in NUMERIC_COLUMNS:
        frame[col] = [format_reading(v) for v in readings[col]]
    df = pd.DataFrame(frame)
    df = df.replace("", np.nan)
    df["Unnamed: 15"] = np.nan
    df["Unnamed: 16"] = np.nan
    return df.astype(object)


def write_air_quality_csv(path: Path, raw_df: pd.DataFrame) -> Path:
    """Writes the frame with empty trailing header cells, like the real export."""
    declared = [c for c in raw_df.columns if not str(c).startswith("Unnamed")]
    trailing = len(raw_df.columns) - len(declared)
    lines = [";".join(declared + [""] * trailing)]
    for _, row in raw_df.iterrows():
        cells = ["" if pd.isna(row[c]) else str(row[c]) for c in declared]
        lines.append(";".join(cells + [""] * trailing))
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def make_toy_readings() -> dict[str, np.ndarray]:
    """20 rows, target clustered around 10 with a single reading of 1000 at row 7."""
    rng = np.random.default_rng(7)
    readings = make_readings(n_rows=20, seed=7, noise=0.05)
    target = 9.1 + 0.1 * np.arange(20)
    target = target + rng.normal(scale=0.01, size=20)
    target[7] = 1000.0
    readings[TARGET] = target
    return readings


@pytest.fixture
def readings() -> dict[str, np.ndarray]:
    return make_readings()


@pytest.fixture
def raw_df(readings) -> pd.DataFrame:
    return make_raw_frame(readings)


@pytest.fixture
def toy_raw_df() -> pd.DataFrame:
    return make_raw_frame(make_toy_readings())


@pytest.fixture
def air_quality_csv(tmp_path, raw_df) -> Path:
    return write_air_quality_csv(tmp_path / "AirQualityUCI.csv", raw_df)


@pytest.fixture
def toy_csv(tmp_path, toy_raw_df) -> Path:
    return write_air_quality_csv(tmp_path / "toy.csv", toy_raw_df)
