"""
FILE: core/splitter_engine.py
------------------------------
Reproducible train/test partition of the cleaned dataset.

The training set gets exactly ceil(p·N) rows. Sampling is stratified on
quantile groups of the target so both sets see its whole distribution;
when the groups are too small for that, a plain seeded permutation is used.
"""

import logging
import math

import pandas as pd
from sklearn.model_selection import train_test_split

from Schemas.splitter import SplitOutput
from constants.trainer import DEFAULT_SEED, DEFAULT_TRAIN_FRACTION, MAX_STRATA
from core.errors import InsufficientDataError

logger = logging.getLogger(__name__)


def train_size_for(n_rows: int, train_fraction: float) -> int:
    # round() first so 0.7 * 10 does not ceil to 8
    return math.ceil(round(train_fraction * n_rows, 9))


def _target_strata(y: pd.Series, n_train: int, n_test: int) -> pd.Series | None:
    """Quantile groups of the target, or None when stratified sampling is not feasible."""
    n_strata = min(MAX_STRATA, n_train, n_test)
    if n_strata < 2 or y.nunique() < n_strata:
        return None
    strata = pd.qcut(y, q=n_strata, labels=False, duplicates="drop")
    counts = strata.value_counts()
    if len(counts) < 2 or counts.min() < 2 or len(counts) > min(n_train, n_test):
        return None
    return strata


def split_dataset(
    df: pd.DataFrame,
    target: str,
    train_fraction: float = DEFAULT_TRAIN_FRACTION,
    seed: int = DEFAULT_SEED,
    stratify: bool = True,
) -> tuple[pd.DataFrame, pd.DataFrame, SplitOutput]:
    """
    Partitions rows into (train_df, test_df). Row labels are preserved so
    both sets can be traced back to the cleaned dataset.

    Raises:
        InsufficientDataError: the test set would be empty
    """
    if not 0 < train_fraction < 1:
        raise ValueError(f"train_fraction must be in (0, 1), got {train_fraction}.")

    n_total = len(df)
    n_train = train_size_for(n_total, train_fraction)
    n_test = n_total - n_train
    if n_total < 2 or n_test < 1 or n_train < 1:
        raise InsufficientDataError(
            f"Cannot split {n_total} row(s) with train fraction {train_fraction}: "
            f"train={n_train}, test={n_test}."
        )

    warnings: list[str] = []
    strata = _target_strata(df[target], n_train, n_test) if stratify else None
    if stratify and strata is None:
        warnings.append(
            f"Target '{target}' could not be stratified ({n_total} rows) — used a plain random split."
        )
        logger.warning("Stratified split not feasible for %d rows; falling back to random", n_total)

    train_df, test_df = train_test_split(
        df,
        train_size=n_train,
        test_size=n_test,
        random_state=seed,
        shuffle=True,
        stratify=strata,
    )

    logger.info("Split %d rows → %d train / %d test (seed=%d)", n_total, len(train_df), len(test_df), seed)
    return train_df, test_df, SplitOutput(
        n_total=n_total,
        n_train=len(train_df),
        n_test=len(test_df),
        train_fraction=train_fraction,
        seed=seed,
        stratified=strata is not None,
        n_strata=int(strata.nunique()) if strata is not None else 0,
        train_target_mean=round(float(train_df[target].mean()), 4),
        test_target_mean=round(float(test_df[target].mean()), 4),
        warnings=warnings,
    )
