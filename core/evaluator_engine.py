"""
FILE: core/evaluator_engine.py
-------------------------------
Scores a fitted model on the held-out test set.
Deterministic and read-only: neither the model nor the test set is modified.
"""

import logging

import numpy as np
import pandas as pd

from Schemas.evaluator import EvaluationResult
from Schemas.trainer import RegressionMethod

logger = logging.getLogger(__name__)


def predict(estimator, X: np.ndarray) -> np.ndarray:
    """1-D predictions; PLSRegression can return an (n, 1) column."""
    return np.ravel(estimator.predict(X))


def regression_metrics(y_true: np.ndarray, y_pred: np.ndarray) -> tuple[float, float]:
    """
    Returns (rmse, r_squared).
    R² is taken around the mean of y_true; a constant y_true gives 0.0.
    """
    y_true = np.asarray(y_true, dtype=float)
    y_pred = np.asarray(y_pred, dtype=float)
    if y_true.shape != y_pred.shape:
        raise ValueError(f"Shape mismatch: y_true {y_true.shape}, y_pred {y_pred.shape}")

    ss_res = float(np.sum((y_true - y_pred) ** 2))
    ss_tot = float(np.sum((y_true - y_true.mean()) ** 2))
    rmse = float(np.sqrt(ss_res / len(y_true)))
    if ss_tot > 0:
        r2 = 1 - ss_res / ss_tot
    else:
        logger.warning("Target is constant over %d rows; R² reported as 0.0", len(y_true))
        r2 = 0.0
    return rmse, r2


def evaluate_model(
    estimator,
    test_df: pd.DataFrame,
    target: str,
    predictors: list[str],
    method: RegressionMethod,
    n_components: int,
) -> EvaluationResult:
    """Predicts the target from predictor fields only and scores RMSE / R²."""
    if test_df.empty:
        raise ValueError("Test set is empty.")
    X = test_df[predictors].to_numpy(dtype=float)
    y = test_df[target].to_numpy(dtype=float)

    rmse, r2 = regression_metrics(y, predict(estimator, X))
    method = RegressionMethod(method)
    logger.info("%s (K=%d) on %d test rows: RMSE=%.4f, R²=%.4f", method.value.upper(), n_components, len(y), rmse, r2)

    return EvaluationResult(
        method=method,
        n_components=n_components,
        rmse=round(rmse, 6),
        r_squared=round(r2, 6),
        n_observations=len(y),
    )


def compare_results(results: list[EvaluationResult]) -> EvaluationResult:
    """The result with the lowest test RMSE (first one wins a tie)."""
    if not results:
        raise ValueError("No evaluation results to compare.")
    return min(results, key=lambda r: r.rmse)
