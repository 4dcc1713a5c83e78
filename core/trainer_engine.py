"""
FILE: core/trainer_engine.py
-----------------------------
Fitting and cross-validation for the two dimensionality-reduction
regressions. No orchestration dependencies.

  PCR : StandardScaler → PCA(K) → LinearRegression
  PLS : PLSRegression(K, scale=True)   (NIPALS, X and y deflated per component)

Standardization statistics always come from the data the estimator is
fitted on, so inside cross-validation each fold scales with its own
training rows only.

Choosing K is not automated here. cross_validate_components() returns the
whole RMSEP curve plus an elbow suggestion; fit_model() takes K explicitly.
"""

import logging
import math

import numpy as np
import pandas as pd
from sklearn.cross_decomposition import PLSRegression
from sklearn.decomposition import PCA
from sklearn.linear_model import LinearRegression
from sklearn.model_selection import KFold, cross_val_predict
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import StandardScaler

from Schemas.trainer import (
    Coefficient,
    ComponentScore,
    ComponentSummary,
    CrossValidationOutput,
    METHOD_LABELS,
    ModelSummary,
    RegressionMethod,
)
from constants.loader import NUMERIC_COLUMNS
from constants.trainer import (
    DEFAULT_CV_FOLDS,
    DEFAULT_SEED,
    ELBOW_MIN_RELATIVE_GAIN,
    RANK_TOLERANCE,
)
from core.errors import InsufficientDataError, SingularMatrixError
from core.evaluator_engine import predict, regression_metrics

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────
# PREDICTORS AND DESIGN CHECKS
# ─────────────────────────────────────────────

def select_predictors(
    df: pd.DataFrame,
    target: str,
    predictors: list[str] | None = None,
    exclude: list[str] | None = None,
) -> list[str]:
    """Every numeric field except the target, unless an explicit list is given."""
    if predictors is None:
        predictors = [c for c in NUMERIC_COLUMNS if c != target and c in df.columns]
    excluded = set(exclude or [])
    unknown_excluded = sorted(c for c in excluded if c not in df.columns)
    if unknown_excluded:
        raise ValueError(f"Cannot exclude unknown column(s): {unknown_excluded}.")
    selected = [c for c in predictors if c not in excluded]

    unknown = [c for c in selected if c not in df.columns]
    if unknown:
        raise ValueError(f"Unknown predictor column(s): {unknown}.")
    if target in selected:
        raise ValueError(f"Target '{target}' cannot also be a predictor.")
    if not selected:
        raise ValueError("No predictor columns left after exclusions.")
    return selected


def check_design(X: np.ndarray, predictors: list[str]) -> None:
    """
    Fitting preconditions on the predictor block.

    Raises:
        InsufficientDataError: fewer rows than predictors (or fewer than 2 rows)
        SingularMatrixError:   constant predictor, or standardized block not of full column rank
    """
    n_rows, n_cols = X.shape
    if n_rows < 2 or n_rows < n_cols:
        raise InsufficientDataError(
            f"{n_rows} training row(s) for {n_cols} predictor(s) — "
            f"need at least as many rows as predictors."
        )

    # peak-to-peak, not std: the float std of a constant column is ~1e-16, not 0
    spread = np.ptp(X, axis=0)
    constant = [p for p, s in zip(predictors, spread) if s == 0]
    if constant:
        raise SingularMatrixError(
            f"Predictor(s) {constant} have zero variance over {n_rows} rows and cannot be standardized."
        )

    Z = (X - X.mean(axis=0)) / X.std(axis=0)
    singular_values = np.linalg.svd(Z, compute_uv=False)
    rank = int((singular_values > RANK_TOLERANCE * singular_values[0]).sum())
    if rank < n_cols:
        raise SingularMatrixError(
            f"Standardized predictor block has rank {rank} for {n_cols} predictor(s) "
            f"over {n_rows} rows — at least one predictor is a linear combination of others."
        )


def _as_arrays(df: pd.DataFrame, target: str, predictors: list[str]) -> tuple[np.ndarray, np.ndarray]:
    return df[predictors].to_numpy(dtype=float), df[target].to_numpy(dtype=float)


# ─────────────────────────────────────────────
# ESTIMATORS
# ─────────────────────────────────────────────

def build_estimator(method: RegressionMethod, n_components: int):
    """Unfitted estimator for one technique at K components."""
    method = RegressionMethod(method)
    if method == RegressionMethod.PCR:
        return Pipeline([
            ("scaler", StandardScaler()),
            ("pca", PCA(n_components=n_components)),
            ("ols", LinearRegression()),
        ])
    return PLSRegression(n_components=n_components, scale=True)


def _component_scores(estimator, method: RegressionMethod, X: np.ndarray) -> np.ndarray:
    if method == RegressionMethod.PCR:
        return estimator[:-1].transform(X)
    return estimator.transform(X)


def max_components_for(
    n_rows: int,
    n_predictors: int,
    cv_folds: int | None = None,
    cap: int | None = None,
) -> int:
    """
    Largest K worth evaluating: min(#predictors, N - 1), further bounded by the
    smallest fold training size during cross-validation and by an optional cap.
    """
    limit = min(n_predictors, n_rows - 1)
    if cv_folds:
        limit = min(limit, n_rows - math.ceil(n_rows / cv_folds))
    if cap is not None:
        limit = min(limit, cap)
    return limit


# ─────────────────────────────────────────────
# COMPONENT-COUNT SELECTION
# ─────────────────────────────────────────────

def suggest_components(
    rmsep: list[float],
    min_relative_gain: float = ELBOW_MIN_RELATIVE_GAIN,
) -> int:
    """
    Elbow of an RMSEP curve indexed from K = 1.
    Returns the first K whose next component cuts RMSEP by less than
    min_relative_gain (relative), or makes it worse. If every step still
    pays off, returns the last K.
    """
    if not rmsep:
        raise ValueError("RMSEP curve is empty.")
    for i in range(len(rmsep) - 1):
        current, following = rmsep[i], rmsep[i + 1]
        if current <= 0:
            return i + 1
        if (current - following) / current < min_relative_gain:
            return i + 1
    return len(rmsep)


def cross_validate_components(
    train_df: pd.DataFrame,
    target: str,
    predictors: list[str],
    method: RegressionMethod,
    cv_folds: int = DEFAULT_CV_FOLDS,
    max_components: int | None = None,
    seed: int = DEFAULT_SEED,
    min_relative_gain: float = ELBOW_MIN_RELATIVE_GAIN,
) -> CrossValidationOutput:
    """
    K-fold RMSEP for K = 1..K_max. Folds are shuffled with the seed and
    shared by every K, so the curve compares like with like.
    """
    method = RegressionMethod(method)
    X, y = _as_arrays(train_df, target, predictors)
    check_design(X, predictors)

    n_rows = len(y)
    folds = min(cv_folds, n_rows)
    if folds < 2:
        raise InsufficientDataError(f"Cross-validation needs at least 2 folds; got {folds} for {n_rows} rows.")
    k_max = max_components_for(n_rows, len(predictors), folds, max_components)
    if k_max < 1:
        raise InsufficientDataError(
            f"No component count can be cross-validated with {n_rows} rows, "
            f"{len(predictors)} predictor(s) and {folds} folds."
        )

    kfold = KFold(n_splits=folds, shuffle=True, random_state=seed)

    # ── K = 0 baseline: training-fold mean ──
    press = 0.0
    for train_idx, test_idx in kfold.split(X):
        press += float(np.sum((y[test_idx] - y[train_idx].mean()) ** 2))
    intercept_rmsep = math.sqrt(press / n_rows)

    scores: list[ComponentScore] = []
    for k in range(1, k_max + 1):
        y_cv = np.ravel(cross_val_predict(build_estimator(method, k), X, y, cv=kfold))
        rmsep = float(np.sqrt(np.mean((y - y_cv) ** 2)))
        scores.append(ComponentScore(n_components=k, rmsep=round(rmsep, 6)))
        logger.debug("%s K=%d RMSEP=%.4f", method.value, k, rmsep)

    suggested = suggest_components([s.rmsep for s in scores], min_relative_gain)
    logger.info(
        "%s cross-validated K=1..%d over %d folds; elbow at K=%d",
        method.value.upper(), k_max, folds, suggested,
    )

    return CrossValidationOutput(
        method=method,
        cv_folds=folds,
        seed=seed,
        n_observations=n_rows,
        predictors=predictors,
        intercept_rmsep=round(intercept_rmsep, 6),
        scores=scores,
        max_components=k_max,
        suggested_components=suggested,
    )


# ─────────────────────────────────────────────
# FINAL FIT
# ─────────────────────────────────────────────

def _x_variance_ratios(estimator, method: RegressionMethod, X: np.ndarray, scores: np.ndarray) -> np.ndarray:
    """Share of standardized predictor variance carried by each component."""
    if method == RegressionMethod.PCR:
        return estimator.named_steps["pca"].explained_variance_ratio_
    Xs = (X - X.mean(axis=0)) / X.std(axis=0, ddof=1)
    total = float(np.sum(Xs ** 2))
    loadings = estimator.x_loadings_
    return np.array([
        float(np.sum(scores[:, a] ** 2) * np.sum(loadings[:, a] ** 2)) / total
        for a in range(scores.shape[1])
    ])


def _component_weights(estimator, method: RegressionMethod) -> np.ndarray:
    """(n_predictors, K) matrix of predictor weights per component."""
    if method == RegressionMethod.PCR:
        return estimator.named_steps["pca"].components_.T
    return estimator.x_weights_


def _standardized_effects(estimator, X: np.ndarray, predictors: list[str]) -> dict[str, float]:
    """Change in prediction for a one-standard-deviation increase of each predictor."""
    center = X.mean(axis=0)
    std = X.std(axis=0)
    probes = np.tile(center, (len(predictors) + 1, 1))
    probes[1:] += np.diag(std)
    preds = predict(estimator, probes)
    return {p: round(float(preds[i + 1] - preds[0]), 6) for i, p in enumerate(predictors)}


def _ols_on_scores(y: np.ndarray, scores: np.ndarray, prefix: str) -> tuple[list[Coefficient], list[float]]:
    """
    Regresses the target on the component scores with statsmodels.
    Returns the coefficient table and the cumulative R² for 1..K components.
    """
    from statsmodels.regression.linear_model import OLS
    from statsmodels.tools import add_constant

    names = ["const"] + [f"{prefix}{i + 1}" for i in range(scores.shape[1])]
    model = OLS(y, add_constant(scores, has_constant="add")).fit()
    ci = model.conf_int()

    coefficients = [
        Coefficient(
            variable=name,
            estimate=round(float(model.params[i]), 6),
            std_error=round(float(model.bse[i]), 6),
            t_statistic=round(float(model.tvalues[i]), 4),
            p_value=round(float(model.pvalues[i]), 4),
            ci_lower=round(float(ci[i][0]), 6),
            ci_upper=round(float(ci[i][1]), 6),
        )
        for i, name in enumerate(names)
    ]

    # Scores are mutually orthogonal, so each component's share of R² adds up
    ss_tot = float(np.sum((y - y.mean()) ** 2))
    cumulative: list[float] = []
    explained = 0.0
    for a in range(scores.shape[1]):
        t = scores[:, a] - scores[:, a].mean()
        tt = float(t @ t)
        if ss_tot > 0 and tt > 0:
            explained += float(t @ (y - y.mean())) ** 2 / tt
        cumulative.append(explained / ss_tot if ss_tot > 0 else 0.0)
    return coefficients, cumulative


def fit_model(
    train_df: pd.DataFrame,
    target: str,
    predictors: list[str],
    method: RegressionMethod,
    n_components: int,
) -> tuple[ModelSummary, object]:
    """
    Fits one technique on the full training set at the chosen K.
    Returns (ModelSummary, fitted_estimator) — the estimator is handed to the evaluator.
    """
    method = RegressionMethod(method)
    X, y = _as_arrays(train_df, target, predictors)
    check_design(X, predictors)

    k_max = max_components_for(len(y), len(predictors))
    if not 1 <= n_components <= k_max:
        raise ValueError(
            f"{method.value.upper()} needs 1 <= K <= {k_max} with {len(y)} rows and "
            f"{len(predictors)} predictor(s); got K={n_components}."
        )

    estimator = build_estimator(method, n_components)
    estimator.fit(X, y)

    scores = _component_scores(estimator, method, X)
    ratios = _x_variance_ratios(estimator, method, X, scores)
    weights = _component_weights(estimator, method)
    prefix = "PC" if method == RegressionMethod.PCR else "LV"
    coefficients, cumulative_r2 = _ols_on_scores(y, scores, prefix)

    components: list[ComponentSummary] = []
    running = 0.0
    for a in range(n_components):
        running += float(ratios[a])
        components.append(ComponentSummary(
            component_number=a + 1,
            x_variance_pct=round(float(ratios[a]) * 100, 2),
            cumulative_x_variance_pct=round(running * 100, 2),
            cumulative_y_variance_pct=round(cumulative_r2[a] * 100, 2),
            loadings={p: round(float(weights[j, a]), 4) for j, p in enumerate(predictors)},
        ))

    rmse, r2 = regression_metrics(y, predict(estimator, X))
    interpretation = (
        f"{METHOD_LABELS[method]} with {n_components} component(s) on {len(predictors)} predictors: "
        f"components carry {components[-1].cumulative_x_variance_pct}% of predictor variance "
        f"and explain {round(r2 * 100, 2)}% of training variance in '{target}' (RMSE={round(rmse, 4)})."
    )
    logger.info("Fitted %s with K=%d on %d rows", method.value.upper(), n_components, len(y))

    return ModelSummary(
        method=method,
        method_label=METHOD_LABELS[method],
        n_components=n_components,
        n_observations=len(y),
        predictors=predictors,
        components=components,
        component_coefficients=coefficients,
        predictor_coefficients=_standardized_effects(estimator, X, predictors),
        training_rmse=round(rmse, 6),
        training_r_squared=round(r2, 6),
        interpretation=interpretation,
    ), estimator
