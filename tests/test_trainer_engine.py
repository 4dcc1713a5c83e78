import numpy as np
import pandas as pd
import pytest

from conftest import PREDICTORS, TARGET, make_raw_frame, make_readings
from constants.loader import NUMERIC_COLUMNS
from core.errors import InsufficientDataError, SingularMatrixError
from core.evaluator_engine import predict
from core.preprocessor_engine import clean_dataset
from core.trainer_engine import (
    check_design,
    cross_validate_components,
    fit_model,
    max_components_for,
    select_predictors,
    suggest_components,
)
from Schemas.trainer import METHOD_LABELS, RegressionMethod


def _cleaned(n_rows: int = 60, seed: int = 0) -> pd.DataFrame:
    readings = make_readings(n_rows=n_rows, seed=seed)
    df = pd.DataFrame({c: readings[c] for c in NUMERIC_COLUMNS})
    df["RH"] = df["RH"] / 10
    return df


def _linear(n_rows: int = 40, seed: int = 1) -> pd.DataFrame:
    rng = np.random.default_rng(seed)
    df = pd.DataFrame({
        "a": rng.normal(5, 2, n_rows),
        "b": rng.normal(-1, 0.5, n_rows),
        "c": rng.normal(100, 20, n_rows),
    })
    df["y"] = 3 * df["a"] - 2 * df["b"] + 0.05 * df["c"] + rng.normal(0, 0.3, n_rows)
    return df


# ─────────────────────────────────────────────
# PREDICTORS AND DESIGN CHECKS
# ─────────────────────────────────────────────

def test_default_predictors_are_every_numeric_field_but_the_target():
    df = _cleaned()
    assert select_predictors(df, TARGET) == PREDICTORS
    assert len(select_predictors(df, TARGET)) == 12


def test_excluded_predictors_are_dropped():
    selected = select_predictors(_cleaned(), TARGET, exclude=["NMHC(GT)"])
    assert "NMHC(GT)" not in selected
    assert len(selected) == 11


@pytest.mark.parametrize("predictors", [["nope"], [TARGET, "CO(GT)"]])
def test_invalid_predictor_lists(predictors):
    with pytest.raises(ValueError):
        select_predictors(_cleaned(), TARGET, predictors=predictors)


def test_fewer_rows_than_predictors():
    X = np.random.default_rng(0).normal(size=(3, 5))
    with pytest.raises(InsufficientDataError):
        check_design(X, list("abcde"))


def test_constant_predictor_is_singular():
    X = np.random.default_rng(0).normal(size=(20, 3))
    X[:, 1] = 4.2
    with pytest.raises(SingularMatrixError, match="b"):
        check_design(X, ["a", "b", "c"])


def test_collinear_predictors_are_singular():
    X = np.random.default_rng(0).normal(size=(20, 3))
    X[:, 2] = 2 * X[:, 0] - X[:, 1]
    with pytest.raises(SingularMatrixError):
        check_design(X, ["a", "b", "c"])


def test_max_components_bounds():
    assert max_components_for(100, 12) == 12
    assert max_components_for(8, 12) == 7
    assert max_components_for(6, 3, cv_folds=2) == 3
    assert max_components_for(6, 5, cv_folds=2) == 3
    assert max_components_for(100, 12, cap=4) == 4


# ─────────────────────────────────────────────
# COMPONENT-COUNT SELECTION
# ─────────────────────────────────────────────

@pytest.mark.parametrize("curve, expected", [
    ([10.0, 5.0, 2.0, 1.99, 1.98], 3),
    ([10.0, 8.0, 6.0, 4.0], 4),
    ([5.0, 6.0, 7.0], 1),
    ([3.0], 1),
])
def test_elbow_suggestion(curve, expected):
    assert suggest_components(curve) == expected


def test_empty_curve_has_no_elbow():
    with pytest.raises(ValueError):
        suggest_components([])


@pytest.mark.parametrize("method", list(RegressionMethod))
def test_cross_validation_curve(method):
    df = _cleaned()
    cv = cross_validate_components(df, TARGET, PREDICTORS, method, cv_folds=5, seed=4)

    curve = cv.rmsep_curve()
    assert len(curve) == cv.max_components == 12
    assert all(np.isfinite(curve)) and all(r >= 0 for r in curve)
    assert 1 <= cv.suggested_components <= 12
    # components beat predicting the mean
    assert min(curve) < cv.intercept_rmsep


def test_cross_validation_is_reproducible():
    df = _cleaned()
    first = cross_validate_components(df, TARGET, PREDICTORS, RegressionMethod.PLS, cv_folds=5, seed=9)
    second = cross_validate_components(df, TARGET, PREDICTORS, RegressionMethod.PLS, cv_folds=5, seed=9)
    assert first.rmsep_curve() == second.rmsep_curve()


def test_cross_validation_respects_the_cap():
    cv = cross_validate_components(
        _cleaned(), TARGET, PREDICTORS, RegressionMethod.PCR, cv_folds=5, max_components=4,
    )
    assert [s.n_components for s in cv.scores] == [1, 2, 3, 4]


def test_folds_are_capped_at_the_row_count():
    df = _linear(n_rows=6)
    cv = cross_validate_components(df, "y", ["a", "b"], RegressionMethod.PCR, cv_folds=10)
    assert cv.cv_folds == 6
    assert cv.max_components == 2


# ─────────────────────────────────────────────
# FINAL FIT
# ─────────────────────────────────────────────

def test_pcr_with_every_component_is_an_exact_linear_fit():
    rng = np.random.default_rng(5)
    df = pd.DataFrame({"a": rng.normal(size=30), "b": rng.normal(size=30)})
    df["y"] = 3 * df["a"] - 2 * df["b"] + 5
    summary, _ = fit_model(df, "y", ["a", "b"], RegressionMethod.PCR, 2)

    assert summary.training_r_squared == pytest.approx(1.0, abs=1e-6)
    assert summary.training_rmse == pytest.approx(0.0, abs=1e-6)


def test_pls_single_component_recovers_orthogonal_design():
    x1 = np.tile([1.0, -1.0], 8) * 3 + 10
    x2 = np.tile([1.0, 1.0, -1.0, -1.0], 4) * 0.5 - 2
    df = pd.DataFrame({"x1": x1, "x2": x2, "y": 2 * x1 + 4 * x2})
    summary, estimator = fit_model(df, "y", ["x1", "x2"], RegressionMethod.PLS, 1)

    assert summary.training_r_squared == pytest.approx(1.0, abs=1e-6)
    np.testing.assert_allclose(predict(estimator, df[["x1", "x2"]].to_numpy()), df["y"], atol=1e-6)


@pytest.mark.parametrize("method", list(RegressionMethod))
def test_predictions_ignore_predictor_units(method):
    df = _linear()
    rescaled = df.copy()
    for col, scale, shift in zip(["a", "b", "c"], [10.0, 0.5, 2.0], [100.0, -3.0, 7.0]):
        rescaled[col] = df[col] * scale + shift

    _, original = fit_model(df, "y", ["a", "b", "c"], method, 2)
    _, converted = fit_model(rescaled, "y", ["a", "b", "c"], method, 2)

    np.testing.assert_allclose(
        predict(original, df[["a", "b", "c"]].to_numpy()),
        predict(converted, rescaled[["a", "b", "c"]].to_numpy()),
        rtol=1e-6,
    )


@pytest.mark.parametrize("k", [0, 4])
def test_component_count_out_of_range(k):
    with pytest.raises(ValueError, match="K="):
        fit_model(_linear(), "y", ["a", "b", "c"], RegressionMethod.PCR, k)


@pytest.mark.parametrize("method, prefix", [(RegressionMethod.PCR, "PC"), (RegressionMethod.PLS, "LV")])
def test_model_summary(method, prefix):
    summary, _ = fit_model(_linear(), "y", ["a", "b", "c"], method, 2)

    assert summary.method_label == METHOD_LABELS[method]
    assert summary.n_components == 2
    assert [c.component_number for c in summary.components] == [1, 2]
    cumulative = [c.cumulative_x_variance_pct for c in summary.components]
    assert cumulative == sorted(cumulative) and cumulative[-1] <= 100.0
    assert [c.variable for c in summary.component_coefficients] == ["const", f"{prefix}1", f"{prefix}2"]
    assert set(summary.predictor_coefficients) == {"a", "b", "c"}
    assert summary.components[-1].cumulative_y_variance_pct == pytest.approx(
        summary.training_r_squared * 100, abs=0.05
    )


def test_predictor_imputed_from_a_single_reading_is_singular():
    readings = make_readings(n_rows=40)
    readings["NMHC(GT)"][:] = -200.0
    readings["NMHC(GT)"][3] = 4.2
    cleaned, _ = clean_dataset(make_raw_frame(readings), TARGET)
    assert cleaned["NMHC(GT)"].nunique() == 1

    with pytest.raises(SingularMatrixError, match="NMHC"):
        cross_validate_components(cleaned, TARGET, PREDICTORS, RegressionMethod.PCR, cv_folds=5)


def test_unknown_excluded_column_is_rejected():
    with pytest.raises(ValueError, match="NMHC"):
        select_predictors(_cleaned(), TARGET, exclude=["NMHC"])
