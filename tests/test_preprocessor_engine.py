import numpy as np
import pandas as pd
import pytest

from conftest import PREDICTORS, TARGET, make_raw_frame, make_readings
from constants.loader import NUMERIC_COLUMNS
from core.errors import ParseError
from core.preprocessor_engine import clean_dataset, compute_iqr_bounds, remove_target_outliers


def _log(output, column):
    return next(c for c in output.column_logs if c.column == column)


def test_drops_trailing_unnamed_columns(raw_df):
    cleaned, output = clean_dataset(raw_df, TARGET)
    assert output.dropped_columns == ["Unnamed: 15", "Unnamed: 16"]
    assert not [c for c in cleaned.columns if c.startswith("Unnamed")]


def test_decimal_commas_are_parsed():
    readings = make_readings(n_rows=30)
    raw = make_raw_frame(readings)
    raw.loc[:, "CO(GT)"] = "2,6"
    cleaned, output = clean_dataset(raw, TARGET)

    assert cleaned["CO(GT)"].dtype == float
    assert np.allclose(cleaned["CO(GT)"], 2.6)
    assert _log(output, "CO(GT)").decimal_commas_fixed == 30


def test_relative_humidity_is_divided_by_ten():
    readings = make_readings(n_rows=30)
    readings["RH"][0] = -200.0
    cleaned, output = clean_dataset(make_raw_frame(readings), TARGET)

    expected = np.round(readings["RH"], 4) / 10
    kept = [i for i in cleaned.index if i != 0]
    assert np.allclose(cleaned.loc[kept, "RH"], expected[kept])
    assert _log(output, "RH").unit_divisor == 10.0
    assert _log(output, "RH").sentinels_replaced == 1
    # the sentinel is imputed, never divided down to -20
    assert _log(output, "RH").imputation_value == pytest.approx(expected[1:].mean(), abs=1e-6)
    assert (cleaned["RH"] > 0).all()


def test_no_missing_or_sentinel_values_after_cleaning():
    readings = make_readings(n_rows=50)
    rng = np.random.default_rng(3)
    for col in NUMERIC_COLUMNS:
        idx = rng.choice(50, size=5, replace=False)
        readings[col][idx[:3]] = -200.0
        readings[col][idx[3:]] = np.nan
    cleaned, _ = clean_dataset(make_raw_frame(readings), TARGET)

    values = cleaned[NUMERIC_COLUMNS]
    assert not values.isna().any().any()
    assert not (values == -200).any().any()


def test_imputed_value_is_the_pre_outlier_mean_of_observed_readings():
    readings = make_readings(n_rows=40)
    readings["NO2(GT)"][[2, 5, 9]] = -200.0
    readings["NO2(GT)"][[11]] = np.nan
    raw = make_raw_frame(readings)
    cleaned, output = clean_dataset(raw, TARGET)

    observed = pd.to_numeric(raw["NO2(GT)"].str.replace(",", "."), errors="coerce")
    observed = observed[(observed != -200) & observed.notna()]
    expected = observed.mean()

    log = _log(output, "NO2(GT)")
    assert log.nulls_imputed == 4
    assert log.imputation_value == pytest.approx(expected, abs=1e-6)
    filled = [i for i in (2, 5, 9, 11) if i in cleaned.index]
    assert np.allclose(cleaned.loc[filled, "NO2(GT)"], expected)


def test_rows_without_timestamp_are_dropped(raw_df):
    raw_df.loc[[4, 8], "Date"] = np.nan
    raw_df.loc[12, "Time"] = np.nan
    cleaned, output = clean_dataset(raw_df, TARGET)

    assert output.rows_dropped_missing_timestamp == 3
    assert not {4, 8, 12} & set(cleaned.index)


def test_all_empty_trailing_rows_are_dropped(raw_df):
    blank = pd.DataFrame([[np.nan] * len(raw_df.columns)] * 3, columns=raw_df.columns, index=[900, 901, 902])
    cleaned, output = clean_dataset(pd.concat([raw_df, blank]), TARGET)
    assert output.rows_dropped_missing_timestamp == 3
    assert not {900, 901, 902} & set(cleaned.index)


def test_unparseable_value_is_fatal(raw_df):
    raw_df.loc[5, "PT08.S3(NOx)"] = "12a"
    with pytest.raises(ParseError, match="PT08.S3"):
        clean_dataset(raw_df, TARGET)


def test_column_without_any_reading_is_fatal():
    readings = make_readings(n_rows=20)
    readings["NMHC(GT)"][:] = -200.0
    with pytest.raises(ParseError, match="NMHC"):
        clean_dataset(make_raw_frame(readings), TARGET)


def test_remaining_targets_lie_within_pre_removal_fence():
    readings = make_readings(n_rows=80)
    readings[TARGET][[3, 40]] = [60.0, -30.0]
    raw = make_raw_frame(readings)
    cleaned, output = clean_dataset(raw, TARGET)

    pre = pd.to_numeric(raw[TARGET].str.replace(",", "."))
    q1, q3 = pre.quantile(0.25), pre.quantile(0.75)
    lower, upper = q1 - 1.5 * (q3 - q1), q3 + 1.5 * (q3 - q1)

    assert output.outlier_bounds.lower == pytest.approx(lower)
    assert output.outlier_bounds.upper == pytest.approx(upper)
    assert cleaned[TARGET].between(lower, upper).all()
    assert {3, 40}.isdisjoint(cleaned.index)


def test_predictor_outliers_are_kept():
    readings = make_readings(n_rows=40)
    readings["AH"][6] = 1e4
    readings[TARGET][6] = np.median(readings[TARGET])
    cleaned, _ = clean_dataset(make_raw_frame(readings), TARGET)
    assert 6 in cleaned.index
    assert cleaned.loc[6, "AH"] == 1e4


def test_toy_dataset_drops_exactly_the_outlier_row(toy_raw_df):
    cleaned, output = clean_dataset(toy_raw_df, TARGET)

    assert output.rows_dropped_outliers == 1
    assert len(cleaned) == 19
    assert 7 not in cleaned.index
    assert cleaned[TARGET].max() < 20


def test_zero_iqr_keeps_only_exact_matches():
    df = pd.DataFrame({TARGET: [5.0, 5.0, 5.0, 5.0, 5.0, 6.0, 5.0]})
    kept, bounds, removed = remove_target_outliers(df, TARGET)

    assert bounds.degenerate
    assert bounds.lower == bounds.upper == 5.0
    assert removed == 1
    assert (kept[TARGET] == 5.0).all()


def test_iqr_bounds():
    bounds = compute_iqr_bounds(pd.Series([1.0, 2.0, 3.0, 4.0, 5.0], name="x"))
    assert (bounds.q1, bounds.q3, bounds.iqr) == (2.0, 4.0, 2.0)
    assert (bounds.lower, bounds.upper) == (-1.0, 7.0)


def test_input_is_not_mutated(raw_df):
    before = raw_df.copy()
    clean_dataset(raw_df, TARGET)
    assert raw_df.equals(before)


def test_every_predictor_survives_cleaning(raw_df):
    cleaned, output = clean_dataset(raw_df, TARGET)
    assert all(p in cleaned.columns for p in PREDICTORS)
    assert output.final_shape == cleaned.shape
    assert output.rows_dropped_total == len(raw_df) - len(cleaned)


def test_unknown_target_is_rejected(raw_df):
    with pytest.raises(ParseError):
        clean_dataset(raw_df, "Date")
