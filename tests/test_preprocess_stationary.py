"""Tests for the stationarity transform and return matrix assembly"""

import numpy as np
import pandas as pd
import pytest

from arma_diag.config import PipelineConfig
from arma_diag.errors import InsufficientDataError, SchemaMismatchError
from arma_diag.preprocess_stationary import (
    build_return_matrix,
    coerce_prices,
    interpolate_prices,
    load_return_matrix,
    log_returns,
    preprocess_series,
    truncate_returns,
    write_return_matrix,
)


class TestCoercion:
    """Offset handling and numeric coercion"""

    def test_drops_leading_label_rows(self):
        prices = coerce_prices(["MSFT", "", "10.5", "11", "12.25"], offset=2)
        np.testing.assert_array_equal(prices, [10.5, 11.0, 12.25])

    def test_unparseable_values_become_missing(self):
        prices = coerce_prices(["10", "n/a", "12", None, "abc", "14"])
        assert np.isnan(prices[[1, 3, 4]]).all()
        assert prices[0] == 10.0 and prices[5] == 14.0

    def test_non_positive_prices_become_missing(self):
        prices = coerce_prices([10.0, 0.0, -3.0, 12.0, float("inf")])
        assert np.isnan(prices[1:3]).all()
        assert np.isnan(prices[4])


class TestInterpolation:
    """Linear interpolation with nearest-value boundaries"""

    def test_interior_gap_is_linear(self):
        filled = interpolate_prices([1.0, np.nan, np.nan, 4.0])
        np.testing.assert_allclose(filled, [1.0, 2.0, 3.0, 4.0])

    def test_boundaries_take_nearest_valid_value(self):
        filled = interpolate_prices([np.nan, np.nan, 2.0, np.nan, 4.0, np.nan])
        np.testing.assert_allclose(filled, [2.0, 2.0, 2.0, 3.0, 4.0, 4.0])

    def test_no_valid_values_raises(self):
        with pytest.raises(InsufficientDataError):
            interpolate_prices([np.nan, np.nan])

    def test_filled_values_stay_between_neighbours(self):
        rng = np.random.default_rng(7)
        prices = 50 + rng.normal(0, 1, 300).cumsum()
        holes = rng.choice(np.arange(1, 299), size=60, replace=False)
        gappy = prices.copy()
        gappy[holes] = np.nan

        filled = interpolate_prices(gappy)

        assert len(filled) == len(gappy)
        assert not np.isnan(filled).any()
        valid = np.flatnonzero(~np.isnan(gappy))
        for i in holes:
            left = gappy[valid[valid < i].max()]
            right = gappy[valid[valid > i].min()]
            assert min(left, right) - 1e-12 <= filled[i] <= max(left, right) + 1e-12

    def test_input_without_gaps_is_unchanged(self):
        prices = np.array([3.0, 4.0, 5.0])
        np.testing.assert_array_equal(interpolate_prices(prices), prices)


class TestReturns:
    """Log differences and truncation"""

    def test_log_returns_definition(self):
        prices = np.array([100.0, 110.0, 99.0])
        np.testing.assert_allclose(log_returns(prices), [np.log(1.1), np.log(0.9)])

    def test_scale_invariance(self, ar1_prices):
        prices = ar1_prices(500, seed=3)
        np.testing.assert_allclose(log_returns(prices), log_returns(37.5 * prices), atol=1e-12)

    def test_truncate_keeps_tail(self):
        out = truncate_returns(np.arange(10.0), 4)
        np.testing.assert_array_equal(out, [6.0, 7.0, 8.0, 9.0])

    def test_truncate_is_idempotent(self):
        once = truncate_returns(np.arange(10.0), 4)
        np.testing.assert_array_equal(truncate_returns(once, 4), once)

    def test_truncate_insufficient(self):
        with pytest.raises(InsufficientDataError) as exc:
            truncate_returns(np.arange(5.0), 8)
        assert exc.value.required_count == 8
        assert exc.value.available_count == 5


class TestPreprocessSeries:
    """Full per-asset transform"""

    def test_window_length_and_tests(self, small_config, ar1_prices):
        raw = ["TCKR", ""] + list(ar1_prices(600, seed=1))
        out = preprocess_series("Alpha", raw, small_config)

        assert out.asset_id == "Alpha"
        assert len(out.returns) == small_config.window
        assert out.level_test is not None
        assert out.return_test is not None
        assert out.return_test.p_value < 0.05

    def test_returns_are_read_only(self, small_config, ar1_prices):
        out = preprocess_series("Alpha", ["x", "y"] + list(ar1_prices(500)), small_config)
        with pytest.raises(ValueError):
            out.returns[0] = 1.0

    def test_matches_manual_transform(self, small_config, ar1_prices):
        prices = ar1_prices(450, seed=5)
        raw = ["h1", "h2"] + list(prices)
        out = preprocess_series("Alpha", raw, small_config)
        expected = np.diff(np.log(prices))[-small_config.window:]
        np.testing.assert_allclose(out.returns, expected)

    def test_too_short_raises(self, small_config, ar1_prices):
        with pytest.raises(InsufficientDataError):
            preprocess_series("Alpha", ["h1", "h2"] + list(ar1_prices(100)), small_config)

    def test_constant_prices_give_zero_returns_and_no_adf(self):
        # 4000 constant prices: returns are all zero, ADF is undefined
        config = PipelineConfig()
        out = preprocess_series("Flat", [100.0] * 4000, config)

        assert len(out.returns) == config.window
        assert not out.returns.any()
        assert out.level_test is None
        assert out.return_test is None


class TestReturnMatrix:
    """Assembly of the wide return table"""

    def test_rows_in_input_order(self):
        rows = [("b", np.zeros(3)), ("a", np.ones(3)), ("c", np.full(3, 2.0))]
        matrix = build_return_matrix(rows)

        assert list(matrix.index) == ["b", "a", "c"]
        assert list(matrix.columns) == ["V1", "V2", "V3"]
        assert matrix.index.name == "Stock"
        assert matrix.loc["c", "V2"] == 2.0

    def test_length_mismatch(self):
        with pytest.raises(SchemaMismatchError) as exc:
            build_return_matrix([("a", np.zeros(3)), ("b", np.zeros(4))])
        assert exc.value.lengths == {"a": 3, "b": 4}

    def test_duplicate_assets(self):
        with pytest.raises(SchemaMismatchError):
            build_return_matrix([("a", np.zeros(3)), ("a", np.zeros(3))])

    def test_empty_input(self):
        matrix = build_return_matrix([])
        assert matrix.empty

    def test_csv_roundtrip(self, tmp_path):
        matrix = build_return_matrix([("Intel", np.array([0.01, -0.02])),
                                      ("Oracle", np.array([0.0, 0.03]))])
        path = write_return_matrix(matrix, tmp_path / "out" / "returns.csv")

        loaded = load_return_matrix(path)
        pd.testing.assert_frame_equal(loaded, matrix)

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_return_matrix(tmp_path / "nope.csv")
