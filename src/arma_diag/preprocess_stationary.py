# src/arma_diag/preprocess_stationary.py
"""
Price levels -> interpolated log returns of fixed length, plus ADF checks.

The ADF results are diagnostic only: an asset is never dropped because its
returns look non-stationary.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Tuple

import numpy as np
import pandas as pd

from .config import PipelineConfig
from .errors import DataQualityError, InsufficientDataError, SchemaMismatchError
from .logging_config import get_asset_logger, get_logger
from .stationarity_checks import StationarityTestResult, adf_test

logger = get_logger(__name__)

INDEX_NAME = 'Stock'


@dataclass(frozen=True)
class PreprocessedSeries:
    asset_id: str
    returns: np.ndarray
    level_test: Optional[StationarityTestResult]
    return_test: Optional[StationarityTestResult]


def _readonly(arr: np.ndarray) -> np.ndarray:
    arr = np.array(arr, dtype=float)
    arr.flags.writeable = False
    return arr


def coerce_prices(raw, offset: int = 0) -> np.ndarray:
    """
    Drop the first `offset` observations and convert the rest to float.

    Anything that cannot be parsed, is non-finite or is not a positive price
    becomes NaN.
    """
    values = pd.Series(list(raw)[offset:], dtype=object)
    prices = pd.to_numeric(values, errors='coerce').to_numpy(dtype=float, copy=True)
    prices[~np.isfinite(prices) | (prices <= 0)] = np.nan
    return prices


def interpolate_prices(prices) -> np.ndarray:
    """
    Linear interpolation by position. Missing values before the first or
    after the last valid observation take that nearest valid value.
    """
    prices = np.asarray(prices, dtype=float)
    valid = ~np.isnan(prices)
    if not valid.any():
        raise InsufficientDataError("no numeric price observations",
                                    required_count=2, available_count=0)
    if valid.all():
        return prices.copy()
    pos = np.arange(len(prices))
    return np.interp(pos, pos[valid], prices[valid])


def log_returns(prices) -> np.ndarray:
    """r[i] = ln(p[i+1]) - ln(p[i])"""
    return np.diff(np.log(np.asarray(prices, dtype=float)))


def truncate_returns(returns, window: int) -> np.ndarray:
    returns = np.asarray(returns, dtype=float)
    if len(returns) < window:
        raise InsufficientDataError(
            f"need {window} returns, have {len(returns)}",
            required_count=window,
            available_count=len(returns),
        )
    return returns[len(returns) - window:]


def _safe_adf(series, name, config, log) -> Optional[StationarityTestResult]:
    try:
        return adf_test(series, name=name, regression=config.adf_regression,
                        autolag=config.adf_autolag, min_variance=config.min_variance)
    except DataQualityError as e:
        log.warning("adf_test_skipped", series=name, error=str(e))
        return None


def preprocess_series(asset_id: str, raw, config: PipelineConfig) -> PreprocessedSeries:
    """Run the full stationarity transform for one asset."""
    log = get_asset_logger(__name__, asset_id)

    prices = coerce_prices(raw, offset=config.leading_offset)
    n_missing = int(np.isnan(prices).sum())
    if n_missing:
        log.info("interpolating_missing_prices", missing=n_missing, total=len(prices))
    prices = interpolate_prices(prices)

    returns = truncate_returns(log_returns(prices), config.window)

    level_test = _safe_adf(prices, f"{asset_id} price level", config, log)
    return_test = _safe_adf(returns, f"{asset_id} log returns", config, log)
    log.info(
        "preprocessed",
        n_returns=len(returns),
        level_p=None if level_test is None else round(level_test.p_value, 4),
        returns_p=None if return_test is None else round(return_test.p_value, 4),
    )
    return PreprocessedSeries(asset_id, _readonly(returns), level_test, return_test)


# -----------------------------
# Return matrix
# -----------------------------
def build_return_matrix(rows: Iterable[Tuple[str, np.ndarray]]) -> pd.DataFrame:
    """
    Stack (asset_id, returns) pairs into a wide frame, one row per asset in
    input order. All series must have the same length.
    """
    rows = list(rows)
    lengths = {asset: len(r) for asset, r in rows}
    if len(lengths) != len(rows):
        seen, dupes = set(), []
        for asset, _ in rows:
            if asset in seen:
                dupes.append(asset)
            seen.add(asset)
        raise SchemaMismatchError(f"duplicate asset identifiers: {dupes}", lengths=lengths)
    if len(set(lengths.values())) > 1:
        raise SchemaMismatchError(f"return series lengths differ: {lengths}", lengths=lengths)

    width = next(iter(lengths.values()), 0)
    columns = [f'V{i + 1}' for i in range(width)]
    matrix = pd.DataFrame(
        [np.asarray(r, dtype=float) for _, r in rows] if rows else None,
        index=pd.Index([asset for asset, _ in rows], name=INDEX_NAME),
        columns=columns,
        dtype=float,
    )
    return matrix


def write_return_matrix(matrix: pd.DataFrame, output_path) -> Path:
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    matrix.to_csv(output_path, index_label=INDEX_NAME)
    logger.info("return_matrix_saved", path=str(output_path), assets=len(matrix))
    return output_path


def load_return_matrix(path) -> pd.DataFrame:
    """First column is the asset identifier, the rest are returns in time order."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"{path} not found.")
    df = pd.read_csv(path)
    df = df.set_index(df.columns[0])
    df.index = df.index.astype(str)
    df.index.name = INDEX_NAME
    df = df.apply(pd.to_numeric, errors='coerce')
    if df.index.has_duplicates:
        raise SchemaMismatchError(f"duplicate asset identifiers in {path}")
    return df
