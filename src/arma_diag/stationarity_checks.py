# src/arma_diag/stationarity_checks.py
from dataclasses import dataclass, field
from typing import Dict, Optional

import numpy as np
import pandas as pd
from statsmodels.tsa.stattools import adfuller

from .errors import DegenerateSeriesError, InsufficientDataError
from .logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class StationarityTestResult:
    statistic: float
    p_value: float
    lag_order: int
    nobs: int
    critical_values: Dict[str, float] = field(default_factory=dict)

    def is_stationary(self, alpha: float = 0.05) -> bool:
        # Reported only; nothing downstream branches on it.
        return self.p_value < alpha


def adf_test(series, name='series', regression='ct', autolag='AIC', min_variance=1e-12):
    """
    Augmented Dickey-Fuller test with automatic lag selection.

    Null hypothesis is a unit root. Raises DegenerateSeriesError for
    constant (or numerically constant) input, where the statistic is
    undefined.
    """
    x = pd.Series(series, dtype=float).dropna().to_numpy()
    if len(x) == 0:
        raise InsufficientDataError(f"ADF test for {name}: no observations",
                                    required_count=1, available_count=0)

    std = float(np.std(x))
    if np.ptp(x) == 0 or std ** 2 < min_variance:
        raise DegenerateSeriesError(
            f"ADF test for {name}: series is constant (std={std:.3g})",
            std=std, context={"series": name},
        )

    try:
        res = adfuller(x, regression=regression, autolag=autolag)
    except ValueError as e:
        raise InsufficientDataError(f"ADF test for {name}: {e}",
                                    available_count=len(x)) from e

    adf_stat, pvalue, usedlag, nobs, critical_values = res[:5]
    result = StationarityTestResult(
        statistic=float(adf_stat),
        p_value=float(pvalue),
        lag_order=int(usedlag),
        nobs=int(nobs),
        critical_values={k: float(v) for k, v in critical_values.items()},
    )
    logger.debug(
        "adf_test",
        series=name,
        statistic=round(result.statistic, 4),
        p_value=round(result.p_value, 4),
        lag_order=result.lag_order,
    )
    return result


def adf_report(result: Optional[StationarityTestResult], name='series', alpha=0.05):
    """One-line human readable summary of an ADF result."""
    if result is None:
        return f"ADF test for {name}: not computed (degenerate series)"
    crit = ", ".join(f"{k}: {v:.4f}" for k, v in result.critical_values.items())
    verdict = 'Yes' if result.is_stationary(alpha) else 'No'
    return (f"ADF test for {name}: Dickey-Fuller = {result.statistic:.4f}, "
            f"Lag order = {result.lag_order}, p-value = {result.p_value:.4f} "
            f"[{crit}] Stationary: {verdict}")
