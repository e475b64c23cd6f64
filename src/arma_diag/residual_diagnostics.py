# src/arma_diag/residual_diagnostics.py
"""
Residual test battery for the selected model.

Each test runs behind its own failure boundary: a test that cannot be
computed reports None and the remaining tests still run.
"""

from dataclasses import dataclass
from typing import Callable, Optional, Tuple

import numpy as np
from scipy import stats
from statsmodels.stats.diagnostic import acorr_ljungbox, het_arch
from statsmodels.tsa.stattools import acf, pacf

from .config import PipelineConfig
from .errors import DiagnosticError
from .logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ResidualDiagnosticsResult:
    shapiro_stat: Optional[float] = None
    shapiro_p: Optional[float] = None
    ljung_box_stat: Optional[float] = None
    ljung_box_p: Optional[float] = None
    arch_stat: Optional[float] = None
    arch_p: Optional[float] = None


@dataclass(frozen=True)
class DiagnosticArtifacts:
    """Raw sequences behind the ACF/PACF, residual, histogram and squared-residual plots."""
    asset_id: str
    train_acf: np.ndarray
    train_pacf: np.ndarray
    residuals: np.ndarray
    squared_residuals: np.ndarray
    n_train: int = 0


def _clean(residuals) -> np.ndarray:
    x = np.asarray(residuals, dtype=float)
    return x[np.isfinite(x)]


def _require_variation(x: np.ndarray, name: str, min_variance: float) -> None:
    if len(x) == 0 or np.ptp(x) == 0 or np.var(x) < min_variance:
        raise DiagnosticError(f"{name} undefined for constant residuals", test_name=name)


def _checked(name: str, stat, pvalue) -> Tuple[float, float]:
    stat, pvalue = float(stat), float(pvalue)
    if not (np.isfinite(stat) and np.isfinite(pvalue)):
        raise DiagnosticError(f"{name} produced a non-finite result", test_name=name)
    return stat, pvalue


def shapiro_test(residuals, max_obs: int = 5000, min_variance: float = 1e-12) -> Tuple[float, float]:
    """Shapiro-Wilk normality test; defined for 3 <= n <= max_obs."""
    x = _clean(residuals)
    if not 3 <= len(x) <= max_obs:
        raise DiagnosticError(f"Shapiro-Wilk needs 3..{max_obs} observations, got {len(x)}",
                              test_name="shapiro")
    _require_variation(x, "shapiro", min_variance)
    res = stats.shapiro(x)
    return _checked("shapiro", res[0], res[1])


def ljung_box_test(residuals, lag: int = 20, min_variance: float = 1e-12) -> Tuple[float, float]:
    """Ljung-Box Q at a single lag; null is no autocorrelation up to `lag`."""
    x = _clean(residuals)
    if len(x) <= lag:
        raise DiagnosticError(f"Ljung-Box at lag {lag} needs more than {lag} observations",
                              test_name="ljung_box")
    _require_variation(x, "ljung_box", min_variance)
    table = acorr_ljungbox(x, lags=[lag], model_df=0)
    return _checked("ljung_box", table["lb_stat"].iloc[-1], table["lb_pvalue"].iloc[-1])


def arch_test(residuals, lags: int = 12, min_variance: float = 1e-12) -> Tuple[float, float]:
    """Engle's ARCH LM test: regress e^2 on `lags` own lags, LM = n * R^2."""
    x = _clean(residuals)
    if len(x) <= 2 * lags + 1:
        raise DiagnosticError(f"ARCH test with {lags} lags needs more than {2 * lags + 1} observations",
                              test_name="arch")
    _require_variation(x, "arch", min_variance)
    lm_stat, lm_pvalue, _, _ = het_arch(x, nlags=lags)
    return _checked("arch", lm_stat, lm_pvalue)


def _isolated(name: str, fn: Callable[[], Tuple[float, float]], log) -> Tuple[Optional[float], Optional[float]]:
    try:
        return fn()
    except Exception as e:  # one failed test must not block the others
        log.warning("diagnostic_failed", test=name, error=f"{type(e).__name__}: {e}")
        return None, None


def run_diagnostics(residuals, config: PipelineConfig, log=None) -> ResidualDiagnosticsResult:
    log = log or logger
    eps = config.min_variance
    sw = _isolated("shapiro", lambda: shapiro_test(residuals, config.shapiro_max_obs, eps), log)
    lb = _isolated("ljung_box", lambda: ljung_box_test(residuals, config.ljung_box_lag, eps), log)
    ar = _isolated("arch", lambda: arch_test(residuals, config.arch_lags, eps), log)
    result = ResidualDiagnosticsResult(
        shapiro_stat=sw[0], shapiro_p=sw[1],
        ljung_box_stat=lb[0], ljung_box_p=lb[1],
        arch_stat=ar[0], arch_p=ar[1],
    )
    log.info("diagnostics", shapiro_p=result.shapiro_p,
             ljung_box_p=result.ljung_box_p, arch_p=result.arch_p)
    return result


def compute_artifacts(asset_id: str, train, residuals, nlags: int = 40) -> DiagnosticArtifacts:
    train = _clean(train)
    resid = np.array(residuals, dtype=float)
    # pacf is only defined up to half the sample
    nlags = max(1, min(nlags, len(train) // 2 - 1))
    return DiagnosticArtifacts(
        asset_id=asset_id,
        train_acf=acf(train, nlags=nlags, fft=True),
        train_pacf=pacf(train, nlags=nlags),
        residuals=resid,
        squared_residuals=resid ** 2,
        n_train=len(train),
    )
