# src/arma_diag/arma_selection.py
"""Fit the fixed ARMA candidates on the training prefix and pick by AIC."""

import warnings
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Sequence, Tuple

import numpy as np
from statsmodels.tools.sm_exceptions import ConvergenceWarning
from statsmodels.tsa.arima.model import ARIMA

from .config import CandidateSpec, PipelineConfig
from .logging_config import get_asset_logger, get_logger


class AssetStatus(str, Enum):
    COMPLETED = "completed"
    SKIPPED_INSUFFICIENT_DATA = "skipped_insufficient_data"
    SKIPPED_FIT_FAILURE = "skipped_fit_failure"


@dataclass(frozen=True)
class ModelFit:
    spec: CandidateSpec
    aic: Optional[float]
    residuals: Optional[np.ndarray]
    converged: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class ModelSelection:
    asset_id: str
    status: AssetStatus
    fits: Tuple[ModelFit, ...] = ()
    best: Optional[ModelFit] = None
    train: Optional[np.ndarray] = None
    holdout: Optional[np.ndarray] = None
    reason: Optional[str] = None

    @property
    def aic_by_label(self) -> Dict[str, Optional[float]]:
        return {f.spec.label: f.aic for f in self.fits}


def split_train_holdout(series, test_size: int) -> Tuple[np.ndarray, np.ndarray]:
    series = np.asarray(series, dtype=float)
    n = len(series)
    return series[:n - test_size], series[n - test_size:]


def fit_candidate(train, spec: CandidateSpec, max_iter: int = 500, log=None) -> ModelFit:
    """
    Maximum likelihood ARMA(p, q) with a constant. Any numerical failure is
    recorded on the returned fit rather than raised.
    """
    log = log or get_logger(__name__)
    try:
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            res = ARIMA(np.array(train, dtype=float), order=spec.order, trend="c").fit(
                method_kwargs={"maxiter": max_iter}
            )
        aic = float(res.aic)
    except Exception as e:  # LinAlgError, ValueError, optimizer failures
        error = f"{type(e).__name__}: {e}"
        log.warning("fit_failed", model=spec.label, error=error)
        return ModelFit(spec, None, None, False, error)

    if not np.isfinite(aic):
        log.warning("fit_failed", model=spec.label, error="non-finite AIC")
        return ModelFit(spec, None, None, False, "non-finite AIC")

    n_conv = sum(issubclass(w.category, ConvergenceWarning) for w in caught)
    if n_conv:
        log.info("optimizer_warning", model=spec.label, convergence_warnings=n_conv)
    log.debug("fitted", model=spec.label, aic=round(aic, 3))

    resid = np.array(res.resid, dtype=float)
    resid.flags.writeable = False
    return ModelFit(spec, aic, resid, True)


def choose_best(fits: Sequence[ModelFit], tol: float = 1e-9) -> Optional[ModelFit]:
    """
    Converged fit with the lowest AIC. Among fits within `tol` of that
    minimum, the earliest declared candidate wins.
    """
    usable = [f for f in fits if f.converged and f.aic is not None]
    if not usable:
        return None
    lowest = min(f.aic for f in usable)
    return next(f for f in usable if f.aic <= lowest + tol)


def select_model(asset_id: str, series, config: PipelineConfig) -> ModelSelection:
    log = get_asset_logger(__name__, asset_id)

    series = np.asarray(series, dtype=float)
    n_nan = int(np.isnan(series).sum())
    if n_nan:
        log.info("dropping_missing_returns", missing=n_nan)
        series = series[~np.isnan(series)]

    n = len(series)
    if n <= config.test_size + config.min_train_margin:
        reason = f"not enough data ({n} <= {config.test_size} + {config.min_train_margin})"
        log.info("skipped", reason=reason)
        return ModelSelection(asset_id, AssetStatus.SKIPPED_INSUFFICIENT_DATA, reason=reason)

    train, holdout = split_train_holdout(series, config.test_size)

    fits = tuple(fit_candidate(train, spec, config.max_iter, log) for spec in config.candidates)
    best = choose_best(fits, config.aic_tie_tolerance)
    if best is None:
        reason = "model fitting failed for every candidate"
        log.warning("skipped", reason=reason)
        return ModelSelection(asset_id, AssetStatus.SKIPPED_FIT_FAILURE, fits=fits,
                              train=train, holdout=holdout, reason=reason)

    log.info("model_selected", model=best.spec.label, aic=round(best.aic, 3),
             converged=sum(f.converged for f in fits), candidates=len(fits))
    return ModelSelection(asset_id, AssetStatus.COMPLETED, fits=fits, best=best,
                          train=train, holdout=holdout)
