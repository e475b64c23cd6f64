# src/arma_diag/pipeline.py
"""
Batch driver: preprocess every asset, assemble the return matrix, then
select and diagnose a model per asset.

Each asset is an independent task. Recoverable data problems become skip
outcomes at the per-asset boundary; anything else (including a schema
mismatch while assembling the matrix) aborts the batch.
"""

import os
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

import numpy as np
import pandas as pd

from .arma_selection import AssetStatus, select_model
from .config import PipelineConfig
from .data_fetch import load_price_file
from .errors import DataQualityError
from .logging_config import get_asset_logger, get_logger
from .preprocess_stationary import PreprocessedSeries, build_return_matrix, preprocess_series
from .reporting import SummaryRecord, SummaryReport
from .residual_diagnostics import DiagnosticArtifacts, compute_artifacts, run_diagnostics

logger = get_logger(__name__)


@dataclass(frozen=True)
class AssetResult:
    asset_id: str
    status: AssetStatus
    record: Optional[SummaryRecord] = None
    reason: Optional[str] = None
    artifacts: Optional[DiagnosticArtifacts] = None


@dataclass
class PipelineResult:
    report: SummaryReport
    matrix: pd.DataFrame
    preprocessed: List[PreprocessedSeries] = field(default_factory=list)
    artifacts: Dict[str, DiagnosticArtifacts] = field(default_factory=dict)


# -----------------------------
# Per-asset tasks
# -----------------------------
def preprocess_asset(asset_id: str, source, config: PipelineConfig) -> Union[PreprocessedSeries, AssetResult]:
    """`source` is either the raw price values or a path to a price file."""
    try:
        if isinstance(source, (str, os.PathLike)):
            source = load_price_file(source, config.price_column)
        return preprocess_series(asset_id, source, config)
    except DataQualityError as e:
        return AssetResult(asset_id, AssetStatus.SKIPPED_INSUFFICIENT_DATA, reason=str(e))


def model_asset(asset_id: str, returns, config: PipelineConfig,
                collect_artifacts: bool = False) -> AssetResult:
    log = get_asset_logger(__name__, asset_id)
    selection = select_model(asset_id, returns, config)
    if selection.status is not AssetStatus.COMPLETED:
        return AssetResult(asset_id, selection.status, reason=selection.reason)

    diagnostics = run_diagnostics(selection.best.residuals, config, log)
    record = SummaryRecord.from_selection(selection, diagnostics)

    artifacts = None
    if collect_artifacts:
        try:
            artifacts = compute_artifacts(asset_id, selection.train,
                                          selection.best.residuals, config.acf_nlags)
        except (ValueError, np.linalg.LinAlgError) as e:
            log.warning("artifacts_failed", error=str(e))
    return AssetResult(asset_id, AssetStatus.COMPLETED, record=record, artifacts=artifacts)


def _preprocess_task(args):
    return preprocess_asset(*args)


def _model_task(args):
    return model_asset(*args)


def _map_assets(fn: Callable, tasks: Sequence, max_workers: Optional[int]) -> List[Any]:
    """
    Run `fn` over tasks, sequentially or on a process pool. Results come back
    in task order either way.
    """
    if not max_workers or max_workers <= 1 or len(tasks) <= 1:
        return [fn(t) for t in tasks]

    executor = ProcessPoolExecutor(max_workers=max_workers)
    try:
        futures = [executor.submit(fn, t) for t in tasks]
        results = [f.result() for f in futures]
    except BaseException:
        # abort between assets: drop everything not yet started
        executor.shutdown(wait=False, cancel_futures=True)
        raise
    executor.shutdown(wait=True)
    return results


# -----------------------------
# Batch stages
# -----------------------------
def prepare_returns(sources: Mapping[str, Any], config: PipelineConfig,
                    report: Optional[SummaryReport] = None, max_workers: Optional[int] = None):
    """
    Stage 1 + 2: preprocess every asset and stack the survivors into the
    return matrix. Returns (matrix, preprocessed, report).
    """
    report = report if report is not None else SummaryReport(config.candidates)
    tasks = [(asset, source, config) for asset, source in sources.items()]
    outcomes = _map_assets(_preprocess_task, tasks, max_workers)

    preprocessed = []
    for outcome in outcomes:
        if isinstance(outcome, AssetResult):
            report.skip(outcome.asset_id, outcome.status, outcome.reason)
        else:
            preprocessed.append(outcome)

    matrix = build_return_matrix((p.asset_id, p.returns) for p in preprocessed)
    logger.info("return_matrix_built", assets=matrix.shape[0], window=matrix.shape[1])
    return matrix, preprocessed, report


def model_returns(matrix: pd.DataFrame, config: PipelineConfig,
                  report: Optional[SummaryReport] = None, max_workers: Optional[int] = None,
                  collect_artifacts: bool = False):
    """
    Stages 3-5 over every row of the return matrix. Returns (report, artifacts).
    """
    report = report if report is not None else SummaryReport(config.candidates)
    tasks = [(str(asset), row.to_numpy(dtype=float), config, collect_artifacts)
             for asset, row in matrix.iterrows()]
    results = _map_assets(_model_task, tasks, max_workers)

    artifacts = {}
    for result in results:
        if result.status is AssetStatus.COMPLETED:
            report.add(result.record)
            if result.artifacts is not None:
                artifacts[result.asset_id] = result.artifacts
        else:
            report.skip(result.asset_id, result.status, result.reason)

    logger.info("batch_complete", completed=len(report), skipped=report.skip_counts())
    return report, artifacts


def run_pipeline(config: PipelineConfig, sources: Optional[Mapping[str, Any]] = None,
                 max_workers: Optional[int] = None, collect_artifacts: bool = False) -> PipelineResult:
    """
    End to end run. Without `sources`, each configured asset is read from its
    price file under config.data_dir.
    """
    if sources is None:
        sources = {asset: config.price_path(asset) for asset in config.assets}

    matrix, preprocessed, report = prepare_returns(sources, config, max_workers=max_workers)
    report, artifacts = model_returns(matrix, config, report=report, max_workers=max_workers,
                                      collect_artifacts=collect_artifacts)
    return PipelineResult(report=report, matrix=matrix, preprocessed=preprocessed, artifacts=artifacts)
