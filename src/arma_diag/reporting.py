# src/arma_diag/reporting.py
import threading
from collections import Counter
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from .arma_selection import AssetStatus, ModelSelection
from .config import CANDIDATE_SPECS, CandidateSpec
from .logging_config import get_logger
from .residual_diagnostics import ResidualDiagnosticsResult

logger = get_logger(__name__)

ID_COLUMN = "Stock"
DIAGNOSTIC_COLUMNS = {
    "Shapiro_pvalue": "shapiro_p",
    "BoxLjung_pvalue": "ljung_box_p",
    "ArchTest_pvalue": "arch_p",
}


@dataclass(frozen=True)
class SummaryRecord:
    asset_id: str
    best_model_label: str
    aic_per_candidate: Mapping[CandidateSpec, Optional[float]]
    diagnostics: ResidualDiagnosticsResult

    @classmethod
    def from_selection(cls, selection: ModelSelection,
                       diagnostics: ResidualDiagnosticsResult) -> "SummaryRecord":
        if selection.best is None:
            raise ValueError(f"{selection.asset_id}: no selected model to report")
        aics = {f.spec: f.aic for f in selection.fits}
        return cls(selection.asset_id, selection.best.spec.label, aics, diagnostics)


@dataclass(frozen=True)
class SkipRecord:
    asset_id: str
    status: AssetStatus
    reason: str


class SummaryReport:
    """
    Accumulates one SummaryRecord per completed asset and one SkipRecord per
    skipped asset, in the order they are added. Appends are serialized.
    """

    def __init__(self, candidates: Sequence[CandidateSpec] = CANDIDATE_SPECS):
        self.candidates = tuple(candidates)
        self._records: List[SummaryRecord] = []
        self._skipped: List[SkipRecord] = []
        self._lock = threading.Lock()

    def add(self, record: SummaryRecord) -> None:
        with self._lock:
            self._records.append(record)

    def skip(self, asset_id: str, status: AssetStatus, reason: str) -> None:
        if status is AssetStatus.COMPLETED:
            raise ValueError("completed assets go through add(), not skip()")
        with self._lock:
            self._skipped.append(SkipRecord(asset_id, status, reason))
        logger.info("asset_skipped", asset=asset_id, status=status.value, reason=reason)

    @property
    def records(self) -> List[SummaryRecord]:
        with self._lock:
            return list(self._records)

    @property
    def skipped(self) -> List[SkipRecord]:
        with self._lock:
            return list(self._skipped)

    def __len__(self):
        return len(self._records)

    def skip_counts(self) -> Dict[str, int]:
        return dict(Counter(s.status.value for s in self.skipped))

    @property
    def columns(self) -> List[str]:
        return [ID_COLUMN, "Best_Model"] + [c.column for c in self.candidates] + list(DIAGNOSTIC_COLUMNS)

    def to_frame(self) -> pd.DataFrame:
        rows = []
        for rec in self.records:
            row = {ID_COLUMN: rec.asset_id, "Best_Model": rec.best_model_label}
            for spec in self.candidates:
                aic = rec.aic_per_candidate.get(spec)
                row[spec.column] = np.nan if aic is None else aic
            for col, attr in DIAGNOSTIC_COLUMNS.items():
                value = getattr(rec.diagnostics, attr)
                row[col] = np.nan if value is None else value
            rows.append(row)
        return pd.DataFrame(rows, columns=self.columns)

    def skipped_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            [{ID_COLUMN: s.asset_id, "Status": s.status.value, "Reason": s.reason} for s in self.skipped],
            columns=[ID_COLUMN, "Status", "Reason"],
        )

    def write_csv(self, output_path) -> Path:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        self.to_frame().to_csv(output_path, index=False)
        logger.info("report_saved", path=str(output_path), rows=len(self),
                    skipped=self.skip_counts())
        return output_path
