# src/arma_diag/config.py
"""Pipeline constants and the frozen config object built from them."""

from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, NamedTuple, Optional, Tuple

import yaml

from .errors import ConfigurationError


class CandidateSpec(NamedTuple):
    """One ARMA(p, q) candidate; d is always 0 for return series."""

    p: int
    d: int
    q: int

    @property
    def order(self) -> Tuple[int, int, int]:
        return (self.p, self.d, self.q)

    @property
    def label(self) -> str:
        return f"ARMA({self.p},{self.q})"

    @property
    def column(self) -> str:
        return f"AIC_{self.p}_{self.q}"


# -----------------------------
# Config
# -----------------------------
# Declaration order is the AIC tie-break order.
CANDIDATE_SPECS = (
    CandidateSpec(17, 0, 2),
    CandidateSpec(12, 0, 3),
    CandidateSpec(7, 0, 4),
)

ASSET_TICKERS = {
    "Aselsan": "ASELS.IS",
    "Broadcom": "AVGO",
    "Intel": "INTC",
    "Microsoft": "MSFT",
    "Northrop Grumman": "NOC",
    "Oracle": "ORCL",
    "Qualcomm": "QCOM",
    "Saab AB": "SAAB-B.ST",
    "Suncore Energy": "SU",
    "TechnipFMC": "FTI",
    "Woodside Energy": "WDS",
}

LEADING_OFFSET = 2          # yfinance CSVs carry "Ticker" and "Date" label rows
WINDOW = 3947               # trailing return observations kept per asset
TEST_SIZE = 80              # held-out tail, not used for fitting
MIN_TRAIN_MARGIN = 20
LJUNG_BOX_LAG = 20
ARCH_LAGS = 12

DATA_DIR = Path("data/raw")
RETURNS_PATH = Path("data/processed/all_log_returns_wide_format.csv")
REPORT_PATH = Path("reports/arma_modeling_results_summary.csv")
PLOTS_DIR = Path("reports/stock_plots")


@dataclass(frozen=True)
class PipelineConfig:
    assets: Tuple[str, ...] = tuple(ASSET_TICKERS)
    tickers: Dict[str, str] = field(default_factory=lambda: dict(ASSET_TICKERS))
    start: str = "2009-01-01"
    end: str = "2024-12-31"
    data_dir: Path = DATA_DIR
    file_pattern: str = "{asset}_stock_data.csv"
    price_column: str = "Close"

    leading_offset: int = LEADING_OFFSET
    window: int = WINDOW
    adf_regression: str = "ct"
    adf_autolag: Optional[str] = "AIC"
    min_variance: float = 1e-12

    test_size: int = TEST_SIZE
    min_train_margin: int = MIN_TRAIN_MARGIN
    candidates: Tuple[CandidateSpec, ...] = CANDIDATE_SPECS
    max_iter: int = 500
    aic_tie_tolerance: float = 1e-9

    ljung_box_lag: int = LJUNG_BOX_LAG
    arch_lags: int = ARCH_LAGS
    shapiro_max_obs: int = 5000
    acf_nlags: int = 40

    def price_path(self, asset: str) -> Path:
        return Path(self.data_dir) / self.file_pattern.format(asset=asset)

    def validate(self) -> "PipelineConfig":
        if not self.candidates:
            raise ConfigurationError("at least one candidate ARMA order is required")
        for spec in self.candidates:
            if spec.d != 0:
                raise ConfigurationError(
                    f"candidate {spec.order} has d={spec.d}; returns are already differenced",
                    context={"order": spec.order},
                )
            if spec.p < 0 or spec.q < 0:
                raise ConfigurationError(f"candidate {spec.order} has a negative order")
        if len(set(self.candidates)) != len(self.candidates):
            raise ConfigurationError("candidate ARMA orders must be unique")
        for name in ("window", "test_size", "ljung_box_lag", "arch_lags", "max_iter"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive, got {getattr(self, name)}")
        if self.leading_offset < 0:
            raise ConfigurationError("leading_offset cannot be negative")
        if self.adf_regression not in ("c", "ct", "ctt", "n"):
            raise ConfigurationError(f"unknown ADF regression {self.adf_regression!r}")
        if len(set(self.assets)) != len(self.assets):
            raise ConfigurationError("asset identifiers must be unique")
        return self


def _coerce_overrides(raw: Dict[str, Any]) -> Dict[str, Any]:
    known = {f.name for f in fields(PipelineConfig)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ConfigurationError(f"unknown config keys: {', '.join(unknown)}",
                                 context={"unknown": unknown})

    out = dict(raw)
    if "candidates" in out:
        try:
            out["candidates"] = tuple(CandidateSpec(*map(int, c)) for c in out["candidates"])
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"candidates must be [p, d, q] triples: {e}") from e
    if "assets" in out:
        out["assets"] = tuple(str(a) for a in out["assets"])
    if "tickers" in out:
        out["tickers"] = {str(k): str(v) for k, v in out["tickers"].items()}
    if "data_dir" in out:
        out["data_dir"] = Path(out["data_dir"])
    return out


def load_config(path: Optional[Path] = None, **overrides) -> PipelineConfig:
    """
    Build a PipelineConfig from defaults, an optional YAML file and keyword
    overrides (highest priority).
    """
    merged: Dict[str, Any] = {}
    if path is not None:
        path = Path(path)
        if not path.exists():
            raise ConfigurationError(f"{path} not found.")
        with open(path) as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ConfigurationError(f"{path} must contain a mapping at top level")
        merged.update(loaded)
    merged.update({k: v for k, v in overrides.items() if v is not None})

    cfg = replace(PipelineConfig(), **_coerce_overrides(merged))
    if "assets" in merged and "tickers" not in merged:
        cfg = replace(cfg, tickers={a: cfg.tickers.get(a, a) for a in cfg.assets})
    return cfg.validate()
