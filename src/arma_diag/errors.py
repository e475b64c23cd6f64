"""
Exception hierarchy for the return-series pipeline.

Data quality problems are recoverable: the pipeline turns them into a
per-asset skip. Structural problems (schema mismatches, bad configuration)
abort the batch.
"""

from typing import Optional, Dict, Any


class PipelineError(Exception):
    """Base class for every error raised by arma_diag."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}
        self.recoverable = False


class DataQualityError(PipelineError):
    """Bad or insufficient input data for a single asset."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context)
        self.recoverable = True


class InsufficientDataError(DataQualityError):
    """Series is shorter than a stage requires."""

    def __init__(self, message: str, required_count: Optional[int] = None,
                 available_count: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.required_count = required_count
        self.available_count = available_count


class DegenerateSeriesError(DataQualityError):
    """Series has (near) zero variance, so a test statistic is undefined."""

    def __init__(self, message: str, std: Optional[float] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.std = std


class SchemaMismatchError(PipelineError):
    """Return series that should share one shape do not."""

    def __init__(self, message: str, lengths: Optional[Dict[str, int]] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.lengths = lengths or {}


class ConfigurationError(PipelineError):
    """Invalid configuration value or override file."""


class DiagnosticError(PipelineError):
    """A residual test could not produce a usable result."""

    def __init__(self, message: str, test_name: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.test_name = test_name
        self.recoverable = True


__all__ = [
    "PipelineError",
    "DataQualityError",
    "InsufficientDataError",
    "DegenerateSeriesError",
    "SchemaMismatchError",
    "ConfigurationError",
    "DiagnosticError",
]
