"""
Exception types raised by the analysis pipeline.
"""
from __future__ import annotations


class PipelineError(Exception):
    """Base class for every error the pipeline reports."""


class DataQualityError(PipelineError):
    """The raw price table cannot be used (e.g. required columns are missing)."""

    def __init__(self, message: str, missing_columns: list[str] | None = None):
        super().__init__(message)
        self.missing_columns = missing_columns or []


class ConfigurationError(PipelineError, ValueError):
    """Parameters are incompatible with each other or with the data."""


class ConsistencyError(PipelineError):
    """Cluster assignment does not cover the input symbols one-to-one."""


class ModelFitError(PipelineError):
    """No ARIMA candidate could be fitted to a cluster series."""

    def __init__(self, message: str, cluster_id: int | None = None):
        super().__init__(message)
        self.cluster_id = cluster_id
