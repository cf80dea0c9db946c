"""Shared utilities for DOCX cleaning.

This module provides shared data structures, configuration objects, result
types, the error taxonomy and logging helpers used across all layers.
"""

from .result import (
    CleanResult,
    DiagnosticEntry,
    DiagnosticSeverity,
    PartReport,
    RunSummary,
)
from .config import (
    CleanerConfig,
    ConfigError,
    ConfigValidationError,
    ContainerConfig,
    GlobalConfig,
    PerformanceConfig,
    RewriteConfig,
    TimestampPolicy,
)
from .errors import (
    CleanerError,
    ContainerIOError,
    InvalidContainerError,
    MalformedXmlError,
    OutputExistsError,
    UnsupportedPartError,
)
from .logging import (
    CorrelationLogger,
    configure_logging,
    get_logger,
    new_correlation_id,
)

__all__ = [
    "CleanResult",
    "DiagnosticEntry",
    "DiagnosticSeverity",
    "PartReport",
    "RunSummary",
    "CleanerConfig",
    "ConfigError",
    "ConfigValidationError",
    "ContainerConfig",
    "GlobalConfig",
    "PerformanceConfig",
    "RewriteConfig",
    "TimestampPolicy",
    "CleanerError",
    "ContainerIOError",
    "InvalidContainerError",
    "MalformedXmlError",
    "OutputExistsError",
    "UnsupportedPartError",
    "CorrelationLogger",
    "configure_logging",
    "get_logger",
    "new_correlation_id",
]
