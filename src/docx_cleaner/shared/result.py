"""Result objects and diagnostic types for DOCX cleaning.

This module defines the summary and diagnostic records produced by a
cleaning run, plus the never-fail ``CleanResult`` returned by the API layer.
"""

import time
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum, auto
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional

if TYPE_CHECKING:
    from docx_cleaner.shared.errors import CleanerError


class DiagnosticSeverity(Enum):
    """Severity levels for diagnostic entries."""

    DEBUG = auto()
    INFO = auto()
    WARNING = auto()    # Recovered locally, e.g. a part copied unchanged
    ERROR = auto()      # The run was aborted


@dataclass
class DiagnosticEntry:
    """Single diagnostic entry with context information."""

    severity: DiagnosticSeverity
    message: str
    component: str
    entry_name: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    timestamp: float = field(default_factory=time.time)
    correlation_id: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate diagnostic entry."""
        if not self.message:
            raise ValueError("Diagnostic message cannot be empty")
        if not self.component:
            raise ValueError("Diagnostic component cannot be empty")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "severity": self.severity.name,
            "message": self.message,
            "component": self.component,
            "entry_name": self.entry_name,
            "details": self.details,
        }


@dataclass
class PartReport:
    """Outcome for one text-bearing part."""

    entry_name: str
    role: str
    removed: Counter = field(default_factory=Counter)
    changed: bool = False
    skipped_reason: Optional[str] = None

    @property
    def characters_removed(self) -> int:
        return sum(self.removed.values())

    @property
    def skipped(self) -> bool:
        return self.skipped_reason is not None


@dataclass
class RunSummary:
    """Summary of a completed cleaning run."""

    input_path: Optional[Path] = None
    output_path: Optional[Path] = None
    entries_total: int = 0
    entries_copied: int = 0
    entries_rewritten: int = 0
    parts: List[PartReport] = field(default_factory=list)
    diagnostics: List[DiagnosticEntry] = field(default_factory=list)
    processing_time_ms: float = 0.0
    correlation_id: Optional[str] = None

    @property
    def parts_processed(self) -> int:
        """Text-bearing parts that went through the rewriter."""
        return sum(1 for part in self.parts if not part.skipped)

    @property
    def parts_skipped(self) -> int:
        return sum(1 for part in self.parts if part.skipped)

    @property
    def removed_by_codepoint(self) -> Counter:
        """Removed characters per code point, summed across parts."""
        total: Counter = Counter()
        for part in self.parts:
            total.update(part.removed)
        return total

    @property
    def characters_removed(self) -> int:
        return sum(part.characters_removed for part in self.parts)

    @property
    def warnings(self) -> List[DiagnosticEntry]:
        return [d for d in self.diagnostics if d.severity == DiagnosticSeverity.WARNING]

    def to_dict(self) -> Dict[str, Any]:
        """Convert summary to a JSON-serializable dictionary."""
        return {
            "input_path": str(self.input_path) if self.input_path else None,
            "output_path": str(self.output_path) if self.output_path else None,
            "entries_total": self.entries_total,
            "entries_copied": self.entries_copied,
            "entries_rewritten": self.entries_rewritten,
            "parts_processed": self.parts_processed,
            "parts_skipped": self.parts_skipped,
            "characters_removed": self.characters_removed,
            "removed_by_codepoint": {
                f"U+{codepoint:04X}": count
                for codepoint, count in sorted(self.removed_by_codepoint.items())
            },
            "parts": [
                {
                    "entry_name": part.entry_name,
                    "role": part.role,
                    "characters_removed": part.characters_removed,
                    "changed": part.changed,
                    "skipped_reason": part.skipped_reason,
                }
                for part in self.parts
            ],
            "diagnostics": [d.to_dict() for d in self.diagnostics],
            "processing_time_ms": self.processing_time_ms,
            "correlation_id": self.correlation_id,
        }


@dataclass
class CleanResult:
    """Never-fail result of a cleaning call.

    ``success`` is False when the run aborted; ``error`` then holds the
    exception and no output file exists.
    """

    success: bool
    summary: Optional[RunSummary] = None
    error: Optional["CleanerError"] = None
    diagnostics: List[DiagnosticEntry] = field(default_factory=list)
    correlation_id: Optional[str] = None

    @property
    def output_path(self) -> Optional[Path]:
        return self.summary.output_path if self.summary else None

    @property
    def error_kind(self) -> Optional[str]:
        return self.error.kind if self.error else None
