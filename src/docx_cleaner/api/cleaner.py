"""High-level cleaning API.

This module provides the configured ``DocxCleaner`` class and the
``clean_docx`` convenience function. Both follow a never-fail contract:
run failures are returned inside a ``CleanResult`` instead of being raised.
"""

import time
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Union

from docx_cleaner.character import CharacterFilter, CharacterSet, default_character_set
from docx_cleaner.package import ContainerRewriter
from docx_cleaner.shared import (
    CleanerConfig,
    CleanerError,
    CleanResult,
    DiagnosticEntry,
    DiagnosticSeverity,
    get_logger,
    new_correlation_id,
)

PathLike = Union[str, Path]
CharactersType = Union[CharacterSet, Iterable[int]]

MS_PER_SECOND = 1000
OUTPUT_SUFFIX = "_cleaned"


def default_output_path(input_path: PathLike) -> Path:
    """Return ``<stem>_cleaned<suffix>`` next to the input file.

    Examples:
        >>> default_output_path("reports/q3.docx")
        PosixPath('reports/q3_cleaned.docx')
    """
    path = Path(input_path)
    return path.with_name(f"{path.stem}{OUTPUT_SUFFIX}{path.suffix}")


class DocxCleaner:
    """Configured, reusable cleaner for DOCX documents.

    The character set and configuration are fixed at construction time; the
    filter table built from them is shared by every ``clean`` call.

    Attributes:
        characters: Denylisted code points
        config: Cleaning configuration
        correlation_id: Fixed correlation ID, or None to generate one per run

    Examples:
        >>> cleaner = DocxCleaner()
        >>> result = cleaner.clean("report.docx")
        >>> result.success
        True
        >>> result.output_path
        PosixPath('report_cleaned.docx')
    """

    def __init__(
        self,
        characters: Optional[CharactersType] = None,
        config: Optional[CleanerConfig] = None,
        correlation_id: Optional[str] = None,
    ) -> None:
        if characters is None:
            characters = default_character_set()
        elif not isinstance(characters, CharacterSet):
            characters = CharacterSet(characters)

        self.characters: CharacterSet = characters
        self.config = config or CleanerConfig.default()
        self.correlation_id = correlation_id
        self.character_filter = CharacterFilter(self.characters)
        self.logger = get_logger(__name__, correlation_id, "docx_cleaner")

        self._clean_count = 0
        self._successful_cleans = 0
        self._total_processing_time = 0.0

    def _run_correlation_id(self) -> Optional[str]:
        if self.correlation_id:
            return self.correlation_id
        if self.config.global_.enable_correlation_tracking:
            return new_correlation_id()
        return None

    def clean(
        self,
        input_path: PathLike,
        output_path: Optional[PathLike] = None,
        overwrite: bool = False,
    ) -> CleanResult:
        """Clean one document.

        Args:
            input_path: DOCX file to clean
            output_path: Destination; defaults to ``<stem>_cleaned<suffix>``
            overwrite: Replace an existing output file

        Returns:
            CleanResult; ``success`` is False when the run aborted
        """
        start_time = time.time()
        input_path = Path(input_path)
        output_path = Path(output_path) if output_path else default_output_path(input_path)
        correlation_id = self._run_correlation_id()
        logger = get_logger(__name__, correlation_id, "docx_cleaner")
        self._clean_count += 1

        rewriter = ContainerRewriter(self.character_filter, self.config, correlation_id)
        try:
            summary = rewriter.process(input_path, output_path, overwrite=overwrite)
        except CleanerError as e:
            processing_time = (time.time() - start_time) * MS_PER_SECOND
            self._total_processing_time += processing_time
            logger.warning(
                "Cleaning failed",
                extra={"input_path": str(input_path), "error_kind": e.kind}
            )
            diagnostic = DiagnosticEntry(
                severity=DiagnosticSeverity.ERROR,
                message=e.message,
                component="docx_cleaner",
                entry_name=e.entry_name,
                details={
                    "kind": e.kind,
                    "run_state": rewriter.state.name if rewriter.state else None,
                    "processing_time_ms": processing_time,
                },
                correlation_id=correlation_id,
            )
            return CleanResult(
                success=False,
                error=e,
                diagnostics=[diagnostic],
                correlation_id=correlation_id,
            )

        self._successful_cleans += 1
        self._total_processing_time += summary.processing_time_ms
        return CleanResult(
            success=True,
            summary=summary,
            diagnostics=list(summary.diagnostics),
            correlation_id=correlation_id,
        )

    @property
    def statistics(self) -> Dict[str, Any]:
        """Usage statistics across all ``clean`` calls on this instance."""
        return {
            "total_cleans": self._clean_count,
            "successful_cleans": self._successful_cleans,
            "failed_cleans": self._clean_count - self._successful_cleans,
            "total_processing_time_ms": self._total_processing_time,
            "character_count": len(self.characters),
        }


def clean_docx(
    input_path: PathLike,
    output_path: Optional[PathLike] = None,
    characters: Optional[CharactersType] = None,
    config: Optional[CleanerConfig] = None,
    overwrite: bool = False,
    correlation_id: Optional[str] = None,
) -> CleanResult:
    """Clean one document with a one-off ``DocxCleaner``.

    Examples:
        >>> result = clean_docx("report.docx", characters={0x200B})
        >>> result.summary.removed_by_codepoint
        Counter({8203: 4})

        Missing input:
        >>> result = clean_docx("missing.docx")
        >>> result.success, result.error_kind
        (False, 'IoError')
    """
    cleaner = DocxCleaner(characters, config, correlation_id)
    return cleaner.clean(input_path, output_path, overwrite=overwrite)
