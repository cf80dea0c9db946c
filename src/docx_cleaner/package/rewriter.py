"""Container rewriting for DOCX packages.

``ContainerRewriter`` walks every entry of the source zip in order, sends the
text-bearing parts through the ``TextRunRewriter`` and copies every other
entry as its raw source record, so copied entries keep their compressed bytes
and metadata exactly. Output goes to a temporary file next to the destination
and is moved into place only when the whole run succeeded, so an aborted run
never leaves a partial document behind.
"""

import os
import shutil
import tempfile
import time
import zipfile
import zlib
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum, auto
from pathlib import Path
from typing import BinaryIO, Dict, List, Optional, Union

from docx_cleaner.document.rewriter import DenylistType, TextRunRewriter
from docx_cleaner.package.archive import (
    WRITABLE_COMPRESSION,
    ArchiveWriter,
    LocalRecord,
    read_local_record,
)
from docx_cleaner.package.parts import PartRole, classify
from docx_cleaner.shared.config import CleanerConfig, TimestampPolicy
from docx_cleaner.shared.errors import (
    CleanerError,
    ContainerIOError,
    InvalidContainerError,
    OutputExistsError,
    UnsupportedPartError,
)
from docx_cleaner.shared.logging import get_logger
from docx_cleaner.shared.result import (
    DiagnosticEntry,
    DiagnosticSeverity,
    PartReport,
    RunSummary,
)

PathLike = Union[str, Path]

CONTENT_TYPES_ENTRY = "[Content_Types].xml"
MS_PER_SECOND = 1000

# Compression ratio is only meaningful once an entry is reasonably large
RATIO_CHECK_MIN_BYTES = 1024 * 1024

_ENCRYPTED_FLAG = 0x1


class RunState(Enum):
    """States of a single cleaning run."""

    OPENED = auto()
    ITERATING = auto()
    REWRITING = auto()
    COPYING = auto()
    FINALIZING = auto()
    DONE = auto()
    ABORTED = auto()


@dataclass
class _PartOutcome:
    report: PartReport
    data: bytes
    rewritten: bool
    warning: Optional[str] = None


class ContainerRewriter:
    """Rewrites a DOCX container, filtering run text in text-bearing parts.

    Examples:
        >>> rewriter = ContainerRewriter(default_character_set())
        >>> summary = rewriter.process("report.docx", "report_cleaned.docx")
        >>> summary.characters_removed
        12
    """

    def __init__(
        self,
        denylist: DenylistType,
        config: Optional[CleanerConfig] = None,
        correlation_id: Optional[str] = None,
    ) -> None:
        self.config = config or CleanerConfig()
        self.correlation_id = correlation_id
        self.text_rewriter = TextRunRewriter(denylist, self.config.rewrite, correlation_id)
        self.logger = get_logger(__name__, correlation_id, "container_rewriter")
        self.state: Optional[RunState] = None
        self.entry_index: Optional[int] = None

    def process(
        self,
        input_path: PathLike,
        output_path: PathLike,
        overwrite: bool = False,
    ) -> RunSummary:
        """Clean ``input_path`` into ``output_path``.

        Args:
            input_path: Existing DOCX file, opened read-only
            output_path: Destination file
            overwrite: Replace ``output_path`` if it already exists

        Returns:
            RunSummary describing the run

        Raises:
            InvalidContainerError: Input is not a readable DOCX package
            MalformedXmlError: A text-bearing part does not parse
            UnsupportedPartError: Only with ``rewrite.fail_on_unsupported``
            ContainerIOError: Read/write failure, or output path conflicts
        """
        start_time = time.time()
        input_path = Path(input_path)
        output_path = Path(output_path)
        self.state = None
        self.entry_index = None

        self.logger.info(
            "Starting cleaning run",
            extra={"input_path": str(input_path), "output_path": str(output_path)}
        )

        summary = RunSummary(
            input_path=input_path,
            output_path=output_path,
            correlation_id=self.correlation_id,
        )
        temp_path: Optional[Path] = None

        try:
            self._check_paths(input_path, output_path, overwrite)
            with self._open_input(input_path) as zin, open(input_path, "rb") as source:
                self._transition(RunState.OPENED)
                infos = zin.infolist()
                self._validate_container(zin, infos)
                summary.entries_total = len(infos)

                temp_path = self._create_temp_file(output_path)
                with open(temp_path, "wb") as fp:
                    writer = ArchiveWriter(fp)
                    if self.config.performance.enable_parallel_processing:
                        self._write_entries_parallel(zin, source, writer, infos, summary)
                    else:
                        self._write_entries(zin, source, writer, infos, summary)
                    self._transition(RunState.FINALIZING)
                    writer.close(zin.comment)

            shutil.copymode(input_path, temp_path)
            os.replace(temp_path, output_path)
            temp_path = None

        except CleanerError as e:
            self._abort(e)
            raise
        except OSError as e:
            error = ContainerIOError(f"I/O failure: {e}")
            self._abort(error)
            raise error from e
        finally:
            if temp_path is not None:
                self._remove_partial_output(temp_path)

        self._transition(RunState.DONE)
        summary.processing_time_ms = (time.time() - start_time) * MS_PER_SECOND
        self.logger.info(
            "Cleaning run finished",
            extra={
                "parts_processed": summary.parts_processed,
                "characters_removed": summary.characters_removed,
                "processing_time_ms": summary.processing_time_ms,
            }
        )
        return summary

    # State tracking

    def _transition(self, state: RunState, entry_index: Optional[int] = None) -> None:
        self.state = state
        if entry_index is not None:
            self.entry_index = entry_index
        self.logger.debug(
            "Run state changed",
            extra={"state": state.name, "entry_index": self.entry_index}
        )

    def _abort(self, error: CleanerError) -> None:
        self._transition(RunState.ABORTED)
        self.logger.error(
            f"Cleaning run aborted: {error}",
            extra={"error_kind": error.kind, "entry_name": error.entry_name}
        )

    # Input and output handling

    def _check_paths(self, input_path: Path, output_path: Path, overwrite: bool) -> None:
        if not input_path.is_file():
            raise ContainerIOError(f"Input file does not exist: {input_path}")

        if output_path.exists():
            if os.path.samefile(input_path, output_path):
                raise ContainerIOError(
                    f"Output path refers to the input file: {output_path}"
                )
            if not overwrite:
                raise OutputExistsError(f"Output file already exists: {output_path}")
            if output_path.is_dir():
                raise ContainerIOError(f"Output path is a directory: {output_path}")

    def _open_input(self, input_path: Path) -> zipfile.ZipFile:
        try:
            return zipfile.ZipFile(input_path, "r")
        except zipfile.BadZipFile as e:
            raise InvalidContainerError(f"Not a zip archive: {input_path} ({e})") from e

    def _validate_container(self, zin: zipfile.ZipFile, infos: List[zipfile.ZipInfo]) -> None:
        container_config = self.config.container
        if container_config.require_content_types:
            if CONTENT_TYPES_ENTRY not in zin.NameToInfo:
                raise InvalidContainerError(
                    f"Missing {CONTENT_TYPES_ENTRY}; not a DOCX package"
                )

        for info in infos:
            if info.flag_bits & _ENCRYPTED_FLAG:
                raise InvalidContainerError("Entry is encrypted", info.filename)

            max_size = container_config.max_entry_size_bytes
            if max_size is not None and info.file_size > max_size:
                raise InvalidContainerError(
                    f"Entry expands to {info.file_size} bytes, limit is {max_size}",
                    info.filename,
                )

            max_ratio = container_config.max_compression_ratio
            if (
                max_ratio is not None
                and info.file_size >= RATIO_CHECK_MIN_BYTES
                and info.compress_size > 0
                and info.file_size / info.compress_size > max_ratio
            ):
                raise InvalidContainerError(
                    f"Compression ratio {info.file_size / info.compress_size:.0f} "
                    f"exceeds limit {max_ratio:.0f}",
                    info.filename,
                )

            if (
                self._role_of(info).is_text_bearing
                and info.compress_type not in WRITABLE_COMPRESSION
            ):
                raise InvalidContainerError(
                    f"Unsupported compression method {info.compress_type} "
                    "for a text-bearing part",
                    info.filename,
                )

    def _create_temp_file(self, output_path: Path) -> Path:
        fd, name = tempfile.mkstemp(
            prefix=f".{output_path.name}.",
            suffix=".partial",
            dir=str(output_path.parent),
        )
        os.close(fd)
        return Path(name)

    def _remove_partial_output(self, temp_path: Path) -> None:
        try:
            temp_path.unlink()
        except FileNotFoundError:
            pass
        except OSError:
            self.logger.exception(
                "Could not remove partial output",
                extra={"temp_path": str(temp_path)}
            )

    def _read_entry(self, zin: zipfile.ZipFile, info: zipfile.ZipInfo) -> bytes:
        try:
            return zin.read(info)
        except (zipfile.BadZipFile, zlib.error, EOFError, NotImplementedError) as e:
            raise InvalidContainerError(f"Cannot decompress entry: {e}", info.filename) from e
        except OSError as e:
            raise ContainerIOError(f"Cannot read entry: {e}", info.filename) from e

    def _read_record(self, source: BinaryIO, info: zipfile.ZipInfo) -> LocalRecord:
        try:
            return read_local_record(source, info)
        except OSError as e:
            raise ContainerIOError(f"Cannot read entry: {e}", info.filename) from e

    def _write_record(
        self,
        writer: ArchiveWriter,
        info: zipfile.ZipInfo,
        record: LocalRecord,
        data: Optional[bytes] = None,
        date_time: Optional[tuple] = None,
    ) -> None:
        """Copy ``record`` as is, or write ``data`` as the entry's new content."""
        try:
            if data is None:
                writer.copy_record(info, record)
            else:
                writer.write_record(info, record, data, date_time)
        except OSError as e:
            raise ContainerIOError(f"Cannot write entry: {e}", info.filename) from e

    # Entry processing

    def _rewrite_payload(self, info: zipfile.ZipInfo, role: PartRole, data: bytes) -> _PartOutcome:
        """Rewrite one text-bearing part; safe to run on a worker thread."""
        report = PartReport(entry_name=info.filename, role=role.value)
        try:
            rewrite = self.text_rewriter.rewrite_part(data, info.filename)
        except UnsupportedPartError as e:
            if self.config.rewrite.fail_on_unsupported:
                raise
            report.skipped_reason = e.message
            return _PartOutcome(report, data, rewritten=False, warning=str(e))

        report.removed = rewrite.removed
        report.changed = rewrite.changed
        rewritten = rewrite.data is not data
        return _PartOutcome(report, rewrite.data, rewritten=rewritten)

    def _emit_part(
        self,
        writer: ArchiveWriter,
        info: zipfile.ZipInfo,
        record: LocalRecord,
        outcome: _PartOutcome,
        summary: RunSummary,
    ) -> None:
        self._transition(RunState.REWRITING)
        summary.parts.append(outcome.report)

        if outcome.warning:
            self.logger.warning(
                "Text-bearing part copied unchanged",
                extra={"entry_name": info.filename, "reason": outcome.warning}
            )
            summary.diagnostics.append(
                DiagnosticEntry(
                    severity=DiagnosticSeverity.WARNING,
                    message=f"Part copied unchanged: {outcome.report.skipped_reason}",
                    component="container_rewriter",
                    entry_name=info.filename,
                    details={"kind": UnsupportedPartError.kind},
                    correlation_id=self.correlation_id,
                )
            )

        if not outcome.rewritten:
            self._write_record(writer, info, record)
            summary.entries_copied += 1
            return

        date_time = None
        if self.config.container.timestamp_policy is TimestampPolicy.REGENERATE:
            date_time = time.localtime(time.time())[:6]
        self._write_record(writer, info, record, outcome.data, date_time)
        summary.entries_rewritten += 1

    def _copy_entry(
        self,
        writer: ArchiveWriter,
        info: zipfile.ZipInfo,
        record: LocalRecord,
        summary: RunSummary,
    ) -> None:
        self._transition(RunState.COPYING)
        self._write_record(writer, info, record)
        summary.entries_copied += 1

    def _role_of(self, info: zipfile.ZipInfo) -> PartRole:
        if info.is_dir():
            return PartRole.PASS_THROUGH
        return classify(info.filename)

    def _write_entries(
        self,
        zin: zipfile.ZipFile,
        source: BinaryIO,
        writer: ArchiveWriter,
        infos: List[zipfile.ZipInfo],
        summary: RunSummary,
    ) -> None:
        for index, info in enumerate(infos):
            self._transition(RunState.ITERATING, index)
            role = self._role_of(info)
            record = self._read_record(source, info)
            if role.is_text_bearing:
                outcome = self._rewrite_payload(info, role, self._read_entry(zin, info))
                self._emit_part(writer, info, record, outcome, summary)
            else:
                self._copy_entry(writer, info, record, summary)

    def _write_entries_parallel(
        self,
        zin: zipfile.ZipFile,
        source: BinaryIO,
        writer: ArchiveWriter,
        infos: List[zipfile.ZipInfo],
        summary: RunSummary,
    ) -> None:
        """Rewrite text-bearing parts on a worker pool, write in input order."""
        max_workers = self.config.performance.max_worker_threads
        with ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="docx-cleaner"
        ) as executor:
            futures: Dict[int, Future] = {}
            try:
                for index, info in enumerate(infos):
                    role = self._role_of(info)
                    if role.is_text_bearing:
                        data = self._read_entry(zin, info)
                        futures[index] = executor.submit(self._rewrite_payload, info, role, data)

                self.logger.debug(
                    "Submitted text-bearing parts",
                    extra={"parts": len(futures), "max_workers": max_workers}
                )

                for index, info in enumerate(infos):
                    self._transition(RunState.ITERATING, index)
                    record = self._read_record(source, info)
                    if index in futures:
                        self._emit_part(writer, info, record, futures[index].result(), summary)
                    else:
                        self._copy_entry(writer, info, record, summary)
            except BaseException:
                for future in futures.values():
                    future.cancel()
                raise
