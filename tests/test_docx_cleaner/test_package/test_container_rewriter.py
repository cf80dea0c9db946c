"""Tests for container rewriting of whole DOCX packages."""

import os
import stat
import struct
import zipfile
import zlib

import pytest
from lxml import etree

from docx_cleaner.package.rewriter import ContainerRewriter, RunState
from docx_cleaner.shared.config import CleanerConfig, TimestampPolicy
from docx_cleaner.shared.errors import (
    ContainerIOError,
    InvalidContainerError,
    MalformedXmlError,
    OutputExistsError,
    UnsupportedPartError,
)
from docx_cleaner.shared.result import DiagnosticSeverity

W_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"
ZWSP = 0x200B
ZWSP_UTF8 = "\u200b".encode("utf-8")

MALFORMED_PART = (
    f'<?xml version="1.0"?>\n<w:hdr xmlns:w="{W_NS}"><w:p><w:r><w:t>x</w:p></w:hdr>'
).encode("utf-8")


def _header(text: str) -> bytes:
    return (
        f'<?xml version="1.0"?>\n<w:hdr xmlns:w="{W_NS}"><w:p><w:r><w:t>{text}</w:t>'
        "</w:r></w:p></w:hdr>"
    ).encode("utf-8")


def _run_texts(xml_bytes: bytes):
    return [element.text for element in etree.fromstring(xml_bytes).iter(f"{{{W_NS}}}t")]


def _metadata(path):
    with zipfile.ZipFile(path) as zf:
        return [
            (info.filename, info.date_time, info.compress_type, info.external_attr, info.comment)
            for info in zf.infolist()
        ]


def _raw_records(path):
    """Raw local record bytes and central metadata of every entry."""
    data = path.read_bytes()
    records = {}
    with zipfile.ZipFile(path) as zf:
        for info in zf.infolist():
            offset = info.header_offset
            name_length, extra_length = struct.unpack("<HH", data[offset + 26:offset + 30])
            start = offset + 30 + name_length + extra_length
            records[info.filename] = (
                data[offset:start + info.compress_size],
                info.compress_size,
                info.CRC,
                info.flag_bits,
            )
    return records


def _sample_media():
    return b"".join(b"row %d of the sample table, value %d\n" % (i, i * i % 97) for i in range(3000))


class _UnseekableStream:
    """Write-only stream; zipfile falls back to data descriptors for it."""

    def __init__(self):
        self.chunks = []

    def write(self, data):
        self.chunks.append(bytes(data))
        return len(data)

    def flush(self):
        pass

    def getvalue(self):
        return b"".join(self.chunks)


def _mark_encrypted(path, entry_name):
    """Set the encryption flag of one entry in the central directory."""
    data = bytearray(path.read_bytes())
    offset = data.find(b"PK\x01\x02")
    while offset != -1:
        (name_length,) = struct.unpack("<H", data[offset + 28:offset + 30])
        name = bytes(data[offset + 46:offset + 46 + name_length]).decode("utf-8")
        if name == entry_name:
            data[offset + 8] |= 0x1
        offset = data.find(b"PK\x01\x02", offset + 4)
    path.write_bytes(bytes(data))


class TestScenarios:
    """End-to-end behavior on small containers."""

    def test_removes_character_from_run_text(self, make_docx, docx_entries, tmp_path):
        """Test that Hello<ZWSP>World becomes HelloWorld."""
        source = make_docx()
        output = tmp_path / "output.docx"

        summary = ContainerRewriter({ZWSP}).process(source, output)

        entries = docx_entries(output)
        assert _run_texts(entries["word/document.xml"]) == ["HelloWorld"]
        assert summary.characters_removed == 1
        assert summary.removed_by_codepoint == {ZWSP: 1}

    def test_empty_denylist_is_identity(self, make_docx, docx_entries, tmp_path):
        """Test that every entry is pass-through-equal with an empty denylist."""
        source = make_docx()
        output = tmp_path / "output.docx"

        summary = ContainerRewriter(set()).process(source, output)

        assert docx_entries(output) == docx_entries(source)
        assert _metadata(output) == _metadata(source)
        assert output.read_bytes() == source.read_bytes()
        assert summary.characters_removed == 0
        assert summary.entries_rewritten == 0

    def test_empty_denylist_keeps_file_bytes(self, make_docx, tmp_path):
        """Test a byte-identical package for a source deflated at a non-default level."""
        media = _sample_media()
        source = make_docx(extra={"word/media/table.bin": media}, compresslevel=1)
        output = tmp_path / "output.docx"
        with zipfile.ZipFile(source) as zf:
            level_one_size = zf.getinfo("word/media/table.bin").compress_size
        assert level_one_size != len(zlib.compress(media)) - 6

        ContainerRewriter(set()).process(source, output)

        assert output.read_bytes() == source.read_bytes()

    def test_empty_denylist_keeps_data_descriptors(self, document_xml, tmp_path):
        """Test that entries written with data descriptors are copied exactly."""
        stream = _UnseekableStream()
        with zipfile.ZipFile(stream, "w", zipfile.ZIP_DEFLATED) as zf:
            zf.writestr("[Content_Types].xml", b"<Types/>")
            zf.writestr("word/document.xml", document_xml("Hello\u200bWorld"))
            zf.writestr("word/media/table.bin", _sample_media())
        source = tmp_path / "streamed.docx"
        source.write_bytes(stream.getvalue())
        output = tmp_path / "output.docx"

        ContainerRewriter(set()).process(source, output)

        with zipfile.ZipFile(output) as zf:
            assert all(info.flag_bits & 0x08 for info in zf.infolist())
            assert zf.testzip() is None
        assert output.read_bytes() == source.read_bytes()

    def test_fully_denylisted_run_text(self, make_docx, document_xml, docx_entries, tmp_path):
        """Test that an all-denylisted text node is emptied but retained."""
        source = make_docx(document=document_xml("\u200b\u200b"))
        output = tmp_path / "output.docx"

        ContainerRewriter({ZWSP}).process(source, output)

        root = etree.fromstring(docx_entries(output)["word/document.xml"])
        text_elements = list(root.iter(f"{{{W_NS}}}t"))
        assert len(text_elements) == 1
        assert text_elements[0].text is None

    def test_malformed_part_aborts_run(self, make_docx, tmp_path):
        """Test that malformed XML in one of three parts leaves no output."""
        source = make_docx(extra={
            "word/header1.xml": MALFORMED_PART,
            "word/footer1.xml": _header("footer\u200b"),
        })
        output = tmp_path / "output.docx"
        rewriter = ContainerRewriter({ZWSP})

        with pytest.raises(MalformedXmlError) as exc_info:
            rewriter.process(source, output)

        assert exc_info.value.entry_name == "word/header1.xml"
        assert not output.exists()
        assert sorted(p.name for p in tmp_path.iterdir()) == ["input.docx"]
        assert rewriter.state is RunState.ABORTED


class TestPassThrough:
    """Test that entries outside run text are copied exactly."""

    def test_non_text_parts_unchanged(self, make_docx, docx_entries, tmp_path):
        """Test that styles keep their denylisted characters and media is untouched."""
        media = bytes(range(256)) * 4
        source = make_docx(extra={"word/media/image1.png": media})
        output = tmp_path / "output.docx"

        ContainerRewriter({ZWSP}).process(source, output)

        before = docx_entries(source)
        after = docx_entries(output)
        assert ZWSP_UTF8 in after["word/styles.xml"]
        for name in before:
            if name != "word/document.xml":
                assert after[name] == before[name], name
        assert after["word/media/image1.png"] == media

    def test_raw_records_copied(self, make_docx, tmp_path):
        """Test that copied entries keep their compressed stream, CRC and flags."""
        source = make_docx(
            extra={
                "word/media/table.bin": _sample_media(),
                "word/header1.xml": _header("nothing to remove"),
            },
            compresslevel=1,
        )
        output = tmp_path / "output.docx"

        summary = ContainerRewriter({ZWSP}).process(source, output)

        before = _raw_records(source)
        after = _raw_records(output)
        assert list(after) == list(before)
        assert after["word/document.xml"] != before["word/document.xml"]
        for name in before:
            if name != "word/document.xml":
                assert after[name] == before[name], name
        assert summary.entries_rewritten == 1

    def test_unwritable_compression_copied(self, make_docx, docx_entries, tmp_path):
        """Test that a bzip2 entry outside run text is copied without recompression."""
        pytest.importorskip("bz2")
        source = make_docx()
        with zipfile.ZipFile(source, "a") as zf:
            zf.writestr("word/media/table.bin", _sample_media(), zipfile.ZIP_BZIP2)
        output = tmp_path / "output.docx"

        ContainerRewriter({ZWSP}).process(source, output)

        assert _raw_records(output)["word/media/table.bin"] == _raw_records(source)["word/media/table.bin"]
        assert docx_entries(output)["word/media/table.bin"] == _sample_media()

    def test_order_and_metadata_preserved(self, make_docx, tmp_path):
        """Test entry order, timestamps, compression and attributes."""
        source = make_docx(extra={"word/header1.xml": _header("head\u200b")})
        output = tmp_path / "output.docx"

        ContainerRewriter({ZWSP}).process(source, output)

        assert _metadata(output) == _metadata(source)

    def test_stored_entries_stay_stored(self, make_docx, tmp_path):
        """Test that the compression method of every entry is kept."""
        source = make_docx(compression=zipfile.ZIP_STORED)
        output = tmp_path / "output.docx"

        ContainerRewriter({ZWSP}).process(source, output)

        with zipfile.ZipFile(output) as zf:
            assert {info.compress_type for info in zf.infolist()} == {zipfile.ZIP_STORED}

    def test_archive_comment_preserved(self, make_docx, tmp_path):
        """Test that the zip comment is carried over."""
        source = make_docx(comment=b"generated by tests")
        output = tmp_path / "output.docx"

        ContainerRewriter({ZWSP}).process(source, output)

        with zipfile.ZipFile(output) as zf:
            assert zf.comment == b"generated by tests"

    @pytest.mark.skipif(os.name == "nt", reason="POSIX permissions")
    def test_file_mode_copied(self, make_docx, tmp_path):
        """Test that the output gets the input's permission bits."""
        source = make_docx()
        os.chmod(source, 0o640)
        output = tmp_path / "output.docx"

        ContainerRewriter({ZWSP}).process(source, output)

        assert stat.S_IMODE(output.stat().st_mode) == 0o640

    def test_input_never_modified(self, make_docx, tmp_path):
        """Test that the source file is only read."""
        source = make_docx()
        original = source.read_bytes()

        ContainerRewriter({ZWSP}).process(source, tmp_path / "output.docx")

        assert source.read_bytes() == original


class TestSummary:
    """Test the run summary and state."""

    def test_counts(self, make_docx, tmp_path):
        """Test entry and part counters."""
        source = make_docx(extra={"word/footer1.xml": _header("no marks")})
        rewriter = ContainerRewriter({ZWSP})

        summary = rewriter.process(source, tmp_path / "output.docx")

        assert summary.entries_total == 5
        assert summary.entries_rewritten == 1
        assert summary.entries_copied == 4
        assert summary.parts_processed == 2
        assert [part.role for part in summary.parts] == ["main_document", "footer"]
        assert [part.changed for part in summary.parts] == [True, False]
        assert summary.processing_time_ms >= 0
        assert rewriter.state is RunState.DONE

    def test_to_dict(self, make_docx, tmp_path):
        """Test the JSON-ready summary."""
        source = make_docx()
        output = tmp_path / "output.docx"

        data = ContainerRewriter({ZWSP}, correlation_id="run-1").process(source, output).to_dict()

        assert data["removed_by_codepoint"] == {"U+200B": 1}
        assert data["output_path"] == str(output)
        assert data["correlation_id"] == "run-1"
        assert data["parts"][0]["entry_name"] == "word/document.xml"


class TestOutputPolicy:
    """Test input and output path handling."""

    def test_existing_output_refused(self, make_docx, tmp_path):
        """Test that an existing output is not overwritten by default."""
        source = make_docx()
        output = tmp_path / "output.docx"
        output.write_bytes(b"keep me")

        with pytest.raises(OutputExistsError) as exc_info:
            ContainerRewriter({ZWSP}).process(source, output)

        assert exc_info.value.kind == "OutputExists"
        assert output.read_bytes() == b"keep me"

    def test_existing_output_overwritten(self, make_docx, docx_entries, tmp_path):
        """Test that overwrite=True replaces the output."""
        source = make_docx()
        output = tmp_path / "output.docx"
        output.write_bytes(b"old")

        ContainerRewriter({ZWSP}).process(source, output, overwrite=True)

        assert _run_texts(docx_entries(output)["word/document.xml"]) == ["HelloWorld"]

    def test_failed_overwrite_keeps_existing_output(self, make_docx, tmp_path):
        """Test that an aborted run with overwrite=True leaves the old output alone."""
        source = make_docx(extra={"word/header1.xml": MALFORMED_PART})
        output = tmp_path / "output.docx"
        output.write_bytes(b"old")

        with pytest.raises(MalformedXmlError):
            ContainerRewriter({ZWSP}).process(source, output, overwrite=True)

        assert output.read_bytes() == b"old"
        assert sorted(p.name for p in tmp_path.iterdir()) == ["input.docx", "output.docx"]

    def test_output_equal_to_input_refused(self, make_docx):
        """Test that the input can never be the output."""
        source = make_docx()
        original = source.read_bytes()

        with pytest.raises(ContainerIOError, match="refers to the input"):
            ContainerRewriter({ZWSP}).process(source, source, overwrite=True)

        assert source.read_bytes() == original

    def test_missing_input(self, tmp_path):
        """Test that a missing input raises ContainerIOError."""
        with pytest.raises(ContainerIOError, match="does not exist"):
            ContainerRewriter({ZWSP}).process(tmp_path / "missing.docx", tmp_path / "out.docx")

    def test_not_a_zip(self, tmp_path):
        """Test that a non-zip input is an invalid container."""
        source = tmp_path / "plain.docx"
        source.write_text("not a zip", encoding="utf-8")
        output = tmp_path / "out.docx"

        with pytest.raises(InvalidContainerError):
            ContainerRewriter({ZWSP}).process(source, output)

        assert not output.exists()

    def test_missing_content_types(self, make_docx, document_xml, tmp_path):
        """Test that a zip without [Content_Types].xml is rejected."""
        source = make_docx(entries={"word/document.xml": document_xml("x")})

        with pytest.raises(InvalidContainerError, match="Content_Types"):
            ContainerRewriter({ZWSP}).process(source, tmp_path / "out.docx")

    def test_content_types_check_disabled(self, make_docx, document_xml, docx_entries, tmp_path):
        """Test that the content types requirement can be turned off."""
        source = make_docx(entries={"word/document.xml": document_xml("a\u200bb")})
        config = CleanerConfig().override(container__require_content_types=False)
        output = tmp_path / "out.docx"

        ContainerRewriter({ZWSP}, config).process(source, output)

        assert _run_texts(docx_entries(output)["word/document.xml"]) == ["ab"]


class TestContainerGuards:
    """Test the limits applied before decompression."""

    def test_entry_size_limit(self, make_docx, tmp_path):
        """Test that oversized entries abort the run."""
        config = CleanerConfig().override(container__max_entry_size_bytes=100)
        output = tmp_path / "out.docx"

        with pytest.raises(InvalidContainerError) as exc_info:
            ContainerRewriter({ZWSP}, config).process(make_docx(), output)

        assert exc_info.value.entry_name == "[Content_Types].xml"
        assert not output.exists()

    def test_compression_ratio_limit(self, make_docx, tmp_path):
        """Test that highly compressed entries are rejected."""
        source = make_docx(extra={"word/media/zeros.bin": b"\0" * (2 * 1024 * 1024)})

        with pytest.raises(InvalidContainerError, match="Compression ratio") as exc_info:
            ContainerRewriter({ZWSP}).process(source, tmp_path / "out.docx")

        assert exc_info.value.entry_name == "word/media/zeros.bin"

    def test_compression_ratio_limit_disabled(self, make_docx, tmp_path):
        """Test that the ratio check can be turned off."""
        source = make_docx(extra={"word/media/zeros.bin": b"\0" * (2 * 1024 * 1024)})
        config = CleanerConfig().override(container__max_compression_ratio=None)

        summary = ContainerRewriter({ZWSP}, config).process(source, tmp_path / "out.docx")

        assert summary.entries_total == 5

    def test_encrypted_entry(self, make_docx, tmp_path):
        """Test that encrypted entries are rejected."""
        source = make_docx()
        _mark_encrypted(source, "word/styles.xml")

        with pytest.raises(InvalidContainerError, match="encrypted") as exc_info:
            ContainerRewriter({ZWSP}).process(source, tmp_path / "out.docx")

        assert exc_info.value.entry_name == "word/styles.xml"

    def test_text_part_compression_method(self, make_docx, tmp_path):
        """Test that a text-bearing part must be stored or deflated."""
        pytest.importorskip("bz2")
        source = make_docx(compression=zipfile.ZIP_BZIP2)

        with pytest.raises(InvalidContainerError, match="compression method") as exc_info:
            ContainerRewriter({ZWSP}).process(source, tmp_path / "out.docx")

        assert exc_info.value.entry_name == "word/document.xml"
        assert not (tmp_path / "out.docx").exists()


class TestUnsupportedParts:
    """Test recovery from parts the rewriter cannot traverse."""

    FOREIGN_HEADER = b'<?xml version="1.0"?>\n<hdr><p>text\xe2\x80\x8b</p></hdr>'

    def test_copied_with_warning(self, make_docx, docx_entries, tmp_path):
        """Test that an unsupported part is copied unchanged with a warning."""
        source = make_docx(extra={"word/header1.xml": self.FOREIGN_HEADER})
        output = tmp_path / "out.docx"

        summary = ContainerRewriter({ZWSP}).process(source, output)

        assert docx_entries(output)["word/header1.xml"] == self.FOREIGN_HEADER
        assert summary.parts_skipped == 1
        assert summary.parts_processed == 1
        assert len(summary.warnings) == 1
        warning = summary.warnings[0]
        assert warning.severity is DiagnosticSeverity.WARNING
        assert warning.entry_name == "word/header1.xml"
        assert warning.details == {"kind": "UnsupportedPart"}

    def test_strict_mode_aborts(self, make_docx, tmp_path):
        """Test that fail_on_unsupported escalates to an abort."""
        source = make_docx(extra={"word/header1.xml": self.FOREIGN_HEADER})
        output = tmp_path / "out.docx"

        with pytest.raises(UnsupportedPartError):
            ContainerRewriter({ZWSP}, CleanerConfig.strict()).process(source, output)

        assert not output.exists()


class TestTimestamps:
    """Test the timestamp policy for rewritten entries."""

    def _date_times(self, path):
        with zipfile.ZipFile(path) as zf:
            return {info.filename: info.date_time for info in zf.infolist()}

    def test_preserved_by_default(self, make_docx, tmp_path):
        """Test that rewritten entries keep their timestamps."""
        source = make_docx()
        output = tmp_path / "out.docx"

        ContainerRewriter({ZWSP}).process(source, output)

        assert self._date_times(output) == self._date_times(source)

    def test_regenerated_for_rewritten_entries(self, make_docx, tmp_path):
        """Test that REGENERATE only restamps entries that changed."""
        source = make_docx()
        output = tmp_path / "out.docx"
        config = CleanerConfig().override(
            container__timestamp_policy=TimestampPolicy.REGENERATE
        )

        ContainerRewriter({ZWSP}, config).process(source, output)

        before = self._date_times(source)
        after = self._date_times(output)
        assert after["word/document.xml"] != before["word/document.xml"]
        assert after["word/styles.xml"] == before["word/styles.xml"]
        assert after["[Content_Types].xml"] == before["[Content_Types].xml"]


class TestParallelProcessing:
    """Test rewriting text-bearing parts on a worker pool."""

    def _source(self, make_docx):
        extra = {}
        for index in range(1, 6):
            extra[f"word/header{index}.xml"] = _header(f"header {index}\u200b")
            extra[f"word/footer{index}.xml"] = _header(f"\u200bfooter {index}\u200b")
        return make_docx(extra=extra)

    def test_matches_sequential_output(self, make_docx, docx_entries, tmp_path):
        """Test that parallel and sequential runs produce the same package."""
        source = self._source(make_docx)
        sequential = tmp_path / "sequential.docx"
        parallel = tmp_path / "parallel.docx"
        config = CleanerConfig().override(
            performance__enable_parallel_processing=True,
            performance__max_worker_threads=3,
        )

        sequential_summary = ContainerRewriter({ZWSP}).process(source, sequential)
        parallel_summary = ContainerRewriter({ZWSP}, config).process(source, parallel)

        assert docx_entries(parallel) == docx_entries(sequential)
        assert _metadata(parallel) == _metadata(sequential)
        assert parallel.read_bytes() == sequential.read_bytes()
        assert parallel_summary.removed_by_codepoint == sequential_summary.removed_by_codepoint
        assert parallel_summary.characters_removed == 16
        assert [p.entry_name for p in parallel_summary.parts] == [
            p.entry_name for p in sequential_summary.parts
        ]

    def test_failure_aborts_run(self, make_docx, tmp_path):
        """Test that a failing worker aborts the whole run."""
        source = make_docx(extra={
            "word/header1.xml": _header("fine"),
            "word/header2.xml": MALFORMED_PART,
            "word/header3.xml": _header("fine"),
        })
        output = tmp_path / "out.docx"
        config = CleanerConfig.performance_optimized()
        rewriter = ContainerRewriter({ZWSP}, config)

        with pytest.raises(MalformedXmlError) as exc_info:
            rewriter.process(source, output)

        assert exc_info.value.entry_name == "word/header2.xml"
        assert not output.exists()
        assert rewriter.state is RunState.ABORTED
