#!/usr/bin/env python3
"""
Quick Start Guide for DOCX Cleaner.

Builds a tiny DOCX in a temporary directory and walks through the three
levels of the API: the one-shot function, the configured cleaner and the
building blocks underneath.
"""

import sys
import tempfile
import zipfile
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from docx_cleaner import (
    CharacterSet,
    CleanerConfig,
    DocxCleaner,
    TimestampPolicy,
    clean_docx,
    rewrite,
)

W_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"

CONTENT_TYPES = (
    '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n'
    '<Types xmlns="http://schemas.openxmlformats.org/package/2006/content-types">'
    '<Default Extension="xml" ContentType="application/xml"/>'
    '<Override PartName="/word/document.xml" ContentType="application/'
    'vnd.openxmlformats-officedocument.wordprocessingml.document.main+xml"/>'
    "</Types>"
)

DOCUMENT = (
    '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n'
    f'<w:document xmlns:w="{W_NS}"><w:body>'
    "<w:p><w:r><w:t>Zero\u200bwidth\u200bspaces</w:t></w:r></w:p>"
    "<w:p><w:r><w:t>soft\u00adhyphen and a word\u2060joiner</w:t></w:r></w:p>"
    "</w:body></w:document>"
)


def build_sample(directory: Path) -> Path:
    """Write a minimal DOCX with a few invisible characters."""
    path = directory / "sample.docx"
    with zipfile.ZipFile(path, "w", zipfile.ZIP_DEFLATED) as archive:
        archive.writestr("[Content_Types].xml", CONTENT_TYPES)
        archive.writestr("word/document.xml", DOCUMENT)
    return path


def level_one(sample: Path) -> None:
    print("\nLevel 1: clean_docx()")
    print("-" * 30)

    result = clean_docx(sample)

    print(f"Success: {result.success}")
    print(f"Characters removed: {result.summary.characters_removed}")
    print(f"Saved as: {result.output_path}")


def level_two(sample: Path, directory: Path) -> None:
    print("\nLevel 2: DocxCleaner")
    print("-" * 30)

    config = CleanerConfig.default().override(
        container__timestamp_policy=TimestampPolicy.REGENERATE,
    )
    cleaner = DocxCleaner(characters=[0x200B], config=config)

    result = cleaner.clean(sample, directory / "only_zwsp.docx")
    for codepoint, count in result.summary.removed_by_codepoint.items():
        print(f"U+{codepoint:04X}: {count}")

    # Second run onto the same output fails without overwrite
    failed = cleaner.clean(sample, directory / "only_zwsp.docx")
    print(f"Second run success: {failed.success} ({failed.error_kind})")

    print(f"Statistics: {cleaner.statistics}")


def level_three() -> None:
    print("\nLevel 3: building blocks")
    print("-" * 30)

    characters = CharacterSet.from_mapping({0x2060: "WORD JOINER"})
    cleaned = rewrite(DOCUMENT.encode("utf-8"), characters)
    print(cleaned.decode("utf-8"))


def main() -> None:
    print("QUICK START - DOCX Cleaner")
    print("=" * 45)

    with tempfile.TemporaryDirectory() as tmp:
        directory = Path(tmp)
        sample = build_sample(directory)
        level_one(sample)
        level_two(sample, directory)
        level_three()


if __name__ == "__main__":
    main()
