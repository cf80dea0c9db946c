"""Container layer for DOCX cleaning.

This module provides the classification of container entries into
text-bearing parts and pass-through entries, the ``ContainerRewriter``
that produces the cleaned output package, and the record-level
``ArchiveWriter`` it writes through.

Key Components:
    ContainerRewriter: Walks the zip, rewrites text-bearing parts, copies the rest
    ArchiveWriter: Appends raw or rebuilt local records and the central directory
    PartRole: Closed set of roles an entry can play
    classify: Static path-pattern classification of entry names
"""

from .archive import (
    ArchiveWriter,
    LocalRecord,
    clone_zip_info,
    read_local_record,
)
from .parts import (
    PART_PATTERNS,
    PartRole,
    classify,
    is_text_bearing,
    normalize_entry_name,
)
from .rewriter import (
    CONTENT_TYPES_ENTRY,
    ContainerRewriter,
    RunState,
)

__all__ = [
    "ArchiveWriter",
    "LocalRecord",
    "clone_zip_info",
    "read_local_record",
    "PART_PATTERNS",
    "PartRole",
    "classify",
    "is_text_bearing",
    "normalize_entry_name",
    "CONTENT_TYPES_ENTRY",
    "ContainerRewriter",
    "RunState",
]
