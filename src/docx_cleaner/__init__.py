"""DOCX Cleaner.

Removes invisible and unwanted Unicode characters from the run text of DOCX
documents while leaving every other part of the package untouched.

Progressive API Disclosure:
- Level 1: Simple function - clean_docx()
- Level 2: Configured cleaner - DocxCleaner class
- Level 3: Building blocks - ContainerRewriter, TextRunRewriter, CharacterFilter
"""

__version__ = "0.1.0"
__author__ = "DOCX Cleaner Team"

from .api import DocxCleaner, clean_docx, default_output_path
from .character import (
    CharacterFilter,
    CharacterSet,
    default_character_set,
    filter_text,
    load_character_set,
)
from .document import TextRunRewriter, rewrite
from .package import ContainerRewriter, PartRole, classify, is_text_bearing
from .shared.config import CleanerConfig, TimestampPolicy
from .shared.errors import (
    CleanerError,
    ContainerIOError,
    InvalidContainerError,
    MalformedXmlError,
    OutputExistsError,
    UnsupportedPartError,
)
from .shared.result import CleanResult, RunSummary

__all__ = [
    # Version and metadata
    "__author__",
    "__version__",

    # Level 1 and 2
    "clean_docx",
    "DocxCleaner",
    "default_output_path",

    # Building blocks
    "CharacterFilter",
    "CharacterSet",
    "default_character_set",
    "filter_text",
    "load_character_set",
    "TextRunRewriter",
    "rewrite",
    "ContainerRewriter",
    "PartRole",
    "classify",
    "is_text_bearing",

    # Configuration and results
    "CleanerConfig",
    "TimestampPolicy",
    "CleanResult",
    "RunSummary",

    # Errors
    "CleanerError",
    "ContainerIOError",
    "InvalidContainerError",
    "MalformedXmlError",
    "OutputExistsError",
    "UnsupportedPartError",
]
