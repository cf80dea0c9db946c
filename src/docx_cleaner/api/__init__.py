"""API module for DOCX cleaning.

This module provides the public cleaning API, from the one-call
``clean_docx`` function to the configured, reusable ``DocxCleaner`` class.
"""

from .cleaner import DocxCleaner, clean_docx, default_output_path

__all__ = [
    "DocxCleaner",
    "clean_docx",
    "default_output_path",
]
