"""Command-line interface module for DOCX cleaning.

This module provides the ``docx-cleaner`` command, which cleans one document
and prints removal statistics.
"""

from .main import main

__all__ = ["main"]
