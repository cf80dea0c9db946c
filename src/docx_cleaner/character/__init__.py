"""Character layer for DOCX cleaning.

This module provides the denylisted character sets, the JSON character list
loader and the filter that strips those characters from run text.
"""

from .charset import (
    DEFAULT_CHARACTERS,
    CharacterSet,
    default_character_set,
    load_character_set,
    parse_character_list,
    parse_codepoint,
)
from .filter import (
    CharacterFilter,
    FilterResult,
    filter_text,
)

__all__ = [
    "DEFAULT_CHARACTERS",
    "CharacterSet",
    "default_character_set",
    "load_character_set",
    "parse_character_list",
    "parse_codepoint",
    "CharacterFilter",
    "FilterResult",
    "filter_text",
]
