"""Classification of container entries into text-bearing parts and pass-through.

The decision is made from the entry name alone, against a static table of
well-known DOCX part paths. Anything the table does not positively recognize
is pass-through.
"""

import re
from enum import Enum
from typing import Pattern, Tuple


class PartRole(Enum):
    """Closed set of roles an entry can play."""

    MAIN_DOCUMENT = "main_document"
    HEADER = "header"
    FOOTER = "footer"
    FOOTNOTES = "footnotes"
    ENDNOTES = "endnotes"
    COMMENTS = "comments"
    PASS_THROUGH = "pass_through"

    @property
    def is_text_bearing(self) -> bool:
        return self is not PartRole.PASS_THROUGH


PART_PATTERNS: Tuple[Tuple[Pattern[str], PartRole], ...] = (
    (re.compile(r"word/document\d*\.xml", re.IGNORECASE), PartRole.MAIN_DOCUMENT),
    (re.compile(r"word/header\d*\.xml", re.IGNORECASE), PartRole.HEADER),
    (re.compile(r"word/footer\d*\.xml", re.IGNORECASE), PartRole.FOOTER),
    (re.compile(r"word/footnotes\.xml", re.IGNORECASE), PartRole.FOOTNOTES),
    (re.compile(r"word/endnotes\.xml", re.IGNORECASE), PartRole.ENDNOTES),
    (re.compile(r"word/comments\.xml", re.IGNORECASE), PartRole.COMMENTS),
)


def normalize_entry_name(entry_name: str) -> str:
    """Use forward slashes and drop a leading slash."""
    return entry_name.replace("\\", "/").lstrip("/")


def classify(entry_name: str) -> PartRole:
    """Return the role of a container entry.

    Examples:
        >>> classify("word/header2.xml")
        <PartRole.HEADER: 'header'>
        >>> classify("word/styles.xml")
        <PartRole.PASS_THROUGH: 'pass_through'>
    """
    normalized = normalize_entry_name(entry_name)
    for pattern, role in PART_PATTERNS:
        if pattern.fullmatch(normalized):
            return role
    return PartRole.PASS_THROUGH


def is_text_bearing(entry_name: str) -> bool:
    return classify(entry_name).is_text_bearing
