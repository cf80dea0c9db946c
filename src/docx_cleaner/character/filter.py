"""Character filtering for run text.

Removes denylisted code points from a string and nothing else: no
normalization, no case change, no whitespace collapsing. Filtering is pure
and idempotent, so a filtered string passes through a second time unchanged.
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Collection, Dict, FrozenSet, Optional

FAST_PATH_ASCII_MAX = 0x7F


def filter_text(text: str, denylist: Collection[int]) -> str:
    """Return ``text`` without the code points contained in ``denylist``.

    Args:
        text: Input string, possibly empty
        denylist: Code points to drop

    Returns:
        The remaining code points in their original order

    Examples:
        >>> filter_text("Hello\\u200bWorld", {0x200B})
        'HelloWorld'
        >>> filter_text("abc", set())
        'abc'
    """
    if not text or not denylist:
        return text
    return "".join(char for char in text if ord(char) not in denylist)


@dataclass(frozen=True)
class FilterResult:
    """Filtered text plus a count of removed characters per code point."""

    text: str
    removed: Counter = field(default_factory=Counter)

    @property
    def removed_count(self) -> int:
        return sum(self.removed.values())

    @property
    def changed(self) -> bool:
        return bool(self.removed)


class CharacterFilter:
    """Reusable filter bound to one denylist.

    The translation table is built once, so a single instance can be shared
    by every part of a run (and by worker threads, it is never mutated).
    """

    def __init__(self, denylist: Collection[int]) -> None:
        self.denylist: FrozenSet[int] = frozenset(int(codepoint) for codepoint in denylist)
        self._table: Dict[int, Optional[int]] = dict.fromkeys(self.denylist)
        # ASCII text cannot contain a denylisted character unless the
        # denylist itself holds ASCII code points
        self._ascii_fast_path = all(
            codepoint > FAST_PATH_ASCII_MAX for codepoint in self.denylist
        )

    def __contains__(self, codepoint: object) -> bool:
        return codepoint in self.denylist

    def __len__(self) -> int:
        return len(self.denylist)

    def __call__(self, text: str) -> str:
        return self.filter(text).text

    def filter(self, text: str) -> FilterResult:
        """Filter ``text`` and report what was removed."""
        if not text or not self.denylist:
            return FilterResult(text)
        if self._ascii_fast_path and text.isascii():
            return FilterResult(text)

        cleaned = text.translate(self._table)
        if len(cleaned) == len(text):
            return FilterResult(text)

        removed = Counter(
            ord(char) for char in text if ord(char) in self.denylist
        )
        return FilterResult(cleaned, removed)
