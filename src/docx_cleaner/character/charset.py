"""Denylisted character sets and the JSON character list loader.

A character list names the code points to strip from run text. The loader
accepts the mapping format used by earlier releases of the tool::

    {"\\u200b": ["ZERO WIDTH SPACE", " "], "U+00AD": ["SOFT HYPHEN"]}

as well as a plain mapping of notation to description, a plain list of
notations, or either of those under a top-level ``"characters"`` key. Extra
items in the list form (such as a replacement character) are ignored, the
cleaner only removes characters.
"""

import json
import re
import unicodedata
from pathlib import Path
from typing import (
    AbstractSet,
    Any,
    Dict,
    Iterable,
    Iterator,
    Mapping,
    Optional,
    Pattern,
    Tuple,
    Union,
)

from docx_cleaner.shared.config import ConfigError

MAX_CODEPOINT = 0x10FFFF

_NOTATION_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(r"^[Uu]\+([0-9A-Fa-f]{1,6})$"),        # U+200B
    re.compile(r"^\\u([0-9A-Fa-f]{4})$"),             # \u200B
    re.compile(r"^\\U([0-9A-Fa-f]{8})$"),             # \U0001F600
    re.compile(r"^\\u\{([0-9A-Fa-f]{1,6})\}$"),       # \u{200B}
    re.compile(r"^0[xX]([0-9A-Fa-f]{1,6})$"),         # 0x200B
)

DEFAULT_CHARACTERS: Mapping[int, str] = {
    0x00AD: "SOFT HYPHEN",
    0x034F: "COMBINING GRAPHEME JOINER",
    0x061C: "ARABIC LETTER MARK",
    0x115F: "HANGUL CHOSEONG FILLER",
    0x1160: "HANGUL JUNGSEONG FILLER",
    0x17B4: "KHMER VOWEL INHERENT AQ",
    0x17B5: "KHMER VOWEL INHERENT AA",
    0x180E: "MONGOLIAN VOWEL SEPARATOR",
    0x200B: "ZERO WIDTH SPACE",
    0x200C: "ZERO WIDTH NON-JOINER",
    0x200D: "ZERO WIDTH JOINER",
    0x200E: "LEFT-TO-RIGHT MARK",
    0x200F: "RIGHT-TO-LEFT MARK",
    0x202A: "LEFT-TO-RIGHT EMBEDDING",
    0x202B: "RIGHT-TO-LEFT EMBEDDING",
    0x202C: "POP DIRECTIONAL FORMATTING",
    0x202D: "LEFT-TO-RIGHT OVERRIDE",
    0x202E: "RIGHT-TO-LEFT OVERRIDE",
    0x2060: "WORD JOINER",
    0x2061: "FUNCTION APPLICATION",
    0x2062: "INVISIBLE TIMES",
    0x2063: "INVISIBLE SEPARATOR",
    0x2064: "INVISIBLE PLUS",
    0x2066: "LEFT-TO-RIGHT ISOLATE",
    0x2067: "RIGHT-TO-LEFT ISOLATE",
    0x2068: "FIRST STRONG ISOLATE",
    0x2069: "POP DIRECTIONAL ISOLATE",
    0x3164: "HANGUL FILLER",
    0xFEFF: "ZERO WIDTH NO-BREAK SPACE",
    0xFFA0: "HALFWIDTH HANGUL FILLER",
}


class CharacterSet(AbstractSet[int]):
    """Immutable set of denylisted code points with optional descriptions.

    Behaves like a ``frozenset`` of ints; single-character strings are also
    accepted for membership tests.
    """

    __slots__ = ("_codepoints", "_descriptions")

    def __init__(
        self,
        codepoints: Iterable[int] = (),
        descriptions: Optional[Mapping[int, str]] = None,
    ) -> None:
        self._codepoints = frozenset(codepoints)
        self._descriptions: Dict[int, str] = {
            codepoint: description
            for codepoint, description in (descriptions or {}).items()
            if codepoint in self._codepoints
        }

    @classmethod
    def from_mapping(cls, mapping: Mapping[int, str]) -> "CharacterSet":
        return cls(mapping.keys(), mapping)

    def __contains__(self, item: object) -> bool:
        if isinstance(item, str) and len(item) == 1:
            item = ord(item)
        return item in self._codepoints

    def __iter__(self) -> Iterator[int]:
        return iter(sorted(self._codepoints))

    def __len__(self) -> int:
        return len(self._codepoints)

    def __hash__(self) -> int:
        return hash(self._codepoints)

    def __repr__(self) -> str:
        shown = ", ".join(f"U+{codepoint:04X}" for codepoint in list(self)[:8])
        more = ", ..." if len(self) > 8 else ""
        return f"CharacterSet({{{shown}{more}}})"

    @property
    def codepoints(self) -> frozenset:
        return self._codepoints

    def describe(self, codepoint: int) -> str:
        """Human-readable name for ``codepoint``, falling back to the Unicode name."""
        if codepoint in self._descriptions:
            return self._descriptions[codepoint]
        return unicodedata.name(chr(codepoint), "UNKNOWN")


def default_character_set() -> CharacterSet:
    """Built-in list of invisible and formatting characters."""
    return CharacterSet.from_mapping(DEFAULT_CHARACTERS)


def parse_codepoint(notation: Union[str, int]) -> int:
    """Resolve one character notation to a code point.

    Accepts a single literal character, ``U+XXXX``, ``\\uXXXX``,
    ``\\UXXXXXXXX``, ``\\u{X..}``, ``0xXXXX`` or an integer.

    Raises:
        ConfigError: If the notation is not recognized or out of range
    """
    if isinstance(notation, bool):
        raise ConfigError(f"Invalid character notation: {notation!r}")

    if isinstance(notation, int):
        codepoint = notation
    elif isinstance(notation, str):
        if len(notation) == 1:
            return ord(notation)
        for pattern in _NOTATION_PATTERNS:
            match = pattern.match(notation.strip())
            if match:
                codepoint = int(match.group(1), 16)
                break
        else:
            raise ConfigError(f"Invalid character notation: {notation!r}")
    else:
        raise ConfigError(f"Invalid character notation: {notation!r}")

    if not 0 <= codepoint <= MAX_CODEPOINT:
        raise ConfigError(f"Code point out of range: {notation!r}")
    return codepoint


def _description_from(value: Any, notation: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value or None
    if isinstance(value, list):
        if not value:
            return None
        if not isinstance(value[0], str):
            raise ConfigError(f"Description for {notation!r} must be a string")
        return value[0] or None
    raise ConfigError(f"Unsupported value for {notation!r}: {value!r}")


def parse_character_list(data: Any) -> CharacterSet:
    """Build a CharacterSet from decoded character list JSON."""
    if isinstance(data, dict) and set(data) == {"characters"}:
        data = data["characters"]

    descriptions: Dict[int, str] = {}
    codepoints = set()

    if isinstance(data, dict):
        for notation, value in data.items():
            codepoint = parse_codepoint(notation)
            codepoints.add(codepoint)
            description = _description_from(value, notation)
            if description:
                descriptions[codepoint] = description
    elif isinstance(data, list):
        for item in data:
            if isinstance(item, dict):
                if "codepoint" not in item:
                    raise ConfigError(f"Character entry without 'codepoint': {item!r}")
                codepoint = parse_codepoint(item["codepoint"])
                description = _description_from(item.get("description"), item["codepoint"])
                if description:
                    descriptions[codepoint] = description
            else:
                codepoint = parse_codepoint(item)
            codepoints.add(codepoint)
    else:
        raise ConfigError(
            f"Character list must be a JSON object or array, got {type(data).__name__}"
        )

    return CharacterSet(codepoints, descriptions)


def load_character_set(path: Union[str, Path]) -> CharacterSet:
    """Load a character list JSON file.

    Raises:
        ConfigError: If the file cannot be read or holds an invalid list
    """
    path = Path(path)
    try:
        raw = path.read_text(encoding="utf-8-sig")
    except OSError as e:
        raise ConfigError(f"Cannot read character list {path}: {e}") from e

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in character list {path}: {e}") from e

    return parse_character_list(data)
