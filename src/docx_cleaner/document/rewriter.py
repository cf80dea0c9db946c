"""Run text rewriting for WordprocessingML parts.

This module parses one text-bearing part with lxml, filters the character
content of every run-text node through a ``CharacterFilter`` and serializes
the tree back to bytes. Elements, attributes, namespace prefixes, comments
and processing instructions pass through untouched.
"""

import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Collection, Optional, Union

from lxml import etree

from docx_cleaner.character.filter import CharacterFilter
from docx_cleaner.document.nodes import WORDPROCESSING_NAMESPACES, iter_run_texts
from docx_cleaner.shared.config import RewriteConfig
from docx_cleaner.shared.errors import MalformedXmlError, UnsupportedPartError
from docx_cleaner.shared.logging import get_logger

# Optional UTF-8 BOM, the XML declaration and the whitespace that follows it
_XML_DECLARATION = re.compile(rb"^(?:\xef\xbb\xbf)?<\?xml\s[^>]*\?>[ \t\r\n]*")

DenylistType = Union[CharacterFilter, Collection[int]]


@dataclass
class PartRewrite:
    """Rewritten payload of one part and what was removed from it."""

    data: bytes
    removed: Counter = field(default_factory=Counter)
    changed: bool = False

    @property
    def characters_removed(self) -> int:
        return sum(self.removed.values())


class TextRunRewriter:
    """Filters run text inside a WordprocessingML part.

    Examples:
        >>> rewriter = TextRunRewriter({0x200B})
        >>> result = rewriter.rewrite_part(xml_bytes, "word/document.xml")
        >>> result.characters_removed
        1
    """

    def __init__(
        self,
        denylist: DenylistType,
        config: Optional[RewriteConfig] = None,
        correlation_id: Optional[str] = None,
    ) -> None:
        self.config = config or RewriteConfig()
        if isinstance(denylist, CharacterFilter):
            self.character_filter = denylist
        else:
            self.character_filter = CharacterFilter(denylist)
        self.logger = get_logger(__name__, correlation_id, "text_run_rewriter")

    def _make_parser(self) -> etree.XMLParser:
        # lxml parsers must not be shared between threads
        return etree.XMLParser(
            resolve_entities=False,
            no_network=True,
            remove_blank_text=False,
            remove_comments=False,
            remove_pis=False,
            strip_cdata=False,
            huge_tree=self.config.huge_tree,
        )

    def parse(self, xml_bytes: bytes, entry_name: Optional[str] = None) -> etree._ElementTree:
        """Parse a part payload, raising MalformedXmlError on bad input."""
        if not xml_bytes.strip():
            raise MalformedXmlError("Part is empty", entry_name)

        try:
            root = etree.fromstring(xml_bytes, self._make_parser())
        except etree.XMLSyntaxError as e:
            line, column = getattr(e, "position", (None, None))
            raise MalformedXmlError(
                f"Malformed XML: {e.msg}", entry_name, line=line, column=column
            ) from e

        return root.getroottree()

    def serialize(self, tree: etree._ElementTree, source: bytes) -> bytes:
        """Serialize ``tree`` reusing the XML declaration found in ``source``."""
        encoding = tree.docinfo.encoding or "UTF-8"
        body = etree.tostring(tree, encoding=encoding, xml_declaration=False)

        declaration = _XML_DECLARATION.match(source)
        if declaration:
            return declaration.group(0) + body
        return body

    def rewrite_part(self, xml_bytes: bytes, entry_name: Optional[str] = None) -> PartRewrite:
        """Filter run text in one part.

        Args:
            xml_bytes: Raw part payload
            entry_name: Entry name used in diagnostics

        Returns:
            PartRewrite with the new payload; when nothing was removed and
            ``skip_unchanged_parts`` is set the original bytes are returned

        Raises:
            MalformedXmlError: The payload is not well-formed XML
            UnsupportedPartError: The part's structure cannot be traversed safely
        """
        tree = self.parse(xml_bytes, entry_name)
        root = tree.getroot()

        namespace = etree.QName(root).namespace
        if namespace not in WORDPROCESSING_NAMESPACES:
            raise UnsupportedPartError(
                f"Root element {root.tag!r} is not WordprocessingML", entry_name
            )

        removed: Counter = Counter()
        text_nodes = 0
        try:
            for text_node in iter_run_texts(root):
                text_nodes += 1
                result = self.character_filter.filter(text_node.value)
                if result.changed:
                    text_node.replace(result.text)
                    removed.update(result.removed)
        except UnsupportedPartError as e:
            if e.entry_name is None:
                e.entry_name = entry_name
            raise

        self.logger.debug(
            "Filtered run text",
            extra={
                "entry_name": entry_name,
                "text_nodes": text_nodes,
                "characters_removed": sum(removed.values()),
            }
        )

        changed = bool(removed)
        if not changed and self.config.skip_unchanged_parts:
            return PartRewrite(xml_bytes, removed, changed=False)
        return PartRewrite(self.serialize(tree, xml_bytes), removed, changed=changed)


def rewrite(xml_bytes: bytes, denylist: DenylistType) -> bytes:
    """Parse, filter and always re-serialize one part.

    Raises:
        MalformedXmlError: The payload is not well-formed XML
        UnsupportedPartError: The part's structure cannot be traversed safely
    """
    rewriter = TextRunRewriter(denylist, RewriteConfig(skip_unchanged_parts=False))
    return rewriter.rewrite_part(xml_bytes).data
