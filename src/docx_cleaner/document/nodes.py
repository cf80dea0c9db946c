"""Node variants over a parsed WordprocessingML tree.

Traversal hands out three kinds of nodes. ``ElementNode`` is any structural
element; ``RunNode`` is an element recognized as a run; ``TextNode`` wraps a
run-text element and is the only node whose value can be replaced. Text nodes
are produced exclusively by ``RunNode.texts()``, so text outside runs
(field codes, properties, bookmarks) is never reachable for mutation.
"""

from dataclasses import dataclass
from enum import Enum, auto
from types import MappingProxyType
from typing import ClassVar, FrozenSet, Iterator, List, Mapping

from lxml import etree

from docx_cleaner.shared.errors import UnsupportedPartError

WORDPROCESSING_NAMESPACES: FrozenSet[str] = frozenset({
    "http://schemas.openxmlformats.org/wordprocessingml/2006/main",
    "http://purl.oclc.org/ooxml/wordprocessingml/main",
})

MATH_NAMESPACES: FrozenSet[str] = frozenset({
    "http://schemas.openxmlformats.org/officeDocument/2006/math",
    "http://purl.oclc.org/ooxml/officeDocument/math",
})


def _clark(namespace: str, local_name: str) -> str:
    return f"{{{namespace}}}{local_name}"


def _build_run_table() -> Mapping[str, FrozenSet[str]]:
    table = {}
    for ns in WORDPROCESSING_NAMESPACES:
        table[_clark(ns, "r")] = frozenset({_clark(ns, "t"), _clark(ns, "delText")})
    for ns in MATH_NAMESPACES:
        table[_clark(ns, "r")] = frozenset({_clark(ns, "t")})
    return MappingProxyType(table)


# Run element tag -> tags of its text-bearing children
RUN_TEXT_ELEMENTS: Mapping[str, FrozenSet[str]] = _build_run_table()


class NodeKind(Enum):
    ELEMENT = auto()
    RUN = auto()
    TEXT = auto()


@dataclass(frozen=True)
class TextNode:
    """A run-text element whose character content may be replaced."""

    element: etree._Element
    kind: ClassVar[NodeKind] = NodeKind.TEXT

    @property
    def value(self) -> str:
        return self.element.text or ""

    def replace(self, value: str) -> None:
        """Replace the text in place; an empty value leaves an empty element."""
        self.element.text = value or None


@dataclass(frozen=True)
class ElementNode:
    """A structural element, traversed but never mutated."""

    element: etree._Element
    kind: ClassVar[NodeKind] = NodeKind.ELEMENT

    def children(self) -> Iterator["ElementNode"]:
        for child in self.element.iterchildren(tag=etree.Element):
            yield make_node(child)

    def texts(self) -> Iterator[TextNode]:
        return iter(())


@dataclass(frozen=True)
class RunNode(ElementNode):
    """A run: its text children are exposed as TextNodes, the rest as elements."""

    kind: ClassVar[NodeKind] = NodeKind.RUN

    @property
    def text_tags(self) -> FrozenSet[str]:
        return RUN_TEXT_ELEMENTS[self.element.tag]

    def children(self) -> Iterator[ElementNode]:
        text_tags = self.text_tags
        for child in self.element.iterchildren(tag=etree.Element):
            if child.tag not in text_tags:
                yield make_node(child)

    def texts(self) -> Iterator[TextNode]:
        text_tags = self.text_tags
        for child in self.element.iterchildren(tag=etree.Element):
            if child.tag not in text_tags:
                continue
            if len(child):
                # Only leaf text elements are rewritten
                raise UnsupportedPartError(
                    f"Run text element {etree.QName(child).localname!r} "
                    f"has nested content (line {child.sourceline})"
                )
            yield TextNode(child)


def make_node(element: etree._Element) -> ElementNode:
    if element.tag in RUN_TEXT_ELEMENTS:
        return RunNode(element)
    return ElementNode(element)


def iter_run_texts(root: etree._Element) -> Iterator[TextNode]:
    """Yield every run-text node beneath ``root`` in document order."""
    stack: List[ElementNode] = [make_node(root)]
    while stack:
        node = stack.pop()
        yield from node.texts()
        stack.extend(reversed(list(node.children())))
