"""Document layer for DOCX cleaning.

This module provides the node model over a parsed WordprocessingML part and
the rewriter that filters run text while keeping the rest of the XML intact.
"""

from .nodes import (
    MATH_NAMESPACES,
    RUN_TEXT_ELEMENTS,
    WORDPROCESSING_NAMESPACES,
    ElementNode,
    NodeKind,
    RunNode,
    TextNode,
    iter_run_texts,
    make_node,
)
from .rewriter import (
    PartRewrite,
    TextRunRewriter,
    rewrite,
)

__all__ = [
    "MATH_NAMESPACES",
    "RUN_TEXT_ELEMENTS",
    "WORDPROCESSING_NAMESPACES",
    "ElementNode",
    "NodeKind",
    "RunNode",
    "TextNode",
    "iter_run_texts",
    "make_node",
    "PartRewrite",
    "TextRunRewriter",
    "rewrite",
]
