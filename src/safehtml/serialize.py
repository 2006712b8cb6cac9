"""HTML serialization for sanitized trees."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from justhtml.node import Node


def to_html(nodes: Iterable[Node]) -> str:
    """Serialize `nodes` in order and concatenate the result.

    Serialization is JustHTML's own, without pretty-printing. No wrapper is
    emitted: passing a fragment root yields exactly the markup of the
    fragment's contents.
    """

    return "".join(node.to_html(pretty=False) for node in nodes)
