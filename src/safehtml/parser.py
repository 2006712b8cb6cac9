"""Lenient HTML parsing.

Input is parsed by JustHTML as an HTML5 fragment, so unclosed tags,
stray end tags and misnested formatting elements are repaired with the same
rules browsers use. The parser's own sanitizer is switched off: deciding what
survives is entirely up to `safehtml.sanitizer`.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from justhtml import JustHTML
from justhtml.context import FragmentContext

from .constants import FRAGMENT_CONTEXT_TAG

if TYPE_CHECKING:
    from justhtml.node import Node
    from justhtml.tokens import ParseError

logger = logging.getLogger(__name__)


def parse_fragment(html: str | None, *, collect_errors: bool = False) -> tuple[Node, list[ParseError]]:
    """Parse `html` and return the fragment root plus any parse errors.

    Parse errors are never raised. They are returned (when `collect_errors`
    is set) and logged at DEBUG level.
    """

    collect = collect_errors or logger.isEnabledFor(logging.DEBUG)
    doc = JustHTML(
        html or "",
        fragment_context=FragmentContext(FRAGMENT_CONTEXT_TAG),
        sanitize=False,
        collect_errors=collect,
    )

    errors: list[ParseError] = list(getattr(doc, "errors", None) or []) if collect else []
    for error in errors:
        logger.debug("Repaired malformed HTML: %s", error)

    return doc.root, errors
