"""Allow-list sanitization of untrusted HTML.

`SafeHTML` wraps a piece of HTML and an allow-list that is built up with
chainable calls:

    SafeHTML(user_html).allow_links().allow_tag(["ul", "li"]).get_html()

Each `get_html()` call parses the original input from scratch, freezes the
current allow-list into a `SanitizationPolicy` and walks the tree:

- text is always kept,
- elements in the remove list disappear together with their contents,
- elements that are not allowed are unwrapped (their children take their
  place),
- allowed elements keep only allowed attributes, and `href` values must use
  an allowed protocol,
- finally a per-tag callback, if registered, sees the fully sanitized
  element.

Only the allow-list survives between calls; the tree never does.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from justhtml.node import Template

from .constants import (
    DEFAULT_ALLOWED_ATTRIBUTES,
    DEFAULT_ALLOWED_PROTOCOLS,
    DEFAULT_ALLOWED_TAGS,
    DEFAULT_REMOVE_TAGS,
)
from .errors import InvalidCallbackError
from .parser import parse_fragment
from .policy import DEFAULT_POLICY, SanitizationPolicy, is_allowed_href
from .serialize import to_html

if TYPE_CHECKING:
    from typing import Any, Protocol

    from justhtml.node import Node
    from justhtml.tokens import ParseError

    from .policy import NodeCallback

    class ReportCallback(Protocol):
        def __call__(self, msg: str, *, node: Any | None = None) -> None: ...


logger = logging.getLogger(__name__)


def _iter_names(values: str | Iterable[str]) -> list[str]:
    if isinstance(values, str):
        return [values.lower()]
    if not isinstance(values, Iterable):
        raise TypeError(f"Expected a name or an iterable of names, got {type(values).__name__}")
    names: list[str] = []
    for value in values:
        if not isinstance(value, str):
            raise TypeError(f"Names must be strings, got {type(value).__name__}")
        names.append(value.lower())
    return names


def _describe(node: Node) -> str:
    if node.name == "#comment":
        return "comment"
    return f"<{node.name}>"


# -----------------
# Tree walk
# -----------------


@dataclass(slots=True)
class _Frame:
    # Node whose live `children` list is being walked.
    container: Node
    # Allowed element to hand to its callback once `container` is exhausted.
    element: Node | None = None
    # Cursor into `container.children`. Re-read after every mutation.
    index: int = 0


def _drop(parent: Node, node: Node, report: ReportCallback | None) -> None:
    parent.remove_child(node)
    msg = f"Dropped {_describe(node)} and its contents"
    logger.debug(msg)
    if report is not None:
        report(msg, node=node)


def _unwrap(parent: Node, node: Node, report: ReportCallback | None) -> None:
    """Replace `node` by its children, in order.

    The children end up at the index `node` occupied, so a cursor that stays
    put lands on the first of them (or on the former next sibling when there
    were none).
    """

    moved: list[Node] = []
    if node.name != "#text" and getattr(node, "children", None):
        moved.extend(node.children)
        node.children = []
    if type(node) is Template and node.template_content is not None:
        tc = node.template_content
        if tc.children:
            moved.extend(tc.children)
            tc.children = []

    for child in moved:
        parent.insert_before(child, node)
    parent.remove_child(node)

    msg = f"Unwrapped {_describe(node)}"
    logger.debug(msg)
    if report is not None:
        report(msg, node=node)


def _sanitize_attributes(node: Node, policy: SanitizationPolicy, report: ReportCallback | None) -> None:
    attrs = getattr(node, "attrs", None)
    if not attrs:
        return

    # Collect first: the dict cannot shrink while it is being iterated.
    remove: list[str] = []
    for name, value in attrs.items():
        key = str(name).lower()
        if key not in policy.allowed_attributes:
            remove.append(name)
        elif key == "href" and not is_allowed_href(value or "", policy.allowed_protocols):
            remove.append(name)

    for name in remove:
        del attrs[name]
        msg = f"Removed attribute {name!r} from <{node.name}>"
        logger.debug(msg)
        if report is not None:
            report(msg, node=node)


def sanitize_tree(root: Node, policy: SanitizationPolicy, *, report: ReportCallback | None = None) -> None:
    """Sanitize the children of `root` in place.

    The walk is depth-first and left-to-right. Children are addressed through
    a cursor into the live child list rather than an iterator, since nodes
    are removed and spliced in while the walk is running. Nodes spliced in
    by an unwrap are visited like any other child.
    """

    allowed_tags = policy.allowed_tags
    remove_tags = policy.remove_tags
    callbacks = policy.tag_callbacks

    stack: list[_Frame] = [_Frame(root)]
    while stack:
        frame = stack[-1]
        children = frame.container.children
        if not children or frame.index >= len(children):
            stack.pop()
            element = frame.element
            if element is None:
                continue

            outer = stack[-1]
            callback = callbacks.get(str(element.name).lower())
            if callback is None:
                outer.index += 1
                continue

            siblings = outer.container.children
            following = siblings[outer.index + 1] if outer.index + 1 < len(siblings) else None
            callback(element)

            # Whatever the callback inserted, moved or wrapped is output as is.
            # Resume after the element if it is still here, else at its former
            # next sibling.
            siblings = outer.container.children or []
            outer.index = len(siblings)
            for i, child in enumerate(siblings):
                if child is element:
                    outer.index = i + 1
                    break
                if child is following:
                    outer.index = i
                    break
            continue

        node = children[frame.index]
        name = node.name
        if name == "#text":
            frame.index += 1
            continue

        tag = str(name).lower()
        if tag in remove_tags:
            _drop(frame.container, node, report)
            continue

        if tag not in allowed_tags:
            _unwrap(frame.container, node, report)
            continue

        _sanitize_attributes(node, policy, report)

        if type(node) is Template and node.template_content is not None:
            stack.append(_Frame(node.template_content, element=node))
            stack.append(_Frame(node))
        else:
            stack.append(_Frame(node, element=node))


def sanitize(
    html: str | None,
    policy: SanitizationPolicy = DEFAULT_POLICY,
    *,
    report: ReportCallback | None = None,
) -> str:
    """Parse, sanitize and serialize `html` with a prebuilt policy."""

    root, _ = parse_fragment(html)
    sanitize_tree(root, policy, report=report)
    return to_html([root])


# -----------------
# Public API
# -----------------


class SafeHTML:
    """Sanitize a piece of HTML against a configurable allow-list.

    Args:
        html: The untrusted input. It is never modified; every `get_html()`
            call starts from it again.
        set_default: Apply `set_default()` right away.
        collect_errors: Keep the parser's repair notices on `errors` after
            each `get_html()` call.
        report: Optional `report(msg, *, node=None)` hook, called for every
            dropped node, unwrapped node and removed attribute.

    Links are not allowed by default. Use `allow_links()` (which allows the
    `a` tag and the `href` attribute) and make sure the needed protocols are
    allowed.
    """

    def __init__(
        self,
        html: str,
        set_default: bool = True,
        *,
        collect_errors: bool = False,
        report: ReportCallback | None = None,
    ) -> None:
        self._html = html
        self.allowed_tags: set[str] = set()
        self.remove_tags: set[str] = set()
        self.allowed_attributes: set[str] = set()
        self.allowed_protocols: set[str] = set()
        self.tag_callbacks: dict[str, NodeCallback] = {}
        self.collect_errors = collect_errors
        self.report = report
        self.errors: list[ParseError] = []

        if set_default:
            self.set_default()

    @property
    def html(self) -> str:
        return self._html

    def allow_tag(self, tag: str | Iterable[str]) -> SafeHTML:
        """Keep these tags. Takes them off the remove list."""
        for name in _iter_names(tag):
            self.remove_tags.discard(name)
            self.allowed_tags.add(name)
        return self

    def remove_tag(self, tag: str | Iterable[str]) -> SafeHTML:
        """Drop these tags including everything inside. Takes them off the allow list."""
        for name in _iter_names(tag):
            self.allowed_tags.discard(name)
            self.remove_tags.add(name)
        return self

    def allow_attribute(self, attribute: str | Iterable[str]) -> SafeHTML:
        self.allowed_attributes.update(_iter_names(attribute))
        return self

    def allow_protocol(self, protocol: str | Iterable[str]) -> SafeHTML:
        self.allowed_protocols.update(_iter_names(protocol))
        return self

    def allow_links(self) -> SafeHTML:
        return self.allow_tag("a").allow_attribute("href")

    def add_callback(self, tag: str, callback: NodeCallback) -> SafeHTML:
        """Call `callback(node)` for every kept `tag` element.

        The node's attributes and children are already sanitized when the
        callback runs, and whatever it changes ends up in the output without
        being sanitized again. The tag still has to be allowed; callbacks
        never run for removed or unwrapped elements. Registering a second
        callback for the same tag replaces the first.
        """

        if not isinstance(tag, str):
            raise TypeError(f"Callback tag must be a string, got {type(tag).__name__}")
        if not callable(callback):
            raise InvalidCallbackError(tag, callback)
        self.tag_callbacks[tag.lower()] = callback
        return self

    def set_default(self) -> SafeHTML:
        """Extend the configuration with a conservative baseline.

        Allows b, i, u, strong, em, p, div, span and abbr; removes script and
        style; allows the id, class, alt, title and name attributes and the
        http, https, ftp and mailto protocols. Nothing configured earlier is
        cleared.
        """

        self.allow_tag(DEFAULT_ALLOWED_TAGS)
        self.remove_tag(DEFAULT_REMOVE_TAGS)
        self.allow_attribute(DEFAULT_ALLOWED_ATTRIBUTES)
        self.allow_protocol(DEFAULT_ALLOWED_PROTOCOLS)
        return self

    def policy(self) -> SanitizationPolicy:
        """Freeze the current configuration."""
        return SanitizationPolicy(
            allowed_tags=self.allowed_tags,
            remove_tags=self.remove_tags,
            allowed_attributes=self.allowed_attributes,
            allowed_protocols=self.allowed_protocols,
            tag_callbacks=self.tag_callbacks,
        )

    def get_html(self) -> str:
        """Return the sanitized HTML. Never raises for malformed markup."""
        policy = self.policy()
        root, errors = parse_fragment(self._html, collect_errors=self.collect_errors)
        if self.collect_errors:
            self.errors = errors

        sanitize_tree(root, policy, report=self.report)
        return to_html([root])

    def __str__(self) -> str:
        return self.get_html()
