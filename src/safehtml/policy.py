"""Sanitization policy snapshot and link classification.

`SafeHTML` is the mutable, chainable way to build an allow-list. Each call to
`SafeHTML.get_html()` freezes the current configuration into a
`SanitizationPolicy`, which is what the tree walk in `safehtml.sanitizer`
actually reads. Building policies directly is useful when the same allow-list
is applied to many inputs:

    policy = SanitizationPolicy(allowed_tags={"p", "a"}, allowed_attributes={"href"})
    sanitize("<p><a href='/x'>x</a></p>", policy)
"""

from __future__ import annotations

from collections.abc import Collection, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING

from .constants import (
    DEFAULT_ALLOWED_ATTRIBUTES,
    DEFAULT_ALLOWED_PROTOCOLS,
    DEFAULT_ALLOWED_TAGS,
    DEFAULT_REMOVE_TAGS,
)

if TYPE_CHECKING:
    from typing import Protocol

    from justhtml.node import Node

    class NodeCallback(Protocol):
        def __call__(self, node: Node) -> None: ...


class _StrEnum(str, Enum):
    """Backport of enum.StrEnum (Python 3.11+)."""


class HrefKind(_StrEnum):
    SCHEME = "scheme"
    PROTOCOL_RELATIVE = "protocol_relative"
    RELATIVE = "relative"


# Browsers strip leading/trailing C0 controls and spaces from URLs, and drop
# tabs and newlines anywhere in them.
_URL_STRIP_CHARS = "".join(chr(c) for c in range(0x21))
_URL_REMOVED_CHARS = str.maketrans("", "", "\t\n\r")


def _normalize_url(value: str) -> str:
    value = value.strip(_URL_STRIP_CHARS).translate(_URL_REMOVED_CHARS)
    return value.replace("\\", "/")


def href_scheme(value: str) -> str | None:
    """Return the lower-cased scheme of `value`, or None if it has none.

    A scheme is whatever precedes the first colon, as long as that colon
    comes before the first slash. `/search?q=a:b` has no scheme.
    """

    url = _normalize_url(value)
    colon = url.find(":")
    if colon == -1:
        return None
    slash = url.find("/")
    if slash != -1 and slash < colon:
        return None
    return url[:colon].lower()


def classify_href(value: str) -> HrefKind:
    if href_scheme(value) is not None:
        return HrefKind.SCHEME
    if _normalize_url(value).startswith("//"):
        return HrefKind.PROTOCOL_RELATIVE
    return HrefKind.RELATIVE


def is_allowed_href(value: str, allowed_protocols: Collection[str]) -> bool:
    """Decide whether an href value may be kept.

    - Explicit scheme: allowed only if the scheme is in `allowed_protocols`.
    - Protocol-relative (`//host/path`): allowed only if `https` is allowed;
      `http` alone does not authorize it.
    - Anything else is a local link and always allowed.
    """

    kind = classify_href(value)
    if kind is HrefKind.SCHEME:
        return href_scheme(value) in allowed_protocols
    if kind is HrefKind.PROTOCOL_RELATIVE:
        return "https" in allowed_protocols
    return True


def _names(values: Collection[str]) -> frozenset[str]:
    if isinstance(values, str):
        values = (values,)
    return frozenset(str(v).lower() for v in values)


@dataclass(frozen=True, slots=True)
class SanitizationPolicy:
    """An immutable allow-list.

    - Elements named in `allowed_tags` are kept (after their own children
      and attributes are sanitized).
    - Elements named in `remove_tags` are dropped together with everything
      inside them.
    - Any other element (and any comment) is unwrapped: the element goes,
      its children stay in its place.
    - Attributes must be in `allowed_attributes`, on any tag. `href` values
      are additionally checked against `allowed_protocols`.
    - `tag_callbacks[tag]` runs once per kept element of that name, after
      the element is fully sanitized.

    All names are normalized to ASCII-lowercase.
    """

    allowed_tags: Collection[str] = frozenset()
    remove_tags: Collection[str] = frozenset()
    allowed_attributes: Collection[str] = frozenset()
    allowed_protocols: Collection[str] = frozenset()
    tag_callbacks: Mapping[str, NodeCallback] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "allowed_tags", _names(self.allowed_tags))
        object.__setattr__(self, "remove_tags", _names(self.remove_tags))
        object.__setattr__(self, "allowed_attributes", _names(self.allowed_attributes))
        object.__setattr__(self, "allowed_protocols", _names(self.allowed_protocols))
        object.__setattr__(
            self,
            "tag_callbacks",
            MappingProxyType({str(tag).lower(): cb for tag, cb in self.tag_callbacks.items()}),
        )

        overlap = self.allowed_tags & self.remove_tags
        if overlap:
            raise ValueError(f"Tags cannot be both allowed and removed: {', '.join(sorted(overlap))}")


DEFAULT_POLICY: SanitizationPolicy = SanitizationPolicy(
    allowed_tags=DEFAULT_ALLOWED_TAGS,
    remove_tags=DEFAULT_REMOVE_TAGS,
    allowed_attributes=DEFAULT_ALLOWED_ATTRIBUTES,
    allowed_protocols=DEFAULT_ALLOWED_PROTOCOLS,
)
