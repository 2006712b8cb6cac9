"""Default allow-lists and parsing constants."""

from __future__ import annotations

DEFAULT_ALLOWED_TAGS: tuple[str, ...] = ("b", "i", "u", "strong", "em", "p", "div", "span", "abbr")
DEFAULT_REMOVE_TAGS: tuple[str, ...] = ("script", "style")
DEFAULT_ALLOWED_ATTRIBUTES: tuple[str, ...] = ("id", "class", "alt", "title", "name")
DEFAULT_ALLOWED_PROTOCOLS: tuple[str, ...] = ("http", "https", "ftp", "mailto")

# Fragment parsing context; keeps the parser from hoisting content into <head>.
FRAGMENT_CONTEXT_TAG = "div"
