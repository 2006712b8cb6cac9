"""Script and stylesheet registry.

`AssetManager` collects the scripts, stylesheets, inline styles and inline JS
variables a page needs while it is being rendered. The page only contains
placeholder tokens (`inject_script()` / `inject_css()`); `replace_tokens()`
swaps them for the actual tags once rendering is done, when the full set of
assets is known.

Asset names are resolved through a resolver object with a single
`resolve(path) -> str | None` method. For every asset both the minified
(`name.min.js`) and plain (`name.js`) variants are looked up, and the minified
one is used unless `minified=False`. Assets that resolve to nothing are
logged and left out.

Nothing here touches sanitized user content. Output of `SafeHTML` may be part
of the page whose tokens get replaced, but it passes through as plain text.
"""

from __future__ import annotations

import dataclasses
import html
import json
import logging
import posixpath
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .errors import InvalidVariableError
from .policy import _StrEnum

if TYPE_CHECKING:
    import os
    from typing import Protocol

    class AssetResolver(Protocol):
        def resolve(self, path: str) -> str | None: ...


logger = logging.getLogger(__name__)

SCRIPT_TOKEN = "#SAFEHTML-JAVASCRIPT#"
CSS_TOKEN = "#SAFEHTML-CSS#"

_JS_IDENTIFIER = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")

# Keeps JSON embedded in <script> from closing the element or opening a comment.
_JSON_SCRIPT_ESCAPES = str.maketrans({"<": "\\u003c", ">": "\\u003e", "&": "\\u0026"})


class JSValueKind(_StrEnum):
    PRIMITIVE = "primitive"
    SEQUENCE = "sequence"
    MAPPING = "mapping"
    SERIALIZABLE = "serializable"


@dataclass(frozen=True, slots=True)
class JSValue:
    """A value that can be written out as a JS variable.

    `value` is already converted to plain JSON data.
    """

    kind: JSValueKind
    value: Any

    @classmethod
    def from_python(cls, name: str, value: object) -> JSValue:
        """Convert `value`, or raise `InvalidVariableError`.

        - None, bool, int, float and str are primitives.
        - Mappings become objects, other non-string sequences and sets
          become arrays.
        - Objects with a `__json__()` method, and dataclass instances, are
          serializable.
        """

        if value is None or isinstance(value, (bool, int, float, str)):
            kind, data = JSValueKind.PRIMITIVE, value
        elif isinstance(value, Mapping):
            kind, data = JSValueKind.MAPPING, dict(value)
        elif isinstance(value, (set, frozenset)) or (
            isinstance(value, Sequence) and not isinstance(value, (bytes, bytearray))
        ):
            kind, data = JSValueKind.SEQUENCE, list(value)
        elif callable(getattr(value, "__json__", None)):
            kind, data = JSValueKind.SERIALIZABLE, value.__json__()  # type: ignore[attr-defined]
        elif dataclasses.is_dataclass(value) and not isinstance(value, type):
            kind, data = JSValueKind.SERIALIZABLE, dataclasses.asdict(value)
        else:
            raise InvalidVariableError(name)

        try:
            json.dumps(data)
        except (TypeError, ValueError) as exc:
            raise InvalidVariableError(name) from exc

        return cls(kind, data)

    def to_js(self) -> str:
        return json.dumps(self.value, separators=(",", ":")).translate(_JSON_SCRIPT_ESCAPES)


@dataclass(frozen=True, slots=True)
class Asset:
    path: str
    media: str | None = None


@dataclass(frozen=True, slots=True)
class ResolvedAsset:
    path: str
    url: str
    mtime: int | None
    basename: str
    media: str | None = None


class DirectoryResolver:
    """Resolve asset paths against a directory on disk."""

    def __init__(self, root: str | os.PathLike[str]) -> None:
        self.root = Path(root).resolve()

    def resolve(self, path: str) -> str | None:
        candidate = (self.root / path.lstrip("/")).resolve()
        if not candidate.is_relative_to(self.root) or not candidate.is_file():
            return None
        return str(candidate)


def _strip_suffix(path: str, suffix1: str, suffix2: str) -> str:
    """Strip `suffix2` from the end of `path`, then `suffix1`.

    `_strip_suffix("app.min.js", ".min", ".js") == "app"`
    """

    if path.endswith(suffix2):
        path = path[: -len(suffix2)]
    if path.endswith(suffix1):
        path = path[: -len(suffix1)]
    return path


class AssetManager:
    """Collect, resolve and inject scripts and stylesheets.

    Args:
        resolver: Object with a `resolve(path) -> str | None` method.
        resolve_prefix: Prefix for the paths handed to the resolver.
        url_prefix: Prefix for the URLs written into the page.
        minified: Prefer `.min.js`/`.min.css` files when both exist.
    """

    def __init__(
        self,
        resolver: AssetResolver,
        *,
        resolve_prefix: str = "/assets/",
        url_prefix: str = "/assets/",
        minified: bool = True,
    ) -> None:
        self.resolver = resolver
        self.resolve_prefix = resolve_prefix
        self.url_prefix = url_prefix
        self.minified = minified

        self._scripts: dict[str, Asset] = {}
        self._stylesheets: dict[str, Asset] = {}
        self._inline_styles: list[str] = []
        self._variables: dict[str, JSValue] = {}
        self._mtimes: dict[str, int | None] = {}

    # -----------------
    # Registration
    # -----------------

    def add_script(self, script: str) -> AssetManager:
        """Register a script. `.js` and `.min` suffixes are stripped."""
        path = _strip_suffix(script, ".min", ".js")
        self._scripts[path] = Asset(path)
        return self

    @property
    def scripts(self) -> list[Asset]:
        return list(self._scripts.values())

    def add_stylesheet(self, stylesheet: str, media: str = "screen") -> AssetManager:
        """Register a stylesheet. `.css` and `.min` suffixes are stripped."""
        path = _strip_suffix(stylesheet, ".min", ".css")
        self._stylesheets[path] = Asset(path, media)
        return self

    @property
    def stylesheets(self) -> list[Asset]:
        return list(self._stylesheets.values())

    def add_inline_style(self, css: str) -> AssetManager:
        self._inline_styles.append(css)
        return self

    @property
    def inline_styles(self) -> list[str]:
        return list(self._inline_styles)

    def add_variable(self, name: str, value: object) -> AssetManager:
        """Define a JS variable on the page.

        Raises `InvalidVariableError` if `name` is not a JS identifier or
        `value` cannot be represented as JSON.
        """

        if not isinstance(name, str) or not _JS_IDENTIFIER.match(name):
            raise InvalidVariableError(str(name), f"Invalid JS variable name {name!r}")
        self._variables[name] = JSValue.from_python(name, value)
        return self

    @property
    def variables(self) -> dict[str, Any]:
        return {name: js.value for name, js in self._variables.items()}

    # -----------------
    # Tokens
    # -----------------

    def inject_script(self) -> str:
        return SCRIPT_TOKEN

    def inject_css(self) -> str:
        """Placeholder for the stylesheets; belongs in the document head."""
        return CSS_TOKEN

    # -----------------
    # Resolution
    # -----------------

    def _mtime(self, file: str) -> int | None:
        if file not in self._mtimes:
            try:
                self._mtimes[file] = int(Path(file).stat().st_mtime)
            except OSError as exc:
                logger.warning("Cannot read modification time of %s: %s", file, exc)
                self._mtimes[file] = None
        return self._mtimes[file]

    def resolve_assets(self, assets: Iterable[Asset | str], asset_type: str) -> list[ResolvedAsset]:
        """Resolve assets of one type (`"js"` or `"css"`) to files and URLs.

        `path` of each result is the file the resolver returned, `url` the
        matching URL for the browser.
        """

        resolved: list[ResolvedAsset] = []
        for asset in assets:
            if isinstance(asset, str):
                asset = Asset(asset)

            relpath = f"{self.resolve_prefix}{asset_type}/{asset.path}"
            url = f"{self.url_prefix}{asset_type}/{asset.path}"
            plain = (f"{relpath}.{asset_type}", f"{url}.{asset_type}")
            minified = (f"{relpath}.min.{asset_type}", f"{url}.min.{asset_type}")

            plain_file = self.resolver.resolve(plain[0])
            minified_file = self.resolver.resolve(minified[0])

            if not self.minified and plain_file:
                file, asset_url = plain_file, plain[1]
            elif minified_file:
                file, asset_url = minified_file, minified[1]
            elif plain_file:
                file, asset_url = plain_file, plain[1]
            else:
                logger.error("Requested asset %s could not be resolved", asset.path)
                continue

            resolved.append(
                ResolvedAsset(
                    path=file,
                    url=asset_url,
                    mtime=self._mtime(file),
                    basename=posixpath.basename(asset_url),
                    media=asset.media,
                )
            )
        return resolved

    # -----------------
    # Rendering
    # -----------------

    def render_scripts(self) -> str:
        lines: list[str] = []
        for asset in self.resolve_assets(self._scripts.values(), "js"):
            src = asset.url if asset.mtime is None else f"{asset.url}?{asset.mtime}"
            lines.append(f'<script src="{html.escape(src)}"></script>')
        if self._variables:
            lines.append("<script>")
            lines.extend(f"var {name} = {js.to_js()};" for name, js in self._variables.items())
            lines.append("</script>")
        return "\n".join(lines)

    def render_stylesheets(self) -> str:
        lines: list[str] = []
        for asset in self.resolve_assets(self._stylesheets.values(), "css"):
            href = asset.url if asset.mtime is None else f"{asset.url}?{asset.mtime}"
            lines.append(
                f'<link rel="stylesheet" href="{html.escape(href)}"'
                f' media="{html.escape(asset.media or "screen")}">'
            )
        if self._inline_styles:
            lines.append("<style>")
            lines.extend(self._inline_styles)
            lines.append("</style>")
        return "\n".join(lines)

    def replace_tokens(self, page: str) -> str:
        """Substitute the script and CSS tokens in rendered HTML."""
        if SCRIPT_TOKEN in page:
            page = page.replace(SCRIPT_TOKEN, self.render_scripts())
        if CSS_TOKEN in page:
            page = page.replace(CSS_TOKEN, self.render_stylesheets())
        return page
