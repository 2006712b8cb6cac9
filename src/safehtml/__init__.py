from .assets import AssetManager, DirectoryResolver, JSValue, JSValueKind, ResolvedAsset
from .errors import InvalidCallbackError, InvalidVariableError, SafeHTMLError
from .parser import parse_fragment
from .policy import DEFAULT_POLICY, HrefKind, SanitizationPolicy, classify_href, href_scheme, is_allowed_href
from .sanitizer import SafeHTML, sanitize, sanitize_tree
from .serialize import to_html

__all__ = [
    "DEFAULT_POLICY",
    "AssetManager",
    "DirectoryResolver",
    "HrefKind",
    "InvalidCallbackError",
    "InvalidVariableError",
    "JSValue",
    "JSValueKind",
    "ResolvedAsset",
    "SafeHTML",
    "SafeHTMLError",
    "SanitizationPolicy",
    "classify_href",
    "href_scheme",
    "is_allowed_href",
    "parse_fragment",
    "sanitize",
    "sanitize_tree",
    "to_html",
]
