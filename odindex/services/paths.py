"""Logical path handling and OneDrive path-addressing encoding."""
from __future__ import annotations

import posixpath
from urllib.parse import quote

ROUTE_PLACEHOLDER = "[...path]"

# Characters left unescaped by JavaScript's encodeURIComponent, besides the
# ones quote() never escapes.
_URI_COMPONENT_SAFE = "!*'()"


def clean_path(path: str) -> str:
    """Resolve ``path`` against the root and normalise it.

    The result always has a single leading slash and no trailing slash, except
    for the root itself which is returned as ``/``. ``..`` never climbs above
    the root.
    """

    return posixpath.normpath("/" + path.lstrip("/"))


def encode_path(path: str, base_directory: str = "/") -> str:
    """Return the OneDrive path-addressing form of ``path`` under ``base_directory``.

    An empty string denotes the drive root, which must be addressed without the
    ``:`` separator. Otherwise the whole absolute path is percent-encoded and
    prefixed with ``:``.
    """

    base = clean_path(base_directory)
    joined = posixpath.normpath(posixpath.join(base, clean_path(path).lstrip("/")))
    if joined == "/":
        return ""
    return ":" + quote(joined, safe=_URI_COMPONENT_SAFE)


def item_suffix(encoded_path: str) -> str:
    """Separator to put between an encoded item path and a sub-resource."""

    return "" if encoded_path == "" else ":"


def is_placeholder(path: str) -> bool:
    return path == ROUTE_PLACEHOLDER
