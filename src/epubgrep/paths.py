from __future__ import annotations

import posixpath
from urllib.parse import unquote


def decode_href(value: str) -> str:
    return unquote(value, encoding="utf-8", errors="replace")


def base_directory(path: str) -> str:
    """Return the directory prefix used to resolve hrefs found inside ``path``.

    Root-level files have an empty base; anything else gets ``dir + "/"``.
    """
    parent = posixpath.dirname(path)
    if parent in ("", ".", "/"):
        return ""
    return parent + "/"


def normalize_zip_path(path: str) -> str:
    normalized = posixpath.normpath(path.replace("\\", "/"))
    if normalized in ("", "."):
        return ""
    return normalized.lstrip("/")


def join_href(base: str, href: str) -> str:
    if href.startswith("/"):
        return normalize_zip_path(href)
    return normalize_zip_path(base + href)


def split_href_fragment(href: str) -> tuple[str, str | None]:
    if "#" in href:
        path, fragment = href.split("#", 1)
        return path, fragment or None
    return href, None
