"""Route, asset and module path helpers for an unpacked mini program."""

from __future__ import annotations

import os
import posixpath
import re
from collections.abc import Iterable, Mapping
from typing import Any

from wxapkgkit.analyzer.models import PageFiles

_ROUTE_EXTENSIONS = (".js", ".wxml", ".wxss", ".json", ".html")
_GENERATED_ARTIFACTS = frozenset(
    {
        "sensitive_report.html",
        "sensitive_report.xlsx",
        "api_collection.postman_collection.json",
        "route_manifest.json",
        "route_map.md",
        "route_map.mmd",
    }
)
_VERSION_API_PATH = re.compile(r"^v[0-9]+/")
_REQUIRE = re.compile(r"\brequire\(\s*[\"'`]([^\"'`]+)[\"'`]\s*\)", re.MULTILINE | re.ASCII)
_IMPORT = re.compile(
    r"\bimport\s+(?:[^;\n]*?\s+from\s+)?[\"'`]([^\"'`]+)[\"'`]", re.MULTILINE | re.ASCII
)
_MAX_DEPENDENCY_DEPTH = 2


def _clean(value: str) -> str:
    """Lexically clean a slash path; the empty path becomes ``.``."""
    if not value:
        return "."
    cleaned = posixpath.normpath(value)
    if cleaned.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")
    return cleaned


def _join(*parts: str) -> str:
    present = [part for part in parts if part]
    if not present:
        return ""
    return _clean("/".join(present))


def _dir(value: str) -> str:
    return _clean(value[: value.rfind("/") + 1])


def _ext(value: str) -> str:
    for index in range(len(value) - 1, -1, -1):
        ch = value[index]
        if ch == "/":
            break
        if ch == ".":
            return value[index:]
    return ""


def _fs_path(root_dir: str | os.PathLike[str], rel_path: str) -> str:
    rel = rel_path.lstrip("/")
    return os.path.join(os.fspath(root_dir), *rel.split("/")) if rel else os.fspath(root_dir)


def normalize_asset_path(value: str) -> str:
    """Strip whitespace and turn backslashes into slashes."""
    return value.strip().replace("\\", "/").strip()


def normalize_route(value: str) -> str:
    """Turn a page path into a clean route without leading slash or extension."""
    candidate = normalize_asset_path(value)
    candidate = candidate.removeprefix("./").removeprefix("/")
    candidate = _clean(candidate)
    if candidate in (".", ""):
        return ""
    for ext in _ROUTE_EXTENSIONS:
        candidate = candidate.removesuffix(ext)
    return candidate.removeprefix("/")


def join_route(root: str, page: str) -> str:
    """Join a subpackage root and a page path into one route."""
    root = normalize_route(root)
    page = normalize_route(page)
    if not root:
        return page
    if not page:
        return root
    return normalize_route(_join(root, page))


def normalize_route_reference(raw_target: str, current_route: str) -> str | None:
    """Resolve a navigation target against the current route.

    Returns None for external URLs, template expressions and empty targets.
    """
    candidate = raw_target.strip()
    if not candidate:
        return None
    if "://" in candidate or candidate.startswith("//") or "{{" in candidate:
        return None
    cut = min((i for i in (candidate.find("?"), candidate.find("#")) if i >= 0), default=-1)
    if cut >= 0:
        candidate = candidate[:cut]
    candidate = normalize_asset_path(candidate)
    if not candidate:
        return None
    if candidate.startswith("/"):
        return normalize_route(candidate)
    return normalize_route(_join(_dir(current_route), candidate))


def normalize_component_path(current_route: str, component_path: str) -> str:
    """Resolve a ``usingComponents`` entry against the page route."""
    candidate = component_path.strip()
    if not candidate:
        return ""
    if "://" in candidate:
        return candidate
    if candidate.startswith("/"):
        return normalize_route(candidate)
    return normalize_route(_join(_dir(current_route), candidate))


def path_exists(root_dir: str | os.PathLike[str], rel_path: str) -> bool:
    """Tell whether the slash path ``rel_path`` exists below ``root_dir``."""
    return os.path.exists(_fs_path(root_dir, rel_path))


def detect_page_files(root_dir: str | os.PathLike[str], route: str) -> PageFiles:
    """Find the script, template, style and config files of a page."""
    found = {
        attr: f"{route}.{attr}" if path_exists(root_dir, f"{route}.{attr}") else ""
        for attr in ("js", "wxml", "wxss", "json")
    }
    return PageFiles(**found)


def is_internal_page_url(root_dir: str | os.PathLike[str], current_route: str, raw_target: str) -> bool:
    """Tell whether a URL found in code actually points at a page of the app."""
    target = normalize_route_reference(raw_target, current_route)
    if not target:
        return False
    if target.startswith("api/") or _VERSION_API_PATH.match(target):
        return False
    files = detect_page_files(root_dir, target)
    return bool(files.js or files.wxml or files.json)


def resolve_js_import(root_dir: str | os.PathLike[str], from_js_path: str, spec: str) -> str | None:
    """Resolve a relative or root-based module specifier to an existing script path."""
    spec = spec.strip()
    if not spec or "://" in spec:
        return None
    if not spec.startswith((".", "/")):
        return None
    if spec.startswith("/"):
        base = normalize_route(spec)
    else:
        stem = from_js_path.removesuffix(_ext(from_js_path))
        base = normalize_route(_join(_dir(stem), spec))
    if not base:
        return None
    for candidate in (base + ".js", _join(base, "index.js")):
        if path_exists(root_dir, candidate):
            return candidate
    return None


def extract_js_dependencies(root_dir: str | os.PathLike[str], js_path: str) -> list[str]:
    """Return the scripts a page script imports, up to two levels deep, sorted."""
    if not js_path:
        return []

    visited: set[str] = set()
    found: list[str] = []

    def walk(rel_path: str, depth: int) -> None:
        if depth > _MAX_DEPENDENCY_DEPTH or not rel_path or rel_path in visited:
            return
        visited.add(rel_path)
        try:
            with open(_fs_path(root_dir, rel_path), encoding="utf-8", errors="replace") as handle:
                text = handle.read()
        except OSError:
            return
        specs = [m.group(1) for m in _REQUIRE.finditer(text)]
        specs += [m.group(1) for m in _IMPORT.finditer(text)]
        for spec in specs:
            resolved = resolve_js_import(root_dir, rel_path, spec)
            if not resolved or resolved == js_path:
                continue
            found.append(resolved)
            walk(resolved, depth + 1)

    walk(js_path, 0)
    return sorted({dep for dep in found if dep != js_path})


def dedupe_and_sort(values: Iterable[str]) -> list[str]:
    """Strip, drop empty and repeated values, and sort."""
    return sorted({value.strip() for value in values if value.strip()})


def string_from_map(data: Mapping[str, Any] | None, key: str) -> str:
    """Return the stripped string at ``key``, or an empty string."""
    if not data:
        return ""
    value = data.get(key)
    return value.strip() if isinstance(value, str) else ""


def is_generated_artifact(rel_path: str) -> bool:
    """Tell whether a file is one of the reports this tool writes itself."""
    return posixpath.basename(rel_path) in _GENERATED_ARTIFACTS