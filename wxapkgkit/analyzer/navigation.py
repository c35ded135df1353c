"""Navigation calls in page scripts and merging of navigation edges."""

from __future__ import annotations

import dataclasses
import os
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import NamedTuple

from wxapkgkit.analyzer.jstext import (
    extract_object_property_expression,
    find_matching_brace,
    first_string_literal,
    is_reserved_js_name,
    line_number_at_offset,
)
from wxapkgkit.analyzer.models import NavigationEdge
from wxapkgkit.analyzer.paths import normalize_route_reference

NAVIGATION_CALL_PATTERN = re.compile(
    r"\b(?:wx|uni|tt|my)\.(navigateTo|redirectTo|reLaunch|switchTab)\s*\(\s*\{",
    re.IGNORECASE | re.DOTALL | re.ASCII,
)
UNKNOWN_METHOD = "UNKNOWN"

_M = re.MULTILINE | re.ASCII
_HANDLER_PATTERNS = (
    re.compile(r"(?:^|[,{]\s*)([A-Za-z_$][\w$]*)\s*:\s*function\s*\(([^\n)]*)\)\s*\{", _M),
    re.compile(r"(?:^|[,{]\s*)([A-Za-z_$][\w$]*)\s*:\s*\(([^\n)]*)\)\s*=>\s*\{", _M),
    re.compile(r"^\s*([A-Za-z_$][\w$]*)\s*\(([^\n)]*)\)\s*\{", _M),
)


@dataclass(frozen=True)
class JSHandler:
    """A page method: its name, span and body text."""

    name: str
    start: int
    end: int
    body: str


class NavigationTarget(NamedTuple):
    """A resolved navigation ``url`` value."""

    target_page: str
    raw_target: str
    dynamic: bool


def extract_js_handlers(text: str) -> list[JSHandler]:
    """Find object methods of a page script, ordered by position."""
    results: list[JSHandler] = []
    seen: set[tuple[str, int, int]] = set()
    for pattern in _HANDLER_PATTERNS:
        for match in pattern.finditer(text):
            name = match.group(1)
            if is_reserved_js_name(name):
                continue
            open_brace = text.rfind("{", match.start(), match.end())
            if open_brace < 0:
                continue
            close_brace = find_matching_brace(text, open_brace)
            if close_brace is None or close_brace <= open_brace:
                continue
            key = (name, open_brace, close_brace)
            if key in seen:
                continue
            seen.add(key)
            results.append(JSHandler(name, match.start(), close_brace, text[open_brace : close_brace + 1]))
    results.sort(key=lambda handler: (handler.start, handler.name))
    return results


def find_containing_handler(handlers: Iterable[JSHandler], offset: int) -> str:
    """Return the name of the first handler whose span holds ``offset``, or ``""``."""
    return next((h.name for h in handlers if h.start <= offset <= h.end), "")


def resolve_navigation_expression(expr: str, current_route: str) -> NavigationTarget | None:
    """Interpret the source of a ``url`` value; None when it names no navigation."""
    value = expr.removesuffix(",").strip()
    if not value:
        return None

    if len(value) >= 2:
        if value[0] == value[-1] and value[0] in "'\"":
            raw = value[1:-1]
            target = normalize_route_reference(raw, current_route)
            return None if target is None else NavigationTarget(target, raw, False)
        if value[0] == "`" and value[-1] == "`":
            raw = value[1:-1]
            dynamic = "${" in raw
            target = normalize_route_reference(raw.split("${", 1)[0], current_route)
            if target is not None:
                return NavigationTarget(target, raw, dynamic)
            return NavigationTarget("", raw, dynamic) if raw else None

    literal = first_string_literal(value)
    if literal:
        target = normalize_route_reference(literal, current_route)
        return NavigationTarget(target or "", value, True)

    return NavigationTarget("", value, True)


def _navigation_calls(text: str):
    """Yield (offset, method, url expression) for each navigation call in ``text``."""
    for match in NAVIGATION_CALL_PATTERN.finditer(text):
        block_start = text.find("{", match.start(), match.end())
        if block_start < 0:
            continue
        block_end = find_matching_brace(text, block_start)
        if block_end is None or block_end <= block_start:
            continue
        url_expr = extract_object_property_expression(text[block_start : block_end + 1], "url")
        yield match.start(), match.group(1).strip(), url_expr


def extract_js_navigation_edges(
    root_dir: str | os.PathLike[str], route: str, js_path: str
) -> list[NavigationEdge]:
    """Return the direct navigation calls in a page script."""
    parts = js_path.lstrip("/").split("/")
    try:
        with open(os.path.join(os.fspath(root_dir), *parts), encoding="utf-8", errors="replace") as handle:
            text = handle.read()
    except OSError:
        return []

    handlers = extract_js_handlers(text)
    results: list[NavigationEdge] = []
    for offset, method, url_expr in _navigation_calls(text):
        resolved = resolve_navigation_expression(url_expr, route)
        if resolved is None:
            continue
        results.append(
            NavigationEdge(
                source_page=route,
                target_page=resolved.target_page,
                raw_target=resolved.raw_target,
                method=method,
                source_type="js",
                source_file=js_path,
                line_number=line_number_at_offset(text, offset),
                handler_name=find_containing_handler(handlers, offset),
                dynamic=resolved.dynamic,
            )
        )
    return results


def handler_edge_key(handler_name: str, edge: NavigationEdge) -> str:
    """Key identifying a script edge as used by one event handler."""
    return "|".join(
        [handler_name, edge.method, edge.raw_target, edge.target_page, edge.source_file, str(edge.line_number)]
    )


def edge_identity_key(edge: NavigationEdge) -> str:
    """Key under which duplicate edges are merged."""
    return "|".join(
        [
            edge.source_page,
            edge.target_page,
            edge.raw_target,
            edge.method,
            edge.handler_name,
            edge.trigger_event,
            edge.trigger_text,
            "true" if edge.dynamic else "false",
            str(edge.line_number),
        ]
    )


def navigation_edge_score(edge: NavigationEdge) -> int:
    """How much detail an edge carries; the richer edge wins a merge."""
    score = len(edge.call_chain) * 10
    if edge.source_type == "shared-router":
        score += 5
    if edge.trigger_text:
        score += 3
    if edge.trigger_event:
        score += 2
    if edge.handler_name:
        score += 1
    return score


def merge_navigation_edge(current: NavigationEdge, candidate: NavigationEdge) -> NavigationEdge:
    """Combine two duplicates, keeping the richer one and filling its gaps."""
    if navigation_edge_score(candidate) > navigation_edge_score(current):
        current, candidate = candidate, current
    merged = dataclasses.replace(current, call_chain=list(current.call_chain))
    for name in (
        "source_file",
        "line_number",
        "source_type",
        "handler_name",
        "trigger_event",
        "trigger_text",
        "target_page",
        "raw_target",
    ):
        if not getattr(merged, name):
            setattr(merged, name, getattr(candidate, name))
    if not merged.call_chain:
        merged.call_chain = list(candidate.call_chain)
    merged.target_exists = merged.target_exists or candidate.target_exists
    merged.dynamic = merged.dynamic or candidate.dynamic
    return merged


def _fallback_key(edge: NavigationEdge) -> str:
    return "|".join(
        [
            edge.source_page,
            edge.target_page,
            edge.raw_target,
            edge.handler_name,
            edge.trigger_event,
            edge.trigger_text,
            str(edge.line_number),
        ]
    )


def prune_fallback_navigation_edges(edges: Sequence[NavigationEdge]) -> list[NavigationEdge]:
    """Drop template-only fallback edges that a real navigation call already covers."""
    rich = {_fallback_key(e) for e in edges if e.method and e.method != UNKNOWN_METHOD}
    return [
        e
        for e in edges
        if not (e.method == UNKNOWN_METHOD and e.source_type == "wxml-event" and _fallback_key(e) in rich)
    ]


def dedupe_edges(edges: Iterable[NavigationEdge]) -> list[NavigationEdge]:
    """Merge duplicate edges in first-seen order and prune redundant fallbacks."""
    merged: dict[str, NavigationEdge] = {}
    for edge in edges:
        key = edge_identity_key(edge)
        existing = merged.get(key)
        merged[key] = edge if existing is None else merge_navigation_edge(existing, edge)
    return prune_fallback_navigation_edges(list(merged.values()))