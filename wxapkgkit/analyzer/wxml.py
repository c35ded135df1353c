"""Event handlers and navigators declared in WXML templates."""

from __future__ import annotations

import dataclasses
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import NamedTuple

from wxapkgkit.analyzer.jstext import compact_text, line_number_at_offset
from wxapkgkit.analyzer.models import NavigationEdge
from wxapkgkit.analyzer.navigation import UNKNOWN_METHOD, handler_edge_key
from wxapkgkit.analyzer.paths import dedupe_and_sort, normalize_route_reference

_IS = re.IGNORECASE | re.DOTALL | re.ASCII

_NAVIGATOR_BLOCK = re.compile(r"<navigator\b([^>]*)>(.*?)</navigator>", _IS)
_ACTION_BLOCK = re.compile(r"<([a-zA-Z0-9:_-]+)\b([^>]*)>(.*?)</[a-zA-Z0-9:_-]+>", _IS)
_ACTION_SELF_CLOSE = re.compile(r"<([a-zA-Z0-9:_-]+)\b([^>]*)/>", _IS)
_ATTR_URL = re.compile(r"\burl\s*=\s*[\"'`]([^\"'`]+)[\"'`]", _IS)
_ATTR_OPEN_TYPE = re.compile(r"\bopen-type\s*=\s*[\"'`]([^\"'`]+)[\"'`]", _IS)
_ATTR_EVENT = re.compile(
    r"\b(bindtap|catchtap|bind:tap|catch:tap|capture-bind:tap|capture-catch:tap)"
    r"\s*=\s*[\"'`]([^\"'`]+)[\"'`]",
    _IS,
)
_ATTR_DATA_TARGET = re.compile(r"\bdata-(url|route|path|page)\s*=\s*[\"'`]([^\"'`]+)[\"'`]", _IS)

_NAVIGATOR_TAG = "navigator"


@dataclass(frozen=True)
class WxmlAction:
    """A tap handler bound on a template element."""

    tag: str
    trigger_event: str
    handler_name: str
    raw_target: str
    trigger_text: str
    line_number: int
    source_file: str


class WxmlNavigationResult(NamedTuple):
    """Edges found in a template, the script edges they used, and all tap actions."""

    edges: list[NavigationEdge]
    consumed: list[str]
    actions: list[WxmlAction]


def normalize_trigger_event(value: str) -> str:
    """Reduce a binding attribute such as ``catch:tap`` to the event name."""
    value = value.strip().lower()
    for prefix in ("capture-", "bind:", "catch:", "bind", "catch"):
        value = value.replace(prefix, "")
    return value.strip(":")


def build_wxml_action(
    tag: str, attrs: str, inner: str, source_file: str, line_number: int
) -> WxmlAction | None:
    """Build an action from an element's attributes; None when it binds no tap."""
    event = _ATTR_EVENT.search(attrs)
    if event is None:
        return None
    data = _ATTR_DATA_TARGET.search(attrs)
    return WxmlAction(
        tag=tag.strip(),
        trigger_event=normalize_trigger_event(event.group(1)),
        handler_name=event.group(2).strip(),
        raw_target=data.group(2).strip() if data else "",
        trigger_text=compact_text(inner),
        line_number=line_number,
        source_file=source_file,
    )


def _is_navigator(tag: str) -> bool:
    return tag.casefold() == _NAVIGATOR_TAG


def extract_wxml_actions(text: str, source_file: str) -> list[WxmlAction]:
    """Return tap actions of elements written with an opening and a closing tag."""
    results: list[WxmlAction] = []
    for match in _ACTION_BLOCK.finditer(text):
        tag = match.group(1)
        if _is_navigator(tag):
            continue
        action = build_wxml_action(
            tag, match.group(2), match.group(3), source_file, line_number_at_offset(text, match.start())
        )
        if action is not None:
            results.append(action)
    return results


def extract_wxml_self_close_actions(text: str, source_file: str) -> list[WxmlAction]:
    """Return tap actions of self-closing elements."""
    results: list[WxmlAction] = []
    for match in _ACTION_SELF_CLOSE.finditer(text):
        tag = match.group(1)
        if _is_navigator(tag):
            continue
        action = build_wxml_action(
            tag, match.group(2), "", source_file, line_number_at_offset(text, match.start())
        )
        if action is not None:
            results.append(action)
    return results


def extract_wxml_line_actions(text: str, source_file: str) -> list[WxmlAction]:
    """Return tap actions found line by line, for markup the block patterns miss."""
    results: list[WxmlAction] = []
    for line_number, line in enumerate(text.split("\n"), start=1):
        if not _ATTR_EVENT.search(line):
            continue
        tag_start = line.find("<")
        if tag_start < 0:
            continue
        open_end = line.find(">", tag_start)
        if open_end < 0:
            continue
        tag_chunk = line[tag_start + 1 : open_end]
        names = tag_chunk.split()
        if not names or _is_navigator(names[0]):
            continue
        action = build_wxml_action(names[0], tag_chunk, line[open_end + 1 :], source_file, line_number)
        if action is not None:
            results.append(action)
    return results


def _navigator_edges(route: str, wxml_path: str, text: str) -> list[NavigationEdge]:
    results: list[NavigationEdge] = []
    for match in _NAVIGATOR_BLOCK.finditer(text):
        attrs = match.group(1)
        url = _ATTR_URL.search(attrs)
        if url is None:
            continue
        raw_target = url.group(1).strip()
        target = normalize_route_reference(raw_target, route)
        if target is None:
            continue
        open_type = _ATTR_OPEN_TYPE.search(attrs)
        results.append(
            NavigationEdge(
                source_page=route,
                target_page=target,
                raw_target=raw_target,
                method=open_type.group(1).strip() if open_type else "navigateTo",
                source_type="wxml",
                source_file=wxml_path,
                line_number=line_number_at_offset(text, match.start()),
                trigger_event="tap",
                trigger_text=compact_text(match.group(2)),
            )
        )
    return results


def extract_wxml_navigation_edges(
    route: str,
    wxml_path: str,
    text: str,
    js_edges_by_handler: Mapping[str, Sequence[NavigationEdge]],
) -> WxmlNavigationResult:
    """Find navigators and tap handlers in a template and link them to script edges."""
    results = _navigator_edges(route, wxml_path, text)
    consumed: list[str] = []

    actions = extract_wxml_actions(text, wxml_path)
    actions += extract_wxml_self_close_actions(text, wxml_path)
    actions += extract_wxml_line_actions(text, wxml_path)

    for action in actions:
        if not action.handler_name:
            continue
        candidates = js_edges_by_handler.get(action.handler_name) or ()
        if not candidates:
            if not action.raw_target:
                continue
            target = normalize_route_reference(action.raw_target, route)
            if target is None:
                continue
            results.append(
                NavigationEdge(
                    source_page=route,
                    target_page=target,
                    raw_target=action.raw_target,
                    method=UNKNOWN_METHOD,
                    source_type="wxml-event",
                    source_file=action.source_file,
                    line_number=action.line_number,
                    handler_name=action.handler_name,
                    trigger_event=action.trigger_event,
                    trigger_text=action.trigger_text,
                    dynamic="{{" in action.raw_target,
                )
            )
            continue

        for candidate in candidates:
            cloned = dataclasses.replace(
                candidate,
                source_type="js-handler",
                source_file=action.source_file,
                line_number=action.line_number,
                trigger_event=action.trigger_event,
                trigger_text=action.trigger_text,
                call_chain=list(candidate.call_chain),
            )
            if action.raw_target and (candidate.dynamic or "dataset." in candidate.raw_target):
                target = normalize_route_reference(action.raw_target, route)
                if target is not None:
                    cloned.target_page = target
                    cloned.raw_target = action.raw_target
                    cloned.dynamic = "{{" in action.raw_target
            if not cloned.target_page and not cloned.raw_target:
                continue
            results.append(cloned)
            consumed.append(handler_edge_key(action.handler_name, candidate))

    return WxmlNavigationResult(results, dedupe_and_sort(consumed), actions)