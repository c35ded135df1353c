"""Pattern-based discovery of function definitions and calls in JavaScript."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from wxapkgkit.analyzer.jstext import (
    find_matching_brace,
    find_matching_paren,
    is_reserved_js_name,
    line_number_at_offset,
    normalize_js_identifier,
    split_top_level,
)

_FLAGS = re.MULTILINE | re.ASCII
_WHITESPACE = " \n\r\t"


@dataclass(frozen=True)
class _FunctionPattern:
    pattern: re.Pattern[str]
    params_alt_group: int = 0


_FUNCTION_PATTERNS = (
    _FunctionPattern(re.compile(
        r"(?:^|[,{]\s*)([A-Za-z_$][\w$]*)\s*:\s*(?:async\s+)?function\s*\(([^\n)]*)\)\s*\{", _FLAGS)),
    _FunctionPattern(re.compile(
        r"(?:^|[,{]\s*)([A-Za-z_$][\w$]*)\s*:\s*(?:async\s+)?\(([^\n)]*)\)\s*=>\s*\{", _FLAGS)),
    _FunctionPattern(re.compile(r"^\s*([A-Za-z_$][\w$]*)\s*\(([^\n)]*)\)\s*\{", _FLAGS)),
    _FunctionPattern(re.compile(
        r"\b(?:async\s+)?function\s+([A-Za-z_$][\w$]*)\s*\(([^)]*)\)\s*\{", _FLAGS)),
    _FunctionPattern(re.compile(
        r"\b(?:const|let|var)\s+([A-Za-z_$][\w$]*)\s*=\s*(?:async\s+)?function\s*\(([^)]*)\)\s*\{", _FLAGS)),
    _FunctionPattern(re.compile(
        r"\b(?:const|let|var)\s+([A-Za-z_$][\w$]*)\s*=\s*(?:async\s+)?"
        r"(?:\(([^)]*)\)|([A-Za-z_$][\w$]*))\s*=>\s*\{", _FLAGS), params_alt_group=3),
    _FunctionPattern(re.compile(
        r"\b(?:module\.)?exports\.([A-Za-z_$][\w$]*)\s*=\s*(?:async\s+)?function\s*\(([^)]*)\)\s*\{", _FLAGS)),
    _FunctionPattern(re.compile(
        r"\b(?:module\.)?exports\.([A-Za-z_$][\w$]*)\s*=\s*(?:async\s+)?"
        r"(?:\(([^)]*)\)|([A-Za-z_$][\w$]*))\s*=>\s*\{", _FLAGS), params_alt_group=3),
)

_CALL_EXPR = re.compile(r"([A-Za-z_$][\w$]*(?:\.[A-Za-z_$][\w$]*){0,2})\s*\(", re.ASCII)
_SKIPPED_CALLEES = frozenset(
    {"if", "for", "while", "switch", "catch", "function", "return", "typeof", "new"}
)
_PLATFORM_PREFIXES = ("wx.", "uni.", "tt.", "my.")


@dataclass
class JSFunction:
    """A function found in a script: name, span, body text and parameters."""

    name: str
    start: int
    end: int
    body: str
    params: list[str] = field(default_factory=list)
    line_number: int = 1


@dataclass
class JSCall:
    """A call expression with its raw argument texts."""

    callee: str
    args: list[str] = field(default_factory=list)
    line_number: int = 1


def _group(match: re.Match[str], index: int) -> str:
    value = match.group(index)
    return value.strip() if value else ""


def parse_js_params(raw: str) -> list[str]:
    """Return the parameter names of a parameter list text."""
    raw = raw.strip()
    if not raw:
        return []
    names = (normalize_js_identifier(part.strip()) for part in split_top_level(raw, ","))
    return [name for name in names if name]


def extract_js_functions(text: str) -> dict[str, JSFunction]:
    """Find named functions and methods; the earliest definition of a name wins."""
    results: dict[str, JSFunction] = {}
    seen: set[tuple[str, int, int]] = set()

    for descriptor in _FUNCTION_PATTERNS:
        for match in descriptor.pattern.finditer(text):
            name = _group(match, 1)
            if not name or is_reserved_js_name(name):
                continue
            params = _group(match, 2)
            if not params and descriptor.params_alt_group:
                params = _group(match, descriptor.params_alt_group)

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

            function = JSFunction(
                name=name,
                start=match.start(),
                end=close_brace,
                body=text[open_brace : close_brace + 1],
                params=parse_js_params(params),
                line_number=line_number_at_offset(text, match.start()),
            )
            existing = results.get(name)
            if existing is None or function.start < existing.start:
                results[name] = function

    return results


def _should_skip_call(text: str, callee: str, start: int) -> bool:
    if callee in _SKIPPED_CALLEES or callee.startswith(_PLATFORM_PREFIXES):
        return True
    prefix = text[max(0, start - 16) : start].strip()
    return prefix.endswith("function")


def _next_non_whitespace(text: str, start: int) -> int:
    for index in range(start, len(text)):
        if text[index] not in _WHITESPACE:
            return index
    return -1


def _prev_non_whitespace(text: str, start: int) -> int:
    for index in range(start, -1, -1):
        if text[index] not in _WHITESPACE:
            return index
    return -1


def _looks_like_method_definition(text: str, start: int, close_paren: int) -> bool:
    nxt = _next_non_whitespace(text, close_paren + 1)
    if nxt >= 0 and text[nxt] == "{":
        prev = _prev_non_whitespace(text, start - 1)
        return prev < 0 or text[prev] in "{,:"
    return False


def extract_call_expressions(text: str) -> list[JSCall]:
    """Find plain, member and ``x.default.y`` calls, skipping keywords and platform APIs."""
    results: list[JSCall] = []
    for match in _CALL_EXPR.finditer(text):
        start = match.start()
        callee = match.group(1).strip()
        if _should_skip_call(text, callee, start):
            continue
        open_paren = text.find("(", start, match.end())
        if open_paren < 0:
            continue
        close_paren = find_matching_paren(text, open_paren)
        if close_paren is None or close_paren <= open_paren:
            continue
        if _looks_like_method_definition(text, start, close_paren):
            continue
        results.append(
            JSCall(
                callee=callee,
                args=split_top_level(text[open_paren + 1 : close_paren], ","),
                line_number=line_number_at_offset(text, start),
            )
        )
    return results