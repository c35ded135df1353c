"""Lightweight text scanning helpers for JavaScript and WXML sources."""

from __future__ import annotations

import re

_RESERVED_JS_NAMES = frozenset(
    {"if", "for", "switch", "while", "catch", "function", "return", "else"}
)
_WHITESPACE = " \n\r\t"
_QUOTES = "'\"`"
_STRING_LITERAL = re.compile(r"[\"'`](.*?)[\"'`]", re.DOTALL)
_TAG = re.compile(r"<[^>]+>", re.DOTALL | re.IGNORECASE)


def _find_matching(text: str, start: int, opener: str, closer: str) -> int | None:
    if start < 0 or start >= len(text) or text[start] != opener:
        return None

    depth = 0
    quote = ""
    in_line_comment = False
    in_block_comment = False
    escaped = False
    i = start
    length = len(text)
    while i < length:
        ch = text[i]
        nxt = text[i + 1] if i + 1 < length else ""

        if in_line_comment:
            if ch == "\n":
                in_line_comment = False
        elif in_block_comment:
            if ch == "*" and nxt == "/":
                in_block_comment = False
                i += 1
        elif quote:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == quote:
                quote = ""
        elif ch == "/" and nxt == "/":
            in_line_comment = True
            i += 1
        elif ch == "/" and nxt == "*":
            in_block_comment = True
            i += 1
        elif ch in _QUOTES:
            quote = ch
        elif ch == opener:
            depth += 1
        elif ch == closer:
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return None


def find_matching_brace(text: str, open_brace: int) -> int | None:
    """Return the index of the ``}`` closing the ``{`` at ``open_brace``, or None.

    Strings and comments are skipped.
    """
    return _find_matching(text, open_brace, "{", "}")


def find_matching_paren(text: str, open_paren: int) -> int | None:
    """Return the index of the ``)`` closing the ``(`` at ``open_paren``, or None."""
    return _find_matching(text, open_paren, "(", ")")


class _DepthTracker:
    """Tracks quotes and bracket nesting while scanning character by character."""

    def __init__(self) -> None:
        self.quote = ""
        self.escaped = False
        self.paren = 0
        self.bracket = 0
        self.brace = 0

    @property
    def top_level(self) -> bool:
        return self.paren == 0 and self.bracket == 0 and self.brace == 0

    def feed(self, ch: str) -> bool:
        """Consume ``ch``; return True when it is a plain top-scan character."""
        if self.quote:
            if self.escaped:
                self.escaped = False
            elif ch == "\\":
                self.escaped = True
            elif ch == self.quote:
                self.quote = ""
            return False
        if ch in _QUOTES:
            self.quote = ch
        elif ch == "(":
            self.paren += 1
        elif ch == ")":
            self.paren = max(self.paren - 1, 0)
        elif ch == "[":
            self.bracket += 1
        elif ch == "]":
            self.bracket = max(self.bracket - 1, 0)
        elif ch == "{":
            self.brace += 1
        elif ch == "}":
            self.brace = max(self.brace - 1, 0)
        else:
            return True
        return False


def split_top_level(text: str, separator: str) -> list[str]:
    """Split ``text`` on ``separator`` outside strings and brackets; pieces are stripped."""
    results: list[str] = []
    start = 0
    tracker = _DepthTracker()
    for index, ch in enumerate(text):
        if tracker.feed(ch) and ch == separator and tracker.top_level:
            results.append(text[start:index].strip())
            start = index + 1
    results.append(text[start:].strip())
    return results


def top_level_colon_index(text: str) -> int | None:
    """Return the index of the first ``:`` outside strings and brackets, or None."""
    tracker = _DepthTracker()
    for index, ch in enumerate(text):
        if tracker.feed(ch) and ch == ":" and tracker.top_level:
            return index
    return None


def extract_object_property_expression(object_text: str, prop: str) -> str:
    """Return the source expression assigned to ``prop`` in an object literal text."""
    pattern = prop + ":"
    idx = object_text.lower().find(pattern)
    if idx < 0:
        return ""
    idx += len(pattern)
    length = len(object_text)
    while idx < length and object_text[idx] in _WHITESPACE:
        idx += 1
    if idx >= length:
        return ""

    start = idx
    quote = ""
    escaped = False
    paren = bracket = brace = 0
    while idx < length:
        ch = object_text[idx]
        if quote:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == quote:
                quote = ""
        elif ch in _QUOTES:
            quote = ch
        elif ch == "(":
            paren += 1
        elif ch == ")":
            paren = max(paren - 1, 0)
        elif ch == "[":
            bracket += 1
        elif ch == "]":
            bracket = max(bracket - 1, 0)
        elif ch == "{":
            brace += 1
        elif ch == "}":
            if brace == 0:
                return object_text[start:idx].strip().removesuffix(",").strip()
            brace -= 1
        elif ch == "," and paren == 0 and bracket == 0 and brace == 0:
            return object_text[start:idx].strip()
        idx += 1
    return object_text[start:].strip()


def trim_wrapping_parens(value: str) -> str:
    """Strip surrounding whitespace and any number of enclosing parentheses."""
    while True:
        value = value.strip()
        if len(value) < 2 or value[0] != "(" or value[-1] != ")":
            return value
        value = value[1:-1]


def line_number_at_offset(text: str, offset: int) -> int:
    """Return the 1-based line number of ``offset`` in ``text``."""
    if offset <= 0:
        return 1
    return text.count("\n", 0, offset) + 1


def normalize_js_identifier(value: str) -> str:
    """Reduce a binding, parameter or key text to its bare identifier."""
    value = value.strip().removeprefix("...").strip("{}[]()").strip()
    if not value:
        return ""
    cut = min((i for i in (value.find(" "), value.find("=")) if i >= 0), default=-1)
    if cut >= 0:
        value = value[:cut]
    if "." in value:
        return value.strip()
    return value.strip(_QUOTES)


def normalize_js_property_name(value: str) -> str:
    """Reduce an object key text to its plain property name."""
    value = value.strip()
    if not value:
        return ""
    bracket = value.find("[")
    if bracket >= 0:
        value = value[:bracket]
    return normalize_js_identifier(value).strip(_QUOTES)


def first_string_literal(expr: str) -> str:
    """Return the contents of the first quoted string in ``expr``, stripped."""
    match = _STRING_LITERAL.search(expr)
    return match.group(1).strip() if match else ""


def compact_text(raw: str) -> str:
    """Drop markup tags and collapse whitespace."""
    return " ".join(_TAG.sub(" ", raw).split())


def is_reserved_js_name(name: str) -> bool:
    """Tell whether ``name`` is a keyword that patterns may mistake for a function."""
    return name in _RESERVED_JS_NAMES