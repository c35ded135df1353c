"""Route value hints passed along call chains and navigation traces."""

from __future__ import annotations

from collections.abc import Mapping, MutableMapping, Sequence
from dataclasses import dataclass, field

from wxapkgkit.analyzer.jsfunctions import JSFunction
from wxapkgkit.analyzer.jstext import (
    extract_object_property_expression,
    find_matching_brace,
    first_string_literal,
    line_number_at_offset,
    normalize_js_identifier,
    trim_wrapping_parens,
)
from wxapkgkit.analyzer.models import CallChainStep
from wxapkgkit.analyzer.navigation import (
    NAVIGATION_CALL_PATTERN,
    NavigationTarget,
    resolve_navigation_expression,
)
from wxapkgkit.analyzer.paths import normalize_route_reference

HINT_SEED_KEY = "__route_target__"

_HINT_SUFFIXES = (
    "",
    ".url",
    ".route",
    ".path",
    ".page",
    ".detail.url",
    ".detail.route",
    ".detail.path",
    ".currentTarget.dataset.url",
    ".currentTarget.dataset.route",
    ".currentTarget.dataset.path",
    ".currentTarget.dataset.page",
    ".target.dataset.url",
    ".target.dataset.route",
    ".target.dataset.path",
    ".target.dataset.page",
)


@dataclass(frozen=True)
class RouteValueHint:
    """A known raw route value for an expression."""

    raw: str
    dynamic: bool = False


@dataclass
class NavigationTrace:
    """A navigation call reached from a handler, with the calls leading to it."""

    method: str
    target_page: str
    raw_target: str
    dynamic: bool
    source_file: str
    line_number: int
    call_chain: list[CallChainStep] = field(default_factory=list)


Hints = Mapping[str, RouteValueHint]


def _squash(value: str) -> str:
    return "".join(value.split())


def lookup_route_hint(hints: Hints | None, expr: str) -> RouteValueHint | None:
    """Return the non-empty hint stored for ``expr``, ignoring whitespace."""
    if not hints:
        return None
    expr = trim_wrapping_parens(expr.strip())
    if not expr:
        return None
    hint = hints.get(expr)
    if hint is not None and hint.raw:
        return hint
    normalized = _squash(expr)
    if normalized != expr:
        hint = hints.get(normalized)
        if hint is not None and hint.raw:
            return hint
    return None


def resolve_route_value_hint(
    expr: str, current_route: str, hints: Hints | None
) -> RouteValueHint | None:
    """Work out the raw route an expression stands for, from hints or literals."""
    value = trim_wrapping_parens(expr.removesuffix(",").strip())
    if not value:
        return None

    hint = lookup_route_hint(hints, value)
    if hint is not None:
        return hint

    if len(value) >= 2:
        if value[0] == value[-1] and value[0] in "'\"":
            return RouteValueHint(value[1:-1])
        if value[0] == "`" and value[-1] == "`":
            return RouteValueHint(value[1:-1], "${" in value)

    literal = first_string_literal(value)
    if literal:
        return RouteValueHint(literal, True)
    return None


def resolve_navigation_expression_with_hints(
    expr: str, current_route: str, hints: Hints | None
) -> NavigationTarget | None:
    """Resolve a ``url`` expression, preferring what the hints say about it."""
    hint = resolve_route_value_hint(expr, current_route, hints)
    if hint is not None:
        target = normalize_route_reference(hint.raw, current_route)
        if target is not None:
            return NavigationTarget(target, hint.raw, hint.dynamic)
        return NavigationTarget("", hint.raw, True) if hint.raw else None
    return resolve_navigation_expression(expr, current_route)


def add_raw_target_hints(
    hints: MutableMapping[str, RouteValueHint], param_name: str, raw_target: str, dynamic: bool
) -> None:
    """Record ``raw_target`` for a parameter and the event fields usually read from it."""
    param_name = normalize_js_identifier(param_name)
    raw_target = raw_target.strip()
    if not param_name or not raw_target:
        return
    hint = RouteValueHint(raw_target, dynamic)
    for suffix in _HINT_SUFFIXES:
        key = param_name + suffix
        hints[key] = hint
        hints[_squash(key)] = hint


def build_call_hints(
    route: str, callee: JSFunction, args: Sequence[str], base_hints: Hints | None
) -> dict[str, RouteValueHint]:
    """Map the callee's parameters to the route values its arguments carry."""
    results: dict[str, RouteValueHint] = {}
    for param, arg in zip(callee.params, args):
        hint = resolve_route_value_hint(arg, route, base_hints)
        if hint is None or not hint.raw:
            continue
        add_raw_target_hints(results, param, hint.raw, hint.dynamic)
    return results


def extract_function_navigation_traces(
    route: str, source_file: str, function: JSFunction, hints: Hints | None
) -> list[NavigationTrace]:
    """Return the navigation calls inside a function body."""
    body = function.body
    results: list[NavigationTrace] = []
    for match in NAVIGATION_CALL_PATTERN.finditer(body):
        block_start = body.find("{", match.start(), match.end())
        if block_start < 0:
            continue
        block_end = find_matching_brace(body, block_start)
        if block_end is None or block_end <= block_start:
            continue
        url_expr = extract_object_property_expression(body[block_start : block_end + 1], "url")
        resolved = resolve_navigation_expression_with_hints(url_expr, route, hints)
        if resolved is None:
            continue
        results.append(
            NavigationTrace(
                method=match.group(1).strip(),
                target_page=resolved.target_page,
                raw_target=resolved.raw_target,
                dynamic=resolved.dynamic,
                source_file=source_file,
                line_number=function.line_number + line_number_at_offset(body, match.start()) - 1,
            )
        )
    return results


def prepend_call_chain_step(chain: Sequence[CallChainStep], step: CallChainStep) -> list[CallChainStep]:
    """Put ``step`` in front of ``chain`` unless the chain already starts with it."""
    if chain:
        first = chain[0]
        if (first.file_path, first.function_name, first.kind) == (
            step.file_path,
            step.function_name,
            step.kind,
        ):
            return list(chain)
    return [step, *chain]


def dedupe_navigation_traces(traces: Sequence[NavigationTrace]) -> list[NavigationTrace]:
    """Keep one trace per call site, the one with the longest call chain."""
    best: dict[tuple[str, str, str, bool, str, int], NavigationTrace] = {}
    for trace in traces:
        key = (
            trace.method,
            trace.target_page,
            trace.raw_target,
            trace.dynamic,
            trace.source_file,
            trace.line_number,
        )
        current = best.get(key)
        if current is None or len(trace.call_chain) > len(current.call_chain):
            best[key] = trace
    return list(best.values())


def call_chain_source_type(chain: Sequence[CallChainStep]) -> str:
    """Classify an edge by the calls that led to it."""
    if any(step.kind == "shared_helper" for step in chain):
        return "shared-router"
    if len(chain) > 1:
        return "call-chain"
    return "js"