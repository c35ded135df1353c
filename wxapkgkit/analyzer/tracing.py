"""Following page handlers through helper calls to the navigation they trigger."""

from __future__ import annotations

import os
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from wxapkgkit.analyzer.hints import (
    HINT_SEED_KEY,
    NavigationTrace,
    RouteValueHint,
    add_raw_target_hints,
    build_call_hints,
    call_chain_source_type,
    dedupe_navigation_traces,
    extract_function_navigation_traces,
    prepend_call_chain_step,
)
from wxapkgkit.analyzer.jsfunctions import JSFunction, extract_call_expressions
from wxapkgkit.analyzer.jsmodule import JSModule, load_module
from wxapkgkit.analyzer.jstext import normalize_js_identifier
from wxapkgkit.analyzer.models import CallChainStep, NavigationEdge, SharedRouterHelper
from wxapkgkit.analyzer.navigation import dedupe_edges
from wxapkgkit.analyzer.paths import normalize_route_reference

MAX_CALL_TRACE_DEPTH = 6
LIFECYCLE_HANDLERS = ("onLoad", "onShow", "onReady", "onLaunch", "created", "attached")
_SELF_REFERENCES = frozenset({"this", "that", "self", "ctx", "vm"})


class RouteAnalyzerContext:
    """Module cache and page-script registry shared by one analysis run."""

    def __init__(self, root_dir: str | os.PathLike[str]) -> None:
        self.root_dir = os.fspath(root_dir)
        self.page_scripts: set[str] = set()
        self._modules: dict[str, JSModule | None] = {}

    def mark_page_script(self, js_path: str) -> None:
        """Remember that ``js_path`` is the script of a page."""
        if js_path:
            self.page_scripts.add(js_path)

    def load_module(self, rel_path: str) -> JSModule | None:
        """Load a script once and return the cached result afterwards."""
        rel_path = rel_path.strip()
        if not rel_path:
            return None
        if rel_path not in self._modules:
            self._modules[rel_path] = load_module(self.root_dir, rel_path)
        return self._modules[rel_path]

    def trace_function(
        self,
        route: str,
        module: JSModule | None,
        function_name: str,
        hints: Mapping[str, RouteValueHint] | None,
        depth: int,
        visited: Iterable[str],
    ) -> list[NavigationTrace]:
        """Return the navigation calls reachable from ``function_name`` in ``module``."""
        if module is None or depth > MAX_CALL_TRACE_DEPTH:
            return []
        function = module.resolve_function(function_name)
        if function is None:
            return []

        visit_key = f"{module.rel_path}#{function.name}"
        visited = frozenset(visited)
        if visit_key in visited:
            return []
        next_visited = visited | {visit_key}

        local_hints: dict[str, RouteValueHint] = dict(hints or {})
        seed = local_hints.get(HINT_SEED_KEY)
        if seed is not None and seed.raw:
            for param in function.params:
                add_raw_target_hints(local_hints, param, seed.raw, seed.dynamic)

        current_step = self.build_call_chain_step(module.rel_path, function, depth)
        results: list[NavigationTrace] = []

        for trace in extract_function_navigation_traces(route, module.rel_path, function, local_hints):
            trace.call_chain = prepend_call_chain_step(trace.call_chain, current_step)
            results.append(trace)

        for call in extract_call_expressions(function.body):
            target = self.resolve_call_target(module, function, call.callee)
            if target is None:
                continue
            target_module, target_name = target
            callee = target_module.resolve_function(target_name)
            if callee is None:
                continue
            call_hints = build_call_hints(route, callee, call.args, local_hints)
            for trace in self.trace_function(
                route, target_module, target_name, call_hints, depth + 1, next_visited
            ):
                trace.call_chain = prepend_call_chain_step(trace.call_chain, current_step)
                results.append(trace)

        return dedupe_navigation_traces(results)

    def resolve_call_target(
        self, module: JSModule, current: JSFunction, callee: str
    ) -> tuple[JSModule, str] | None:
        """Find the module and function a call expression refers to, if known."""
        parts = callee.strip().split(".")
        resolved: tuple[JSModule | None, str] | None = None

        if len(parts) == 1:
            name = normalize_js_identifier(parts[0])
            if not name or name == current.name:
                return None
            if name in module.functions:
                resolved = (module, name)
            elif name in module.named_imports:
                binding = module.named_imports[name]
                resolved = (self.load_module(binding.module_path), binding.export_name)
        elif len(parts) == 2:
            left = normalize_js_identifier(parts[0])
            right = normalize_js_identifier(parts[1])
            if left in _SELF_REFERENCES:
                if right and right != current.name and right in module.functions:
                    resolved = (module, right)
            elif left in module.module_aliases:
                resolved = (self.load_module(module.module_aliases[left]), right)
        elif len(parts) == 3:
            left = normalize_js_identifier(parts[0])
            middle = normalize_js_identifier(parts[1])
            right = normalize_js_identifier(parts[2])
            if middle == "default" and left in module.module_aliases:
                resolved = (self.load_module(module.module_aliases[left]), right)

        if resolved is None or resolved[0] is None or not resolved[1]:
            return None
        return resolved[0], resolved[1]

    def build_call_chain_step(self, rel_path: str, function: JSFunction, depth: int) -> CallChainStep:
        """Describe one step of a call chain, classifying page code versus shared code."""
        kind = "shared_helper"
        if rel_path in self.page_scripts:
            kind = "page_handler" if depth == 0 else "page_helper"
        return CallChainStep(
            file_path=rel_path,
            function_name=function.name,
            kind=kind,
            line_number=function.line_number,
        )


@dataclass
class _HelperAccumulator:
    file_path: str
    function_name: str
    pages: set[str] = field(default_factory=set)
    methods: set[str] = field(default_factory=set)
    targets: set[str] = field(default_factory=set)
    dynamic: bool = False


def _sorted_present(values: Iterable[str]) -> list[str]:
    return sorted(value for value in values if value.strip())


def build_shared_router_helpers(manifest: Any) -> list[SharedRouterHelper]:
    """Summarise shared helper functions that appear in navigation call chains."""
    accumulators: dict[tuple[str, str], _HelperAccumulator] = {}
    for edge in manifest.navigation_edges:
        for step in edge.call_chain:
            if step.kind != "shared_helper":
                continue
            key = (step.file_path, step.function_name)
            acc = accumulators.get(key)
            if acc is None:
                acc = accumulators[key] = _HelperAccumulator(step.file_path, step.function_name)
            acc.pages.add(edge.source_page)
            acc.methods.add(edge.method)
            if edge.raw_target:
                acc.targets.add(edge.raw_target)
            if edge.dynamic:
                acc.dynamic = True

    helpers = [
        SharedRouterHelper(
            file_path=acc.file_path,
            function_name=acc.function_name,
            used_by_pages=_sorted_present(acc.pages),
            methods=_sorted_present(acc.methods),
            target_hints=_sorted_present(acc.targets),
            dynamic=acc.dynamic,
        )
        for acc in accumulators.values()
    ]
    helpers.sort(key=lambda helper: (helper.file_path, helper.function_name))
    return helpers


def extract_call_chain_navigation_edges(
    ctx: RouteAnalyzerContext, route: str, js_path: str, actions: Sequence[Any]
) -> list[NavigationEdge]:
    """Follow each template tap handler through its calls to navigation edges."""
    module = ctx.load_module(js_path)
    if module is None or not actions:
        return []

    results: list[NavigationEdge] = []
    for action in actions:
        if not action.handler_name:
            continue
        hints: dict[str, RouteValueHint] = {}
        if action.raw_target:
            hints[HINT_SEED_KEY] = RouteValueHint(action.raw_target, "{{" in action.raw_target)

        for trace in ctx.trace_function(route, module, action.handler_name, hints, 0, set()):
            edge = NavigationEdge(
                source_page=route,
                target_page=trace.target_page,
                raw_target=trace.raw_target,
                method=trace.method,
                source_type=call_chain_source_type(trace.call_chain),
                source_file=action.source_file,
                line_number=action.line_number,
                handler_name=action.handler_name,
                trigger_event=action.trigger_event,
                trigger_text=action.trigger_text,
                dynamic=trace.dynamic,
                call_chain=list(trace.call_chain),
            )
            if action.raw_target and (not edge.raw_target or "dataset." in edge.raw_target):
                edge.raw_target = action.raw_target
                target = normalize_route_reference(action.raw_target, route)
                if target is not None:
                    edge.target_page = target
                edge.dynamic = edge.dynamic or "{{" in action.raw_target
            if not edge.target_page and not edge.raw_target:
                continue
            results.append(edge)

    return dedupe_edges(results)


def extract_lifecycle_navigation_edges(
    ctx: RouteAnalyzerContext, route: str, js_path: str
) -> list[NavigationEdge]:
    """Return navigation reached from page and component lifecycle hooks."""
    module = ctx.load_module(js_path)
    if module is None:
        return []

    results: list[NavigationEdge] = []
    for handler_name in LIFECYCLE_HANDLERS:
        if module.resolve_function(handler_name) is None:
            continue
        for trace in ctx.trace_function(route, module, handler_name, None, 0, set()):
            if not trace.target_page and not trace.raw_target:
                continue
            results.append(
                NavigationEdge(
                    source_page=route,
                    target_page=trace.target_page,
                    raw_target=trace.raw_target,
                    method=trace.method,
                    source_type=call_chain_source_type(trace.call_chain),
                    source_file=js_path,
                    line_number=trace.line_number,
                    handler_name=handler_name,
                    dynamic=trace.dynamic,
                    call_chain=list(trace.call_chain),
                )
            )
    return dedupe_edges(results)