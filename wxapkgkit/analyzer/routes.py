"""Page and route analysis of an unpacked mini program."""

from __future__ import annotations

import argparse
import json
import os
import re
import sys
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from wxapkgkit.analyzer.models import (
    NavigationEdge,
    PageAPIUsage,
    PageNode,
    RouteManifest,
    RouteSummary,
    SubPackageInfo,
    TabBarItem,
)
from wxapkgkit.analyzer.navigation import dedupe_edges, extract_js_navigation_edges, handler_edge_key
from wxapkgkit.analyzer.paths import (
    dedupe_and_sort,
    detect_page_files,
    extract_js_dependencies,
    is_generated_artifact,
    is_internal_page_url,
    join_route,
    normalize_asset_path,
    normalize_component_path,
    normalize_route,
    string_from_map,
)
from wxapkgkit.analyzer.tracing import (
    RouteAnalyzerContext,
    build_shared_router_helpers,
    extract_call_chain_navigation_edges,
    extract_lifecycle_navigation_edges,
)
from wxapkgkit.analyzer.wxml import WxmlAction, extract_wxml_navigation_edges

CONFIG_CANDIDATES = ("app.json", "app-config.json")
_PAGE_SCRIPT = re.compile(rb"\bPage\s*\(")
_WORKSPACE_DIR = ".gwxapkg"


class RouteAnalysisError(Exception):
    """The app configuration is missing or cannot be read."""


@dataclass(frozen=True)
class ApiEndpoint:
    """An API call found in a script by an endpoint extractor."""

    name: str
    method: str
    raw_url: str
    file_path: str
    line_number: int
    source_rule: str


ApiExtractor = Callable[[str, bytes], Iterable[ApiEndpoint]]


def _field(data: Mapping[str, Any], key: str, kind: type, default: Any) -> Any:
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, kind):
        raise ValueError(f"field {key!r} has the wrong type")
    return value


def _string_list(data: Mapping[str, Any], key: str) -> list[str]:
    values = _field(data, key, list, [])
    if not all(value is None or isinstance(value, str) for value in values):
        raise ValueError(f"field {key!r} must hold strings")
    return [value or "" for value in values]


def _subpackages(data: Mapping[str, Any], key: str) -> list[tuple[str, list[str]]]:
    results: list[tuple[str, list[str]]] = []
    for entry in _field(data, key, list, []):
        if entry is None:
            results.append(("", []))
            continue
        if not isinstance(entry, dict):
            raise ValueError(f"field {key!r} must hold objects")
        results.append((_field(entry, "root", str, ""), _string_list(entry, "pages")))
    return results


@dataclass
class AppConfig:
    """The parts of ``app.json`` the route analysis uses."""

    pages: list[str] = field(default_factory=list)
    entry_page_path: str = ""
    window: dict[str, Any] = field(default_factory=dict)
    global_config: dict[str, Any] = field(default_factory=dict)
    tab_bar: dict[str, Any] = field(default_factory=dict)
    sub_packages: list[tuple[str, list[str]]] = field(default_factory=list)
    navigate_to_mini_program_app_id_list: list[str] = field(default_factory=list)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> AppConfig:
        """Build a config from decoded JSON; raise ValueError on mistyped fields."""
        config = cls(
            pages=_string_list(data, "pages"),
            entry_page_path=_field(data, "entryPagePath", str, ""),
            window=_field(data, "window", dict, {}),
            global_config=_field(data, "global", dict, {}),
            tab_bar=_field(data, "tabBar", dict, {}),
            sub_packages=_subpackages(data, "subPackages") + _subpackages(data, "subpackages"),
            navigate_to_mini_program_app_id_list=_string_list(data, "navigateToMiniProgramAppIdList"),
        )
        if not config.window and config.global_config:
            window = config.global_config.get("window")
            if isinstance(window, dict):
                config.window = window
        return config


def load_app_config(root_dir: str | os.PathLike[str]) -> tuple[AppConfig, str]:
    """Read the first usable app configuration; return it with its file name."""
    for name in CONFIG_CANDIDATES:
        candidate = os.path.join(os.fspath(root_dir), name)
        try:
            raw = Path(candidate).read_bytes()
        except OSError:
            continue
        try:
            data = json.loads(raw.decode("utf-8", errors="replace"))
            if data is None:
                data = {}
            if not isinstance(data, dict):
                raise ValueError("top level must be an object")
            config = AppConfig.from_mapping(data)
        except ValueError as exc:
            raise RouteAnalysisError(f"failed to parse config file {candidate}: {exc}") from exc
        if not config.pages and not config.sub_packages:
            continue
        return config, name
    raise RouteAnalysisError("no usable app.json or app-config.json found")


def extract_tab_bar(tab_bar: Mapping[str, Any] | None) -> tuple[list[TabBarItem], set[str]]:
    """Return the tab bar items sorted by page and the set of tab pages."""
    if not tab_bar:
        return [], set()
    entries = tab_bar.get("list")
    if not isinstance(entries, list):
        return [], set()
    items: list[TabBarItem] = []
    pages: set[str] = set()
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        page_path = normalize_route(string_from_map(entry, "pagePath"))
        if not page_path:
            continue
        pages.add(page_path)
        items.append(
            TabBarItem(
                page_path=page_path,
                text=string_from_map(entry, "text"),
                icon_path=normalize_asset_path(string_from_map(entry, "iconPath")),
                selected_icon_path=normalize_asset_path(string_from_map(entry, "selectedIconPath")),
            )
        )
    items.sort(key=lambda item: item.page_path)
    return items, pages


def _read_bytes(root_dir: str | os.PathLike[str], rel_path: str) -> bytes | None:
    try:
        return Path(os.fspath(root_dir), *rel_path.lstrip("/").split("/")).read_bytes()
    except OSError:
        return None


def parse_page_metadata(
    root_dir: str | os.PathLike[str], route: str, json_path: str
) -> tuple[str, list[str]]:
    """Return a page's title and its resolved component paths from its JSON file."""
    if not json_path:
        return "", []
    raw = _read_bytes(root_dir, json_path)
    if raw is None:
        return "", []
    try:
        data = json.loads(raw.decode("utf-8", errors="replace"))
    except ValueError:
        return "", []
    if data is None:
        return "", []
    if not isinstance(data, dict):
        return "", []
    title = data.get("navigationBarTitleText") or ""
    components = data.get("usingComponents") or {}
    if not isinstance(title, str) or not isinstance(components, dict):
        return "", []
    if not all(isinstance(value, str) for value in components.values()):
        return "", []
    resolved = [normalize_component_path(route, value) for value in components.values()]
    return title, dedupe_and_sort(resolved)


def sort_page_api_usage(results: list[PageAPIUsage]) -> list[PageAPIUsage]:
    """Sort API usages in place by kind, line, method, module and URL; return them."""
    results.sort(key=lambda u: (u.source_kind, u.line_number, u.method, u.via_module, u.raw_url))
    return results


def extract_page_api_usage(
    root_dir: str | os.PathLike[str], route: str, js_path: str, api_extractor: ApiExtractor | None
) -> list[PageAPIUsage]:
    """Return API calls made directly in a page script."""
    if not js_path or api_extractor is None:
        return []
    data = _read_bytes(root_dir, js_path)
    if data is None:
        return []
    results = [
        PageAPIUsage(
            name=endpoint.name,
            method=endpoint.method,
            raw_url=endpoint.raw_url,
            file_path=endpoint.file_path,
            line_number=endpoint.line_number,
            source_rule=endpoint.source_rule,
            source_kind="direct",
            via_module="",
        )
        for endpoint in api_extractor(js_path, data)
        if not is_internal_page_url(root_dir, route, endpoint.raw_url)
    ]
    return sort_page_api_usage(results)


def extract_indirect_api_usage(
    root_dir: str | os.PathLike[str],
    route: str,
    dependencies: Iterable[str],
    api_extractor: ApiExtractor | None,
) -> list[PageAPIUsage]:
    """Return API calls made in the modules a page imports."""
    if api_extractor is None:
        return []
    results: list[PageAPIUsage] = []
    seen: set[tuple[str, str, str]] = set()
    for dependency in dependencies:
        data = _read_bytes(root_dir, dependency)
        if data is None:
            continue
        for endpoint in api_extractor(dependency, data):
            if is_internal_page_url(root_dir, route, endpoint.raw_url):
                continue
            key = (dependency, endpoint.method, endpoint.raw_url)
            if key in seen:
                continue
            seen.add(key)
            results.append(
                PageAPIUsage(
                    name=endpoint.name,
                    method=endpoint.method,
                    raw_url=endpoint.raw_url,
                    file_path=endpoint.file_path,
                    line_number=endpoint.line_number,
                    source_rule=endpoint.source_rule,
                    source_kind="indirect",
                    via_module=dependency,
                )
            )
    return sort_page_api_usage(results)


def extract_navigation_edges(
    ctx: RouteAnalyzerContext, route: str, js_path: str, wxml_path: str
) -> list[NavigationEdge]:
    """Collect every navigation edge leaving a page from its script and template."""
    results: list[NavigationEdge] = []
    by_handler: dict[str, list[NavigationEdge]] = {}
    used_keys: set[str] = set()

    if js_path:
        for edge in extract_js_navigation_edges(ctx.root_dir, route, js_path):
            if edge.handler_name:
                by_handler.setdefault(edge.handler_name, []).append(edge)
            else:
                results.append(edge)

    actions: list[WxmlAction] = []
    if wxml_path:
        data = _read_bytes(ctx.root_dir, wxml_path)
        if data is not None:
            found = extract_wxml_navigation_edges(
                route, wxml_path, data.decode("utf-8", errors="replace"), by_handler
            )
            results.extend(found.edges)
            actions = found.actions
            used_keys.update(found.consumed)

    if js_path:
        results.extend(extract_call_chain_navigation_edges(ctx, route, js_path, actions))
        results.extend(extract_lifecycle_navigation_edges(ctx, route, js_path))

    for handler_name, edges in by_handler.items():
        results.extend(edge for edge in edges if handler_edge_key(handler_name, edge) not in used_keys)
    return dedupe_edges(results)


def _extension(name: str) -> str:
    dot = name.rfind(".")
    return name[dot:] if dot >= 0 else ""


def find_orphan_pages(root_dir: str | os.PathLike[str], declared_routes: Iterable[str]) -> list[str]:
    """Return page scripts on disk that the app configuration does not declare."""
    root = os.fspath(root_dir)
    declared = set(declared_routes)
    found: set[str] = set()
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = [name for name in dirnames if name != _WORKSPACE_DIR]
        for filename in filenames:
            full = os.path.join(dirpath, filename)
            rel = os.path.relpath(full, root).replace(os.sep, "/")
            ext = _extension(filename)
            if is_generated_artifact(rel) or ext != ".js":
                continue
            route = normalize_route(rel[: -len(ext)])
            if not route or route in declared or route in found:
                continue
            try:
                content = Path(full).read_bytes()
            except OSError:
                continue
            if _PAGE_SCRIPT.search(content):
                found.add(route)
    return sorted(found)


def build_summary(manifest: RouteManifest) -> RouteSummary:
    """Count pages, API usage, components and edges of a manifest."""
    pages = manifest.pages
    edges = manifest.navigation_edges
    usages = [usage for page in pages for usage in page.api_usage]
    components = {component for page in pages for component in page.using_components}
    sub_pages = sum(1 for page in pages if page.package_type == "subpackage")
    return RouteSummary(
        total_pages=len(pages),
        main_pages=len(pages) - sub_pages,
        sub_package_pages=sub_pages,
        tab_bar_pages=len(manifest.tab_bar),
        pages_with_api=sum(1 for page in pages if page.api_usage),
        api_endpoint_count=len(usages),
        indirect_api_endpoint_count=sum(1 for usage in usages if usage.source_kind == "indirect"),
        referenced_components=len(components),
        navigation_edge_count=len(edges),
        dynamic_navigation_edge_count=sum(1 for edge in edges if edge.dynamic),
        call_chain_edge_count=sum(1 for edge in edges if len(edge.call_chain) > 1),
        shared_router_helper_count=len(manifest.shared_router_helpers),
        external_mini_program_count=len(manifest.external_mini_programs),
        orphan_page_count=len(manifest.orphan_pages),
    )


def sort_manifest(manifest: RouteManifest) -> None:
    """Put pages, subpackages, helpers and edges of a manifest in stable order."""
    manifest.pages.sort(key=lambda page: page.route)
    manifest.sub_packages.sort(key=lambda info: info.root)
    manifest.shared_router_helpers.sort(key=lambda h: (h.file_path, h.function_name))
    manifest.navigation_edges.sort(
        key=lambda e: (
            e.source_page,
            e.line_number,
            e.method,
            e.handler_name,
            e.trigger_text,
            -len(e.call_chain),
            e.target_page,
        )
    )


def analyze_mini_program(
    root_dir: str | os.PathLike[str], app_id: str, api_extractor: ApiExtractor | None = None
) -> RouteManifest:
    """Analyse pages and navigation of an unpacked mini program directory.

    ``api_extractor`` is called with a script path and its bytes and yields the
    API endpoints found in it; without it no API usage is recorded.
    """
    root = os.fspath(root_dir)
    app, config_source = load_app_config(root)

    entry_page = normalize_route(app.entry_page_path)
    if not entry_page and app.pages:
        entry_page = normalize_route(app.pages[0])

    global_title = string_from_map(app.window, "navigationBarTitleText")
    tab_bar_items, tab_pages = extract_tab_bar(app.tab_bar)
    ctx = RouteAnalyzerContext(root)

    declared: dict[str, tuple[str, str]] = {}

    def add_page(route: str, package_type: str, package_root: str) -> None:
        normalized = normalize_route(route)
        if normalized and normalized not in declared:
            declared[normalized] = (package_type, package_root)

    for page in app.pages:
        add_page(page, "main", "")

    sub_packages: list[SubPackageInfo] = []
    for raw_root, raw_pages in app.sub_packages:
        root_route = normalize_route(raw_root)
        pages: list[str] = []
        for page in raw_pages:
            full_route = join_route(root_route, page)
            add_page(full_route, "subpackage", root_route)
            normalized = normalize_route(full_route)
            if normalized:
                pages.append(normalized)
        pages = dedupe_and_sort(pages)
        sub_packages.append(SubPackageInfo(root=root_route, page_count=len(pages), pages=pages))

    page_nodes: list[PageNode] = []
    edges: list[NavigationEdge] = []
    for route in sorted(declared):
        package_type, package_root = declared[route]
        files = detect_page_files(root, route)
        ctx.mark_page_script(files.js)
        title, components = parse_page_metadata(root, route, files.json)
        dependencies = extract_js_dependencies(root, files.js)
        api_usage = extract_page_api_usage(root, route, files.js, api_extractor)
        api_usage += extract_indirect_api_usage(root, route, dependencies, api_extractor)
        sort_page_api_usage(api_usage)
        edges.extend(extract_navigation_edges(ctx, route, files.js, files.wxml))
        page_nodes.append(
            PageNode(
                route=route,
                title=title or global_title,
                package_type=package_type,
                package_root=package_root,
                is_entry=route == entry_page,
                is_tab_bar=route in tab_pages,
                files=files,
                using_components=components,
                dependencies=dependencies,
                api_usage=api_usage,
            )
        )

    routes = {page.route for page in page_nodes}
    for edge in edges:
        edge.target_exists = edge.target_page in routes

    manifest = RouteManifest(
        app_id=app_id,
        config_source=config_source,
        generated_at=time.strftime("%Y-%m-%d %H:%M:%S"),
        entry_page=entry_page,
        external_mini_programs=dedupe_and_sort(app.navigate_to_mini_program_app_id_list),
        tab_bar=tab_bar_items,
        sub_packages=sub_packages,
        pages=page_nodes,
        navigation_edges=edges,
        shared_router_helpers=[],
        orphan_pages=find_orphan_pages(root, routes),
        summary=RouteSummary(),
    )
    manifest.shared_router_helpers = build_shared_router_helpers(manifest)
    sort_manifest(manifest)
    manifest.summary = build_summary(manifest)
    return manifest


def main(argv: list[str] | None = None) -> int:
    """Analyse a directory and print or write the route manifest as JSON."""
    parser = argparse.ArgumentParser(
        prog="wxapkgkit-routes", description="Map pages and navigation of an unpacked mini program."
    )
    parser.add_argument("root_dir", help="unpacked mini program directory")
    parser.add_argument("--app-id", default="", help="AppID recorded in the manifest")
    parser.add_argument("-o", "--output", help="file to write the manifest to")
    args = parser.parse_args(argv)

    try:
        manifest = analyze_mini_program(args.root_dir, args.app_id)
    except RouteAnalysisError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    text = manifest.to_json()
    if args.output:
        Path(args.output).write_text(text, encoding="utf-8")
    else:
        print(text)
    return 0