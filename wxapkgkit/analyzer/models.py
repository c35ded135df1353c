"""Data model of a page and route analysis."""

from __future__ import annotations

import dataclasses
import json
from dataclasses import dataclass
from typing import Any


def _f(default: Any = dataclasses.MISSING, *, factory: Any = dataclasses.MISSING,
       omit: bool = False, name: str | None = None) -> Any:
    metadata = {"omitempty": omit}
    if name is not None:
        metadata["json"] = name
    if factory is not dataclasses.MISSING:
        return dataclasses.field(default_factory=factory, metadata=metadata)
    return dataclasses.field(default=default, metadata=metadata)


def _serialize(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        result: dict[str, Any] = {}
        for fld in dataclasses.fields(value):
            item = getattr(value, fld.name)
            if fld.metadata.get("omitempty") and not dataclasses.is_dataclass(item) and not item:
                continue
            result[fld.metadata.get("json", fld.name)] = _serialize(item)
        return result
    if isinstance(value, (list, tuple)):
        return [_serialize(item) for item in value]
    return value


class _Serializable:
    def to_dict(self) -> dict[str, Any]:
        """Return the JSON-ready form, leaving out empty optional fields."""
        return _serialize(self)


@dataclass
class PageFiles(_Serializable):
    js: str = _f("", omit=True)
    wxml: str = _f("", omit=True)
    wxss: str = _f("", omit=True)
    json: str = _f("", omit=True)


@dataclass
class PageAPIUsage(_Serializable):
    name: str = ""
    method: str = ""
    raw_url: str = ""
    file_path: str = ""
    line_number: int = 0
    source_rule: str = ""
    source_kind: str = _f("", omit=True)
    via_module: str = _f("", omit=True)


@dataclass
class TabBarItem(_Serializable):
    page_path: str = ""
    text: str = _f("", omit=True)
    icon_path: str = _f("", omit=True)
    selected_icon_path: str = _f("", omit=True)


@dataclass
class SubPackageInfo(_Serializable):
    root: str = ""
    page_count: int = 0
    pages: list[str] = _f(factory=list)


@dataclass(frozen=True)
class CallChainStep(_Serializable):
    """One call between a page event and the final navigation."""

    file_path: str = ""
    function_name: str = ""
    kind: str = ""
    line_number: int = _f(0, omit=True)


@dataclass
class NavigationEdge(_Serializable):
    source_page: str = ""
    target_page: str = ""
    raw_target: str = ""
    method: str = ""
    source_type: str = ""
    source_file: str = ""
    line_number: int = 0
    target_exists: bool = False
    handler_name: str = _f("", omit=True)
    trigger_event: str = _f("", omit=True)
    trigger_text: str = _f("", omit=True)
    dynamic: bool = _f(False, omit=True)
    call_chain: list[CallChainStep] = _f(factory=list, omit=True)


@dataclass
class SharedRouterHelper(_Serializable):
    file_path: str = ""
    function_name: str = ""
    used_by_pages: list[str] = _f(factory=list, omit=True)
    methods: list[str] = _f(factory=list, omit=True)
    target_hints: list[str] = _f(factory=list, omit=True)
    dynamic: bool = _f(False, omit=True)


@dataclass
class RouteSummary(_Serializable):
    total_pages: int = 0
    main_pages: int = 0
    sub_package_pages: int = _f(0, name="subpackage_pages")
    tab_bar_pages: int = _f(0, name="tabbar_pages")
    pages_with_api: int = 0
    api_endpoint_count: int = 0
    indirect_api_endpoint_count: int = 0
    referenced_components: int = 0
    navigation_edge_count: int = 0
    dynamic_navigation_edge_count: int = 0
    call_chain_edge_count: int = 0
    shared_router_helper_count: int = 0
    external_mini_program_count: int = 0
    orphan_page_count: int = 0


@dataclass
class PageNode(_Serializable):
    route: str = ""
    title: str = _f("", omit=True)
    package_type: str = ""
    package_root: str = _f("", omit=True)
    is_entry: bool = False
    is_tab_bar: bool = False
    files: PageFiles = _f(factory=PageFiles)
    using_components: list[str] = _f(factory=list, omit=True)
    dependencies: list[str] = _f(factory=list, omit=True)
    api_usage: list[PageAPIUsage] = _f(factory=list, omit=True)


@dataclass
class RouteManifest(_Serializable):
    """Result of analysing an unpacked mini program."""

    app_id: str = ""
    config_source: str = ""
    generated_at: str = ""
    entry_page: str = _f("", omit=True)
    external_mini_programs: list[str] = _f(factory=list, omit=True)
    tab_bar: list[TabBarItem] = _f(factory=list, omit=True)
    sub_packages: list[SubPackageInfo] = _f(factory=list, omit=True, name="subpackages")
    pages: list[PageNode] = _f(factory=list)
    navigation_edges: list[NavigationEdge] = _f(factory=list, omit=True)
    shared_router_helpers: list[SharedRouterHelper] = _f(factory=list, omit=True)
    orphan_pages: list[str] = _f(factory=list, omit=True)
    summary: RouteSummary = _f(factory=RouteSummary)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON-ready form, leaving out empty optional fields."""
        return _serialize(self)

    def to_json(self) -> str:
        """Return the manifest as indented JSON text."""
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=2)