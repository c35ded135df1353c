"""Import, export and function tables of a single JavaScript module."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field

from wxapkgkit.analyzer.jsfunctions import JSFunction, extract_js_functions
from wxapkgkit.analyzer.jstext import (
    find_matching_brace,
    normalize_js_identifier,
    normalize_js_property_name,
    split_top_level,
    top_level_colon_index,
)
from wxapkgkit.analyzer.paths import resolve_js_import

_M = re.MULTILINE | re.ASCII
_MS = re.MULTILINE | re.DOTALL | re.ASCII
_Q = "[\"'`]"
_SPEC = "([^\"'`]+)"

_REQUIRE_ASSIGN = re.compile(
    r"\b(?:const|let|var)\s+([A-Za-z_$][\w$]*)\s*=\s*require\(\s*" + _Q + _SPEC + _Q + r"\s*\)", _M
)
_REQUIRE_DESTRUCT = re.compile(
    r"\b(?:const|let|var)\s*\{\s*([^}]+)\s*\}\s*=\s*require\(\s*" + _Q + _SPEC + _Q + r"\s*\)", _MS
)
_IMPORT_DEFAULT = re.compile(
    r"\bimport\s+([A-Za-z_$][\w$]*)\s*(?:,\s*\{[^}]*\})?\s+from\s+" + _Q + _SPEC + _Q, _M
)
_IMPORT_NAMED = re.compile(
    r"\bimport\s+(?:[A-Za-z_$][\w$]*\s*,\s*)?\{\s*([^}]+)\s*\}\s*from\s*" + _Q + _SPEC + _Q, _MS
)
_EXPORT_DIRECT = re.compile(
    r"\b(?:module\.)?exports\.([A-Za-z_$][\w$]*)\s*=\s*([A-Za-z_$][\w$]*)\b", _M
)
_EXPORT_NAMED_BLOCK = re.compile(r"\bexport\s*\{\s*([^}]+)\s*\}", _MS)
_EXPORT_FUNCTION = re.compile(r"\bexport\s+(?:async\s+)?function\s+([A-Za-z_$][\w$]*)\s*\(", _M)
_EXPORT_VARIABLE = re.compile(r"\bexport\s+(?:const|let|var)\s+([A-Za-z_$][\w$]*)\b", _M)
_MODULE_EXPORTS_ASSIGN = re.compile(r"\b(?:module\.)?exports\s*=\s*\{", _M)
_ARROW_VALUE = re.compile(r"^[A-Za-z_$][\w$]*\s*=>", re.ASCII)


@dataclass(frozen=True)
class ImportBinding:
    """A local name bound to a named export of another module."""

    module_path: str
    export_name: str


@dataclass
class JSModule:
    """A loaded script with its functions, imports and exports."""

    rel_path: str
    text: str
    functions: dict[str, JSFunction] = field(default_factory=dict)
    module_aliases: dict[str, str] = field(default_factory=dict)
    named_imports: dict[str, ImportBinding] = field(default_factory=dict)
    export_aliases: dict[str, str] = field(default_factory=dict)

    def resolve_function(self, name: str) -> JSFunction | None:
        """Find a function by its own name or by the name it is exported under."""
        name = normalize_js_identifier(name)
        if not name:
            return None
        function = self.functions.get(name)
        if function is not None:
            return function
        mapped = self.export_aliases.get(name)
        if mapped is not None:
            return self.functions.get(mapped)
        return None


def parse_import_bindings(raw: str) -> dict[str, str]:
    """Map local names to export names for ``{ a, b as c, d: e }`` binding lists."""
    results: dict[str, str] = {}
    for part in split_top_level(raw, ","):
        item = part.strip()
        if not item:
            continue
        export_name = local_name = item
        if " as " in item:
            export_name, local_name = (piece.strip() for piece in item.split(" as ", 1))
        elif ":" in item:
            export_name, local_name = (piece.strip() for piece in item.split(":", 1))
        export_name = normalize_js_identifier(export_name)
        local_name = normalize_js_identifier(local_name)
        if export_name and local_name:
            results[local_name] = export_name
    return results


def extract_import_bindings(
    root_dir: str | os.PathLike[str], from_js_path: str, text: str
) -> tuple[dict[str, str], dict[str, ImportBinding]]:
    """Return the module aliases and the named imports a script declares.

    Only imports that resolve to existing scripts are kept.
    """
    module_aliases: dict[str, str] = {}
    named_imports: dict[str, ImportBinding] = {}

    def add_aliases(pattern: re.Pattern[str]) -> None:
        for match in pattern.finditer(text):
            resolved = resolve_js_import(root_dir, from_js_path, match.group(2))
            if resolved:
                module_aliases[match.group(1).strip()] = resolved

    def add_named(pattern: re.Pattern[str]) -> None:
        for match in pattern.finditer(text):
            resolved = resolve_js_import(root_dir, from_js_path, match.group(2))
            if not resolved:
                continue
            for local_name, export_name in parse_import_bindings(match.group(1)).items():
                named_imports[local_name] = ImportBinding(resolved, export_name)

    add_aliases(_REQUIRE_ASSIGN)
    add_named(_REQUIRE_DESTRUCT)
    add_aliases(_IMPORT_DEFAULT)
    add_named(_IMPORT_NAMED)
    return module_aliases, named_imports


def extract_module_export_objects(text: str) -> list[str]:
    """Return the inner texts of ``module.exports = { ... }`` objects."""
    results: list[str] = []
    for match in _MODULE_EXPORTS_ASSIGN.finditer(text):
        open_brace = text.find("{", match.start(), match.end())
        if open_brace < 0:
            continue
        close_brace = find_matching_brace(text, open_brace)
        if close_brace is None or close_brace <= open_brace:
            continue
        results.append(text[open_brace + 1 : close_brace])
    return results


def parse_module_export_object(object_text: str) -> dict[str, str]:
    """Map exported keys of an exports object to the local names they refer to."""
    results: dict[str, str] = {}
    for part in split_top_level(object_text, ","):
        item = part.strip()
        if not item:
            continue
        colon = top_level_colon_index(item)
        if colon is None:
            name = normalize_js_identifier(item)
            if name:
                results[name] = name
            continue
        key = normalize_js_property_name(item[:colon])
        value = item[colon + 1 :].strip()
        if not key or not value:
            continue
        if value.startswith(("function", "async function", "(")) or _ARROW_VALUE.match(value):
            results[key] = key
        else:
            results[key] = normalize_js_identifier(value) or key
    return results


def extract_export_aliases(text: str) -> dict[str, str]:
    """Map each exported name to the local name that implements it."""
    results: dict[str, str] = {}

    for match in _EXPORT_DIRECT.finditer(text):
        export_name = normalize_js_identifier(match.group(1))
        target_name = normalize_js_identifier(match.group(2))
        if export_name and target_name:
            results[export_name] = target_name

    for match in _EXPORT_NAMED_BLOCK.finditer(text):
        for part in split_top_level(match.group(1), ","):
            item = part.strip()
            if not item:
                continue
            local_name = export_name = item
            if " as " in item:
                local_name, export_name = (piece.strip() for piece in item.split(" as ", 1))
            local_name = normalize_js_identifier(local_name)
            export_name = normalize_js_identifier(export_name)
            if local_name and export_name:
                results[export_name] = local_name

    for pattern in (_EXPORT_FUNCTION, _EXPORT_VARIABLE):
        for match in pattern.finditer(text):
            name = normalize_js_identifier(match.group(1))
            if name:
                results[name] = name

    for object_text in extract_module_export_objects(text):
        for export_name, target_name in parse_module_export_object(object_text).items():
            if export_name and target_name:
                results[export_name] = target_name

    return results


def load_module(root_dir: str | os.PathLike[str], rel_path: str) -> JSModule | None:
    """Read and index the script at the slash path ``rel_path``; None if unreadable."""
    rel_path = rel_path.strip()
    if not rel_path:
        return None
    parts = rel_path.lstrip("/").split("/")
    try:
        with open(os.path.join(os.fspath(root_dir), *parts), encoding="utf-8", errors="replace") as handle:
            text = handle.read()
    except OSError:
        return None
    module_aliases, named_imports = extract_import_bindings(root_dir, rel_path, text)
    return JSModule(
        rel_path=rel_path,
        text=text,
        functions=extract_js_functions(text),
        module_aliases=module_aliases,
        named_imports=named_imports,
        export_aliases=extract_export_aliases(text),
    )