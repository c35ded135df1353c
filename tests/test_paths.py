import pytest

from wxapkgkit.analyzer.models import PageFiles
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
    normalize_route_reference,
    path_exists,
    resolve_js_import,
    string_from_map,
)


def _write(root, rel, text=""):
    target = root.joinpath(*rel.split("/"))
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(text, encoding="utf-8")


def test_normalize_asset_path_converts_backslashes():
    assert normalize_asset_path("  pages\\home\\index ") == "pages/home/index"


def test_normalize_route_strips_slash_and_extension():
    assert normalize_route("/pages/index/index.js") == "pages/index/index"
    assert normalize_route("./pages/index/index.wxml") == "pages/index/index"


@pytest.mark.parametrize("value", ["", ".", "./", "/", "   "])
def test_normalize_route_empty(value):
    assert normalize_route(value) == ""


@pytest.mark.parametrize(
    "value", ["/pages/a/a.js", "pkg\\b\\c.json", "./x/../y/z.html", "//double/slash"]
)
def test_normalize_route_is_idempotent(value):
    once = normalize_route(value)
    assert normalize_route(once) == once
    assert not once.startswith("/")


def test_join_route():
    assert join_route("pkgA", "pages/a") == "pkgA/pages/a"
    assert join_route("", "pages/a") == "pages/a"
    assert join_route("pkgA/", "") == "pkgA"


def test_route_reference_relative_with_query():
    assert normalize_route_reference("../detail/detail?id=1", "pages/home/home") == "pages/detail/detail"


def test_route_reference_absolute():
    assert normalize_route_reference("/pages/a/a#top", "pages/b/b") == "pages/a/a"


@pytest.mark.parametrize("raw", ["", "https://example.com/x", "//cdn/x", "/p/{{id}}", "?a=1"])
def test_route_reference_rejected(raw):
    assert normalize_route_reference(raw, "pages/home/home") is None


def test_normalize_component_path():
    assert normalize_component_path("pages/a/a", "plugin://x/y") == "plugin://x/y"
    assert normalize_component_path("pages/a/a", "/components/card/card") == "components/card/card"
    assert normalize_component_path("pages/a/a", "") == ""
    assert normalize_component_path("pages/a/a", "./item") == "pages/a/item"


def test_detect_page_files(tmp_path):
    _write(tmp_path, "pages/a/a.js")
    _write(tmp_path, "pages/a/a.wxml")
    assert detect_page_files(tmp_path, "pages/a/a") == PageFiles(js="pages/a/a.js", wxml="pages/a/a.wxml")
    assert path_exists(tmp_path, "pages/a/a.js")
    assert not path_exists(tmp_path, "pages/a/a.wxss")


def test_is_internal_page_url(tmp_path):
    _write(tmp_path, "pages/a/a.json", "{}")
    _write(tmp_path, "api/user.js")
    assert is_internal_page_url(tmp_path, "pages/b/b", "/pages/a/a")
    assert not is_internal_page_url(tmp_path, "pages/b/b", "/api/user")
    assert not is_internal_page_url(tmp_path, "pages/b/b", "/v2/user")
    assert not is_internal_page_url(tmp_path, "pages/b/b", "/pages/missing/missing")
    assert not is_internal_page_url(tmp_path, "pages/b/b", "https://example.com/pages/a/a")


def test_resolve_js_import(tmp_path):
    _write(tmp_path, "utils/util.js")
    _write(tmp_path, "components/x/index.js")
    assert resolve_js_import(tmp_path, "pages/a/a.js", "../../utils/util") == "utils/util.js"
    assert resolve_js_import(tmp_path, "pages/a/a.js", "/components/x") == "components/x/index.js"
    assert resolve_js_import(tmp_path, "pages/a/a.js", "lodash") is None
    assert resolve_js_import(tmp_path, "pages/a/a.js", "http://example.com/a.js") is None
    assert resolve_js_import(tmp_path, "pages/a/a.js", "./missing") is None


def test_extract_js_dependencies_limits_depth(tmp_path):
    _write(tmp_path, "pages/a/a.js", "const u = require('../../utils/util')\n")
    _write(tmp_path, "utils/util.js", "import h from './helper'\nrequire('../pages/a/a')\n")
    _write(tmp_path, "utils/helper.js", "require('./deep')\n")
    _write(tmp_path, "utils/deep.js", "require('./deeper')\n")
    _write(tmp_path, "utils/deeper.js", "")
    deps = extract_js_dependencies(tmp_path, "pages/a/a.js")
    assert deps == ["utils/deep.js", "utils/helper.js", "utils/util.js"]
    assert extract_js_dependencies(tmp_path, "") == []


def test_dedupe_and_sort():
    assert dedupe_and_sort([" b", "a", "b", "", "a"]) == ["a", "b"]


def test_string_from_map():
    assert string_from_map({"k": " v "}, "k") == "v"
    assert string_from_map({"k": 3}, "k") == ""
    assert string_from_map(None, "k") == ""
    assert string_from_map({}, "k") == ""


def test_is_generated_artifact():
    assert is_generated_artifact("out/route_map.md")
    assert is_generated_artifact("sensitive_report.html")
    assert not is_generated_artifact("pages/a/a.js")