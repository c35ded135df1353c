from wxapkgkit.analyzer.models import CallChainStep, NavigationEdge
from wxapkgkit.analyzer.navigation import (
    JSHandler,
    dedupe_edges,
    edge_identity_key,
    extract_js_handlers,
    extract_js_navigation_edges,
    find_containing_handler,
    handler_edge_key,
    merge_navigation_edge,
    navigation_edge_score,
    prune_fallback_navigation_edges,
    resolve_navigation_expression,
)

PAGE = "pages/index/index"

PAGE_SCRIPT = (
    "Page({\n"
    "  goDetail: function (e) {\n"
    "    wx.navigateTo({ url: '/pages/detail/detail?id=1' })\n"
    "  },\n"
    "})\n"
)


def test_extract_js_handlers_orders_and_skips_reserved():
    text = "Page({\n  onLoad: function () {\n  },\n  tap() {\n    if (x) {\n    }\n  },\n})\n"
    handlers = extract_js_handlers(text)
    assert [h.name for h in handlers] == ["onLoad", "tap"]
    assert all(h.body.startswith("{") and h.body.endswith("}") for h in handlers)
    assert handlers[0].start < handlers[1].start


def test_find_containing_handler():
    handlers = [JSHandler("a", 0, 10, "{}"), JSHandler("b", 20, 30, "{}")]
    assert find_containing_handler(handlers, 25) == "b"
    assert find_containing_handler(handlers, 10) == "a"
    assert find_containing_handler(handlers, 15) == ""


def test_resolve_quoted_absolute_and_relative():
    absolute = resolve_navigation_expression("'/pages/a/a'", PAGE)
    assert absolute == ("pages/a/a", "/pages/a/a", False)
    relative = resolve_navigation_expression('"../a/a",', PAGE)
    assert relative is not None and relative.target_page == "pages/a/a"


def test_resolve_template_literal_is_dynamic():
    result = resolve_navigation_expression("`/pages/d/d?id=${id}`", PAGE)
    assert result == ("pages/d/d", "/pages/d/d?id=${id}", True)


def test_resolve_rejects_empty_and_external():
    assert resolve_navigation_expression("", PAGE) is None
    assert resolve_navigation_expression("'https://example.com/x'", PAGE) is None


def test_resolve_identifier_is_dynamic_without_target():
    assert resolve_navigation_expression("url", PAGE) == ("", "url", True)


def test_resolve_concatenation_uses_first_literal():
    result = resolve_navigation_expression("'/pages/e/e?id=' + id", PAGE)
    assert result is not None
    assert result.target_page == "pages/e/e"
    assert result.raw_target == "'/pages/e/e?id=' + id"
    assert result.dynamic is True


def test_extract_js_navigation_edges(tmp_path):
    page_dir = tmp_path / "pages" / "index"
    page_dir.mkdir(parents=True)
    (page_dir / "index.js").write_text(PAGE_SCRIPT, encoding="utf-8")
    edges = extract_js_navigation_edges(tmp_path, PAGE, "pages/index/index.js")
    assert len(edges) == 1
    edge = edges[0]
    assert edge.target_page == "pages/detail/detail"
    assert edge.raw_target == "/pages/detail/detail?id=1"
    assert edge.method == "navigateTo"
    assert edge.source_type == "js"
    assert edge.handler_name == "goDetail"
    assert edge.line_number == 3
    assert edge.dynamic is False


def test_extract_js_navigation_edges_missing_file(tmp_path):
    assert extract_js_navigation_edges(tmp_path, PAGE, "pages/none.js") == []


def test_handler_edge_key_joins_fields():
    edge = NavigationEdge(method="navigateTo", raw_target="/p", target_page="p", source_file="f.js", line_number=3)
    assert handler_edge_key("h", edge) == "h|navigateTo|/p|p|f.js|3"


def test_edge_identity_key_distinguishes_dynamic():
    a = NavigationEdge(source_page="x", target_page="y")
    b = NavigationEdge(source_page="x", target_page="y", dynamic=True)
    assert edge_identity_key(a) != edge_identity_key(b)
    assert edge_identity_key(a).endswith("|false|0")


def test_score_prefers_call_chain():
    plain = NavigationEdge(handler_name="h", trigger_event="tap", trigger_text="go")
    chained = NavigationEdge(call_chain=[CallChainStep("a.js", "f", "page_handler")])
    assert navigation_edge_score(chained) > navigation_edge_score(plain)
    assert navigation_edge_score(NavigationEdge()) == 0


def test_merge_keeps_richer_and_fills_gaps():
    poor = NavigationEdge(source_page="p", target_page="t", source_file="p.js", target_exists=True)
    rich = NavigationEdge(source_page="p", call_chain=[CallChainStep("a.js", "f", "page_handler")])
    merged = merge_navigation_edge(poor, rich)
    assert merged.call_chain == rich.call_chain
    assert merged.source_file == "p.js"
    assert merged.target_page == "t"
    assert merged.target_exists is True
    assert poor.call_chain == [] and rich.source_file == ""


def test_dedupe_edges_merges_duplicates():
    a = NavigationEdge(source_page="p", target_page="t", raw_target="/t", method="navigateTo", line_number=3)
    b = NavigationEdge(
        source_page="p",
        target_page="t",
        raw_target="/t",
        method="navigateTo",
        line_number=3,
        source_file="p.js",
        call_chain=[CallChainStep("p.js", "go", "page_handler")],
    )
    other = NavigationEdge(source_page="p", target_page="u", method="navigateTo")
    result = dedupe_edges([a, b, other])
    assert len(result) == 2
    assert result[0].source_file == "p.js"
    assert len(result[0].call_chain) == 1
    assert result[1].target_page == "u"


def test_prune_drops_covered_fallback():
    rich = NavigationEdge(source_page="p", target_page="t", raw_target="/t", method="navigateTo", handler_name="h")
    fallback = NavigationEdge(
        source_page="p", target_page="t", raw_target="/t", method="UNKNOWN", source_type="wxml-event", handler_name="h"
    )
    assert prune_fallback_navigation_edges([rich, fallback]) == [rich]
    assert prune_fallback_navigation_edges([fallback]) == [fallback]
    assert dedupe_edges([fallback, rich]) == [rich]


def test_dedupe_edges_empty():
    assert dedupe_edges([]) == []