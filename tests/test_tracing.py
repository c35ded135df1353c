from types import SimpleNamespace

import pytest

from wxapkgkit.analyzer.models import CallChainStep, NavigationEdge
from wxapkgkit.analyzer.tracing import (
    RouteAnalyzerContext,
    build_shared_router_helpers,
    extract_call_chain_navigation_edges,
    extract_lifecycle_navigation_edges,
)
from wxapkgkit.analyzer.wxml import WxmlAction

PAGE_JS = """const router = require('../../utils/router')
Page({
  onLoad: function (options) {
    router.go('/pages/detail/detail')
  },
  goNext: function (e) {
    wx.navigateTo({ url: '/pages/list/list' })
  }
})
"""

ROUTER_JS = """function go(url) {
  wx.navigateTo({ url: url })
}
module.exports = { go }
"""

ROUTE = "pages/index/index"
JS_PATH = "pages/index/index.js"


@pytest.fixture
def ctx(tmp_path):
    (tmp_path / "pages" / "index").mkdir(parents=True)
    (tmp_path / "utils").mkdir()
    (tmp_path / "pages" / "index" / "index.js").write_text(PAGE_JS, encoding="utf-8")
    (tmp_path / "utils" / "router.js").write_text(ROUTER_JS, encoding="utf-8")
    context = RouteAnalyzerContext(tmp_path)
    context.mark_page_script(JS_PATH)
    return context


def test_load_module_is_cached(ctx):
    first = ctx.load_module(JS_PATH)
    assert first is ctx.load_module(JS_PATH)
    assert first.rel_path == JS_PATH
    assert ctx.load_module("missing.js") is None
    assert ctx.load_module("  ") is None


def test_trace_through_shared_helper(ctx):
    module = ctx.load_module(JS_PATH)
    traces = ctx.trace_function(ROUTE, module, "onLoad", None, 0, set())
    assert len(traces) == 1
    trace = traces[0]
    assert trace.method == "navigateTo"
    assert trace.target_page == "pages/detail/detail"
    assert trace.raw_target == "/pages/detail/detail"
    assert trace.dynamic is False
    assert trace.source_file == "utils/router.js"
    assert [(s.file_path, s.function_name, s.kind) for s in trace.call_chain] == [
        (JS_PATH, "onLoad", "page_handler"),
        ("utils/router.js", "go", "shared_helper"),
    ]


def test_trace_stops_beyond_max_depth_and_on_visited(ctx):
    module = ctx.load_module(JS_PATH)
    assert ctx.trace_function(ROUTE, module, "onLoad", None, 7, set()) == []
    assert ctx.trace_function(ROUTE, module, "onLoad", None, 0, {JS_PATH + "#onLoad"}) == []
    assert ctx.trace_function(ROUTE, None, "onLoad", None, 0, set()) == []
    assert ctx.trace_function(ROUTE, module, "nothing", None, 0, set()) == []


def test_resolve_call_target(ctx):
    module = ctx.load_module(JS_PATH)
    on_load = module.functions["onLoad"]
    target = ctx.resolve_call_target(module, on_load, "router.go")
    assert target is not None
    assert target[0].rel_path == "utils/router.js"
    assert target[1] == "go"
    same = ctx.resolve_call_target(module, on_load, "this.goNext")
    assert same is not None and same[0] is module and same[1] == "goNext"
    assert ctx.resolve_call_target(module, on_load, "onLoad") is None
    assert ctx.resolve_call_target(module, on_load, "unknownFn") is None


def test_build_call_chain_step_kinds(ctx):
    module = ctx.load_module(JS_PATH)
    function = module.functions["goNext"]
    assert ctx.build_call_chain_step(JS_PATH, function, 0).kind == "page_handler"
    assert ctx.build_call_chain_step(JS_PATH, function, 1).kind == "page_helper"
    assert ctx.build_call_chain_step("utils/router.js", function, 0).kind == "shared_helper"


def test_lifecycle_edges(ctx):
    edges = extract_lifecycle_navigation_edges(ctx, ROUTE, JS_PATH)
    assert len(edges) == 1
    edge = edges[0]
    assert edge.handler_name == "onLoad"
    assert edge.source_type == "shared-router"
    assert edge.target_page == "pages/detail/detail"
    assert edge.source_file == JS_PATH
    assert len(edge.call_chain) == 2


def test_call_chain_edges_from_actions(ctx):
    action = WxmlAction(
        tag="view",
        trigger_event="tap",
        handler_name="goNext",
        raw_target="",
        trigger_text="Next",
        line_number=3,
        source_file="pages/index/index.wxml",
    )
    edges = extract_call_chain_navigation_edges(ctx, ROUTE, JS_PATH, [action])
    assert len(edges) == 1
    edge = edges[0]
    assert edge.target_page == "pages/list/list"
    assert edge.source_type == "js"
    assert edge.line_number == action.line_number
    assert edge.trigger_text == "Next"
    assert extract_call_chain_navigation_edges(ctx, ROUTE, JS_PATH, []) == []


def test_build_shared_router_helpers():
    step = CallChainStep(file_path="utils/router.js", function_name="go", kind="shared_helper", line_number=1)
    page_step = CallChainStep(file_path=JS_PATH, function_name="onLoad", kind="page_handler", line_number=3)
    edges = [
        NavigationEdge(source_page="pages/b", method="navigateTo", raw_target="/x", dynamic=False,
                       call_chain=[page_step, step]),
        NavigationEdge(source_page="pages/a", method="redirectTo", raw_target="", dynamic=True,
                       call_chain=[step]),
        NavigationEdge(source_page="pages/c", method="navigateTo", raw_target="/y", call_chain=[page_step]),
    ]
    helpers = build_shared_router_helpers(SimpleNamespace(navigation_edges=edges))
    assert len(helpers) == 1
    helper = helpers[0]
    assert helper.file_path == "utils/router.js"
    assert helper.function_name == "go"
    assert helper.used_by_pages == ["pages/a", "pages/b"]
    assert helper.methods == ["navigateTo", "redirectTo"]
    assert helper.target_hints == ["/x"]
    assert helper.dynamic is True