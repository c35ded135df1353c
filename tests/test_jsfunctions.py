from wxapkgkit.analyzer.jsfunctions import (
    extract_call_expressions,
    extract_js_functions,
    parse_js_params,
)

PAGE_SOURCE = """const util = require('../../utils/util')
Page({
  onLoad: function (options) {
    this.goDetail(options)
  },
  goDetail(e) {
    if (e) {
      wx.navigateTo({ url: '/pages/detail/detail' })
    }
  },
  onShow: async () => {
    helper(1)
  }
})
function helper(x) {
  return x
}
const arrow = (a, b) => {
  return a + b
}
const single = v => {
  return v
}
exports.run = function (job) {
  helper(job)
}
"""


def test_parse_js_params():
    assert parse_js_params("a, b = 1, ...rest") == ["a", "b", "rest"]
    assert parse_js_params("{ url }") == ["url"]
    assert parse_js_params("   ") == []


def test_extract_js_functions_finds_all_forms():
    functions = extract_js_functions(PAGE_SOURCE)
    assert set(functions) == {
        "onLoad", "goDetail", "onShow", "helper", "arrow", "single", "run",
    }
    assert functions["onLoad"].params == ["options"]
    assert functions["arrow"].params == ["a", "b"]
    assert functions["single"].params == ["v"]
    assert functions["run"].params == ["job"]
    assert functions["onShow"].params == []
    assert "if" not in functions


def test_function_bodies_and_lines_are_consistent():
    lines = PAGE_SOURCE.splitlines()
    for name, fn in extract_js_functions(PAGE_SOURCE).items():
        assert fn.body.startswith("{") and fn.body.endswith("}")
        assert PAGE_SOURCE[fn.end] == "}"
        assert fn.start < fn.end
        assert name in lines[fn.line_number - 1]


def test_earliest_definition_wins():
    text = "function dup(a) { return 1 }\nfunction dup(b) { return 2 }\n"
    functions = extract_js_functions(text)
    assert functions["dup"].start == text.index("function dup")
    assert functions["dup"].params == ["a"]


def test_unbalanced_function_is_ignored():
    assert "broken" not in extract_js_functions("function broken() { return 1;\n")


def test_extract_call_expressions():
    body = "{ this.go(url, 2); wx.navigateTo({url: x}); if (a) { helper.run('a,b', [1,2]) } }"
    calls = extract_call_expressions(body)
    assert [c.callee for c in calls] == ["this.go", "helper.run"]
    assert calls[0].args == ["url", "2"]
    assert calls[1].args == ["'a,b'", "[1,2]"]


def test_nested_calls_are_both_found():
    calls = extract_call_expressions("outer(inner(1))")
    assert [c.callee for c in calls] == ["outer", "inner"]
    assert calls[0].args == ["inner(1)"]
    assert calls[1].args == ["1"]


def test_method_definitions_and_declarations_skipped():
    text = "foo(a) {\n  bar(1)\n}\nfunction named(x) {\n  baz()\n}"
    calls = extract_call_expressions(text)
    assert [c.callee for c in calls] == ["bar", "baz"]
    lines = text.splitlines()
    for call in calls:
        assert call.callee in lines[call.line_number - 1]
    assert calls[1].args == [""]