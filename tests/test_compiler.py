"""
Tests for the IR to JavaScript compiler.

Run tests:
    pytest tests/test_compiler.py -v
"""

import json

import numpy as np
import pytest

from haze.compiler import (
    BOKEH_NAMESPACE,
    compile_args,
    compile_axis_link,
    compile_figure,
    compile_op,
    compile_value,
    compile_window,
)
from haze.ir import (
    AddGlyph,
    AddLayout,
    Construct,
    FieldRef,
    LiteralValue,
    PlotGroup,
    SetFigAttrs,
    SetGlyphAttrs,
    ValueRef,
)


# ============================================================================
# Values
# ============================================================================


class TestCompileValue:
    def test_literal_string(self):
        assert compile_value(LiteralValue("red")) == '"red"'

    def test_literal_structures(self):
        assert compile_value(LiteralValue([1, 2.5, None, True])) == "[1, 2.5, null, true]"
        assert json.loads(compile_value(LiteralValue({"a": [1]}))) == {"a": [1]}

    def test_literal_escapes_control_characters(self):
        out = compile_value(LiteralValue('line1\nline2\t"q"\x01'))
        assert "\n" not in out
        assert "\x01" not in out
        assert json.loads(out) == 'line1\nline2\t"q"\x01'

    def test_literal_numpy_values(self):
        assert compile_value(LiteralValue(np.float64(1.5))) == "1.5"
        assert compile_value(LiteralValue(np.arange(3))) == "[0, 1, 2]"

    def test_field_ref(self):
        assert compile_value(FieldRef("x")) == '{ field: "x" }'

    def test_value_ref(self):
        assert compile_value(ValueRef("blue")) == '{ value: "blue" }'

    def test_construct(self):
        value = Construct("Range1d", (("start", LiteralValue(0)), ("end", LiteralValue(10))))
        assert compile_value(value) == "new Bokeh.Range1d({ start: 0, end: 10 })"

    def test_construct_without_args(self):
        assert compile_value(Construct("DataRange1d")) == "new Bokeh.DataRange1d({})"

    def test_construct_nested_keeps_caller_order_and_duplicates(self):
        value = Construct(
            "Legend",
            (
                ("z", LiteralValue(1)),
                ("a", Construct("Title", (("text", LiteralValue("t")),))),
                ("z", LiteralValue(2)),
            ),
        )
        assert compile_value(value) == (
            'new Bokeh.Legend({ z: 1, a: new Bokeh.Title({ text: "t" }), z: 2 })'
        )

    def test_namespace_constant(self):
        assert BOKEH_NAMESPACE == "Bokeh"

    def test_unknown_value_rejected(self):
        with pytest.raises(TypeError):
            compile_value("not a value")

    def test_compilation_is_deterministic(self):
        value = Construct(
            "HoverTool",
            (("tooltips", LiteralValue([["x", "$x"]])), ("mode", ValueRef("vline"))),
        )
        assert compile_value(value) == compile_value(value)

    def test_compile_args(self):
        args = (("x", FieldRef("a")), ("size", LiteralValue(3)))
        assert compile_args(args) == '{ x: { field: "a" }, size: 3 }'
        assert compile_args(()) == "{}"


# ============================================================================
# Operations
# ============================================================================


class TestCompileOp:
    def test_add_glyph(self):
        code = compile_op(AddGlyph("circle", 0, (("color", LiteralValue("red")),)), "")
        assert code == 'fig.circle({ source: cdsa[0], color: "red" })\n'

    def test_add_glyph_appends_to_preceding_code(self):
        code = compile_op(AddGlyph("line", 2), "// prefix\n")
        assert code == "// prefix\nfig.line({ source: cdsa[2] })\n"

    def test_add_layout(self):
        op = AddLayout("Title", (("text", LiteralValue("hello")),))
        assert compile_op(op, "") == 'fig.add_layout(new Bokeh.Title({ text: "hello" }))\n'

    def test_set_glyph_attrs(self):
        op = SetGlyphAttrs(
            "GlyphRenderer",
            (
                (("glyph", "line_width"), LiteralValue(2)),
                (("visible",), LiteralValue(False)),
            ),
        )
        assert compile_op(op, "") == (
            "for (let g of fig.select(Bokeh.GlyphRenderer)) {\n"
            "  g.glyph.line_width = 2;\n"
            "  g.visible = false;\n"
            "}\n"
        )

    def test_set_fig_attrs_keeps_path_and_pair_order(self):
        op = SetFigAttrs(
            (
                (("xaxis", "axis_label"), LiteralValue("time")),
                (("yaxis", "axis_label"), LiteralValue("value")),
            )
        )
        assert compile_op(op, "") == (
            'fig.xaxis.axis_label = "time";\n'
            'fig.yaxis.axis_label = "value";\n'
        )

    def test_unknown_op_rejected(self):
        with pytest.raises(TypeError):
            compile_op(object(), "")

    def test_axis_link(self):
        assert compile_axis_link("grp", "x_range", 3, "") == (
            'syncRange(fig.x_range, "rng@grp#3");\n'
        )


# ============================================================================
# Figures and windows
# ============================================================================


def _figure_with_ops():
    win = PlotGroup("g1").new_window("w1")
    win.add_data_source({"x": [1.0, 2.0]})
    fig = win.new_figure(title="demo")
    fig.add_glyph("line", 0, x=FieldRef("x"), y=FieldRef("x"))
    fig.add_layout("Title", text="sub")
    fig.set_fig_attrs([("xaxis.axis_label", "x")])
    fig.set_glyph_attrs("GlyphRenderer", [("visible", True)])
    return win, fig


class TestCompileFigure:
    def test_ops_in_declaration_order(self):
        _, fig = _figure_with_ops()
        code = compile_figure(fig)
        emissions = [compile_op(op, "") for op in fig.ops]
        positions = [code.index(e) for e in emissions]
        assert positions == sorted(positions)

    def test_wrapper_and_show(self):
        _, fig = _figure_with_ops()
        code = compile_figure(fig)
        assert code.startswith("(async function(fig) {\n")
        assert code.endswith('})(Bokeh.Plotting.figure({ title: "demo" }))\n')
        assert "Bokeh.Plotting.show(fig);\n" in code
        assert code.index("Bokeh.Plotting.show(fig);") > code.index("for (let g of fig.select")

    def test_axis_links_follow_ops(self):
        group = PlotGroup("g1")
        win = group.new_window("w1")
        fig = win.new_figure()
        fig.set_fig_attrs([("title.text", "t")])
        fig.link_axis("x_range", group.new_linked_axis())
        code = compile_figure(fig)
        assert code.index('fig.title.text = "t";') < code.index('syncRange(fig.x_range, "rng@g1#1");')
        assert code.index("syncRange") < code.index("Bokeh.Plotting.show(fig);")

    def test_empty_figure(self):
        fig = PlotGroup("g").new_window("w").new_figure()
        assert compile_figure(fig) == (
            "(async function(fig) {\n"
            "Bokeh.Plotting.show(fig);\n"
            "})(Bokeh.Plotting.figure({}))\n"
        )

    def test_window_concatenates_figures_in_order(self):
        win = PlotGroup("g").new_window("w")
        first = win.new_figure(title="first")
        second = win.new_figure(title="second")
        code = compile_window(win)

        assert code.startswith("(pgid, pwid, cdsa) => {\n")
        assert code.endswith("\n}\n")
        block1 = compile_figure(first)
        block2 = compile_figure(second)
        assert block1 + block2 in code
        assert code.count("(async function(fig) {") == 2
        assert code.count("})(Bokeh.Plotting.figure(") == 2

    def test_window_compilation_is_deterministic(self):
        win, _ = _figure_with_ops()
        assert compile_window(win) == compile_window(win)
