"""
Compiler from plot IR to JavaScript executed by the browser's Bokeh runtime.

There is no parser: the input is already structured, so compilation is
string assembly over the IR. Output is deterministic, the same IR always
compiles to byte-identical code.

Generated code for a window has this shape::

    (pgid, pwid, cdsa) => {

    (async function(fig) {
    fig.line({ source: cdsa[0], x: { field: "x" }, y: { field: "y" } })
    syncRange(fig.x_range, "rng@grp#1");
    Bokeh.Plotting.show(fig);
    })(Bokeh.Plotting.figure({ title: "demo" }))

    }

``cdsa`` is the browser-side array of ColumnDataSource handles rebuilt
from the binary frames, indexed like the window's data-source sequence.
"""

from __future__ import annotations

import json
from typing import Any, Iterable, List, Tuple

import numpy as np

from .ir import (
    AddGlyph,
    AddLayout,
    ArgPairs,
    AttrPath,
    BokehValue,
    Construct,
    FieldRef,
    FigureOp,
    LiteralValue,
    PlotFigure,
    PlotWindow,
    SetFigAttrs,
    SetGlyphAttrs,
    ValueRef,
)

# Global name of the Bokeh JS binding on the browser side
BOKEH_NAMESPACE = "Bokeh"


def _json_default(obj: Any) -> Any:
    """Make numpy values JSON-serializable."""
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, np.generic):
        return obj.item()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def stringify(value: Any) -> str:
    """Encode a value as JSON, which is also a valid JS expression."""
    return json.dumps(value, default=_json_default)


def _object_literal(entries: List[str]) -> str:
    if not entries:
        return "{}"
    return "{ " + ", ".join(entries) + " }"


def _arg_entries(args: Iterable[Tuple[str, BokehValue]]) -> List[str]:
    return [f"{name}: {compile_value(value)}" for name, value in args]


def _accessor(root: str, path: AttrPath) -> str:
    return ".".join((root,) + tuple(path))


# ============= Values =============


def compile_value(value: BokehValue) -> str:
    """Compile one DSL value into a JS expression."""
    if isinstance(value, LiteralValue):
        return stringify(value.value)
    if isinstance(value, FieldRef):
        return "{ field: " + stringify(value.name) + " }"
    if isinstance(value, ValueRef):
        return "{ value: " + stringify(value.name) + " }"
    if isinstance(value, Construct):
        return f"new {BOKEH_NAMESPACE}.{value.ctor}({compile_args(value.args)})"
    raise TypeError(f"Not a Bokeh value: {value!r}")


def compile_args(args: ArgPairs) -> str:
    """Compile named arguments into a JS object literal, in caller order."""
    return _object_literal(_arg_entries(args))


# ============= Figure operations =============


def compile_op(op: FigureOp, code: str) -> str:
    """Append the statements for one figure operation to ``code``."""
    if isinstance(op, AddGlyph):
        entries = [f"source: cdsa[{op.data_source}]"] + _arg_entries(op.args)
        return code + f"fig.{op.method}({_object_literal(entries)})\n"

    if isinstance(op, AddLayout):
        return code + f"fig.add_layout(new {BOKEH_NAMESPACE}.{op.ctor}({compile_args(op.args)}))\n"

    if isinstance(op, SetGlyphAttrs):
        code += f"for (let g of fig.select({BOKEH_NAMESPACE}.{op.ctor})) {{\n"
        for path, value in op.pairs:
            code += f"  {_accessor('g', path)} = {compile_value(value)};\n"
        return code + "}\n"

    if isinstance(op, SetFigAttrs):
        for path, value in op.pairs:
            code += f"{_accessor('fig', path)} = {compile_value(value)};\n"
        return code

    raise TypeError(f"Not a figure operation: {op!r}")


def compile_axis_link(group_id: str, range_name: str, axis_ref: int, code: str) -> str:
    """Append a ``syncRange`` call sharing one range across figures of a group."""
    return code + f"syncRange(fig.{range_name}, {stringify(f'rng@{group_id}#{axis_ref}')});\n"


# ============= Figures and windows =============


def compile_figure(fig: PlotFigure) -> str:
    """Compile a figure into a self-contained async IIFE.

    Ops come first in declaration order, then axis links, then ``show``.
    """
    code = "(async function(fig) {\n"
    for op in fig.ops:
        code = compile_op(op, code)
    for range_name, axis_ref in fig.linked_axes.items():
        code = compile_axis_link(fig.group_id, range_name, axis_ref, code)
    code += f"{BOKEH_NAMESPACE}.Plotting.show(fig);\n"
    figure_args = compile_args(tuple(fig.figure_args.items()))
    return code + f"}})({BOKEH_NAMESPACE}.Plotting.figure({figure_args}))\n"


def compile_window(win: PlotWindow) -> str:
    """Compile all figures of a window, in declaration order, into one function."""
    body = "".join(compile_figure(fig) for fig in win.figures)
    return "(pgid, pwid, cdsa) => {\n\n" + body + "\n}\n"
