"""
haze: stream plots built in Python to a browser-resident Bokeh runtime.

A plotting procedure fills a ``PlotGroup`` (figures, glyphs, layouts,
attribute mutations, linked axes, column data); ``ui_plot`` compiles it to
JavaScript and streams it, with the column data as raw binary frames,
over the single browser WebSocket session.
"""

__version__ = "0.1.0"

from .compiler import compile_figure, compile_op, compile_value, compile_window
from .exec import MalformedPlotError, plot_sync, total_data_size, ui_plot
from .ir import (
    AddGlyph,
    AddLayout,
    BokehValue,
    ColumnDataSource,
    Construct,
    FieldRef,
    FigureOp,
    LiteralValue,
    PlotFigure,
    PlotGroup,
    PlotWindow,
    SetFigAttrs,
    SetGlyphAttrs,
    ValueRef,
)
from .session import NoActiveSessionError, TransportError, plot_session

__all__ = [
    "AddGlyph",
    "AddLayout",
    "BokehValue",
    "ColumnDataSource",
    "Construct",
    "FieldRef",
    "FigureOp",
    "LiteralValue",
    "MalformedPlotError",
    "NoActiveSessionError",
    "PlotFigure",
    "PlotGroup",
    "PlotWindow",
    "SetFigAttrs",
    "SetGlyphAttrs",
    "TransportError",
    "ValueRef",
    "compile_figure",
    "compile_op",
    "compile_value",
    "compile_window",
    "plot_session",
    "plot_sync",
    "total_data_size",
    "ui_plot",
]
