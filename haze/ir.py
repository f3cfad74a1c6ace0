"""
Intermediate representation of plot state.

A ``PlotGroup`` is created fresh for each streaming call, populated by the
plotting procedure through the builder methods below, consumed once by
``haze.exec`` and then discarded.

Back-links (window to group, figure to window) are kept as identifiers,
never as owning references, so the tree has no reference cycles.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np

# ============= DSL values =============


@dataclass(frozen=True)
class LiteralValue:
    """A JSON literal, emitted as-is."""

    value: Any


@dataclass(frozen=True)
class FieldRef:
    """Reference to a column of the glyph's data source."""

    name: str


@dataclass(frozen=True)
class ValueRef:
    """Bokeh ``value`` spec wrapping a named constant."""

    name: str


@dataclass(frozen=True)
class Construct:
    """Construction of a Bokeh model, ``new Bokeh.<ctor>({...})``.

    ``args`` keep caller order; duplicate names are kept and emitted twice.
    """

    ctor: str
    args: Tuple[Tuple[str, "BokehValue"], ...] = ()


BokehValue = Union[LiteralValue, FieldRef, ValueRef, Construct]

ArgPairs = Tuple[Tuple[str, BokehValue], ...]
AttrPath = Tuple[str, ...]
AttrPairs = Tuple[Tuple[AttrPath, BokehValue], ...]


def as_value(obj: Any) -> BokehValue:
    """Pass DSL values through, wrap anything else as a JSON literal."""
    if isinstance(obj, (LiteralValue, FieldRef, ValueRef, Construct)):
        return obj
    return LiteralValue(obj)


def as_args(args: Optional[Union[Dict[str, Any], Iterable[Tuple[str, Any]]]]) -> ArgPairs:
    """Normalize builder arguments into ordered ``(name, BokehValue)`` pairs."""
    if args is None:
        return ()
    if isinstance(args, dict):
        args = args.items()
    return tuple((str(name), as_value(value)) for name, value in args)


def as_path(path: Union[str, Sequence[str]]) -> AttrPath:
    """Accept ``"xaxis.axis_label"`` or ``["xaxis", "axis_label"]``."""
    if isinstance(path, str):
        return tuple(path.split("."))
    return tuple(path)


def as_attr_pairs(pairs: Iterable[Tuple[Union[str, Sequence[str]], Any]]) -> AttrPairs:
    return tuple((as_path(path), as_value(value)) for path, value in pairs)


# ============= Figure operations =============


@dataclass(frozen=True)
class AddGlyph:
    """``fig.<method>({source: cdsa[<data_source>], ...})``."""

    method: str
    data_source: int
    args: ArgPairs = ()


@dataclass(frozen=True)
class AddLayout:
    """``fig.add_layout(new Bokeh.<ctor>({...}))``."""

    ctor: str
    args: ArgPairs = ()


@dataclass(frozen=True)
class SetGlyphAttrs:
    """Assign attributes on every renderer model of type ``ctor``."""

    ctor: str
    pairs: AttrPairs = ()


@dataclass(frozen=True)
class SetFigAttrs:
    """Assign attributes on the figure itself."""

    pairs: AttrPairs = ()


FigureOp = Union[AddGlyph, AddLayout, SetGlyphAttrs, SetFigAttrs]


# ============= Column data =============


class ColumnDataSource:
    """Named, equal-length float64 columns backing one or more glyphs.

    Insertion order of columns is significant: it is the order of the
    column-name list sent to the browser, and the reverse of the order in
    which column frames go on the wire.
    """

    def __init__(self, columns: Optional[Dict[str, Any]] = None):
        self._columns: Dict[str, np.ndarray] = {}
        for name, values in (columns or {}).items():
            self.add_column(name, values)

    def add_column(self, name: str, values: Any) -> np.ndarray:
        """Add (or replace) a column, stored as a contiguous float64 buffer.

        Raises:
            ValueError: If the column length differs from existing columns.
        """
        buf = np.ascontiguousarray(values, dtype=np.float64).reshape(-1)
        others = [col for key, col in self._columns.items() if key != name]
        if others and len(others[0]) != len(buf):
            raise ValueError(
                f"Column '{name}' has {len(buf)} values, "
                f"expected {len(others[0])} like the other columns"
            )
        self._columns[name] = buf
        return buf

    @property
    def column_names(self) -> List[str]:
        return list(self._columns.keys())

    def columns(self) -> List[np.ndarray]:
        """Column buffers in logical (insertion) order."""
        return list(self._columns.values())

    def __getitem__(self, name: str) -> np.ndarray:
        return self._columns[name]

    def __contains__(self, name: object) -> bool:
        return name in self._columns

    def __len__(self) -> int:
        """Number of rows (0 for a source without columns)."""
        for col in self._columns.values():
            return len(col)
        return 0

    @property
    def nbytes(self) -> int:
        return sum(col.size * col.itemsize for col in self._columns.values())

    def __repr__(self) -> str:
        return f"ColumnDataSource(columns={self.column_names!r}, rows={len(self)})"


# ============= Plot tree =============


@dataclass
class PlotFigure:
    """One figure of a window: construction args, ops and linked axes."""

    window_id: str
    group_id: str
    ops: List[FigureOp] = field(default_factory=list)
    figure_args: Dict[str, BokehValue] = field(default_factory=dict)
    linked_axes: Dict[str, int] = field(default_factory=dict)

    def add_op(self, op: FigureOp) -> FigureOp:
        self.ops.append(op)
        return op

    def add_glyph(self, method: str, data_source: int, args=None, **kwargs) -> AddGlyph:
        return self.add_op(AddGlyph(method, int(data_source), _merge_args(args, kwargs)))

    def add_layout(self, ctor: str, args=None, **kwargs) -> AddLayout:
        return self.add_op(AddLayout(ctor, _merge_args(args, kwargs)))

    def set_glyph_attrs(self, ctor: str, pairs) -> SetGlyphAttrs:
        return self.add_op(SetGlyphAttrs(ctor, as_attr_pairs(pairs)))

    def set_fig_attrs(self, pairs) -> SetFigAttrs:
        return self.add_op(SetFigAttrs(as_attr_pairs(pairs)))

    def set_figure_arg(self, name: str, value: Any) -> None:
        self.figure_args[name] = as_value(value)

    def link_axis(self, range_name: str, axis_ref: int) -> None:
        """Bind ``fig.<range_name>`` to a group-wide linked axis."""
        self.linked_axes[range_name] = axis_ref


@dataclass
class PlotWindow:
    """One browser rendering surface: its data sources and figures."""

    window_id: str
    group_id: str
    data_sources: Deque[ColumnDataSource] = field(default_factory=deque)
    figures: List[PlotFigure] = field(default_factory=list)

    def add_data_source(self, columns: Optional[Union[ColumnDataSource, Dict[str, Any]]] = None) -> int:
        """Append a data source, returning the index glyphs refer to it by."""
        cds = columns if isinstance(columns, ColumnDataSource) else ColumnDataSource(columns)
        self.data_sources.append(cds)
        return len(self.data_sources) - 1

    def push_front_data_source(self, columns: Optional[Union[ColumnDataSource, Dict[str, Any]]] = None) -> ColumnDataSource:
        # Shifts every existing index by one; ops already referencing
        # sources by index are not rewritten.
        cds = columns if isinstance(columns, ColumnDataSource) else ColumnDataSource(columns)
        self.data_sources.appendleft(cds)
        return cds

    def new_figure(self, args=None, **kwargs) -> PlotFigure:
        fig = PlotFigure(window_id=self.window_id, group_id=self.group_id)
        for name, value in _merge_args(args, kwargs):
            fig.figure_args[name] = value
        self.figures.append(fig)
        return fig


@dataclass
class PlotGroup:
    """Top-level plot state of one streaming call."""

    group_id: str
    num_linked_axes: int = 0
    windows: List[PlotWindow] = field(default_factory=list)

    def new_window(self, window_id: str) -> PlotWindow:
        win = PlotWindow(window_id=str(window_id), group_id=self.group_id)
        self.windows.append(win)
        return win

    def new_linked_axis(self) -> int:
        """Allocate a group-wide axis reference for range linking."""
        self.num_linked_axes += 1
        return self.num_linked_axes

    def iter_figures(self) -> Iterator[PlotFigure]:
        for win in self.windows:
            yield from win.figures


def _merge_args(args, kwargs: Dict[str, Any]) -> ArgPairs:
    return as_args(args) + as_args(kwargs)
