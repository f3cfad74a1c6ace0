"""
The haze executor.

Runs a plotting procedure against a fresh ``PlotGroup``, then streams the
result to the browser over the current session:

1. one ``msg`` text frame reporting the total column data size;
2. per window, one binary frame per column followed by one ``plotWin``
   call carrying the column-name lists and the compiled JavaScript.

Each source's column names are listed in column order while its columns
are sent in reversed column order, so the browser pops them off its stack
of received frames in column order. Name lists are prepended per source,
so the last source sent comes first.
"""

import asyncio
import concurrent.futures
import inspect
import threading
from typing import Any, Awaitable, Callable, List, Optional, Union

from .compiler import compile_window
from .config import get_settings
from .ir import AddGlyph, PlotGroup, PlotWindow
from .messages import data_size_message, plot_win_message
from .session import NoActiveSessionError, PlotConnection, PlotSessionManager, plot_session
from .shared.logger import get_logger

logger = get_logger(__name__)

PlotProcedure = Callable[[PlotGroup], Union[None, Awaitable[Any]]]


class MalformedPlotError(ValueError):
    """The plot IR references something that does not exist."""


def total_data_size(group: PlotGroup) -> int:
    """Total bytes of column data in the group (8 bytes per value)."""
    return sum(
        cds.nbytes
        for win in group.windows
        for cds in win.data_sources
    )


def validate_group(group: PlotGroup) -> None:
    """
    Check glyph data-source indexes before anything is sent.

    Raises:
        MalformedPlotError: If a glyph refers to a data source index that
            does not exist in its window.
    """
    for win in group.windows:
        n_sources = len(win.data_sources)
        for fig_idx, fig in enumerate(win.figures):
            for op in fig.ops:
                if isinstance(op, AddGlyph) and not 0 <= op.data_source < n_sources:
                    raise MalformedPlotError(
                        f"Glyph '{op.method}' of figure {fig_idx} in window "
                        f"'{win.window_id}' uses data source {op.data_source}, "
                        f"but the window has {n_sources}"
                    )
        for cds_idx, cds in enumerate(win.data_sources):
            if len(cds) == 0:
                logger.debug(
                    "Data source %d of window %s has no data", cds_idx, win.window_id
                )


async def output_window(conn: PlotConnection, win: PlotWindow) -> None:
    """
    Send a window's column frames, then the ``plotWin`` call rendering it.

    Name list ``k`` of the call describes data source ``n - 1 - k`` of the
    window, so the browser stores the source rebuilt from it at
    ``cdsa[n - 1 - k]`` for glyph indexes to resolve.
    """
    column_names: List[List[str]] = []
    for cds in win.data_sources:
        for col in reversed(cds.columns()):
            await conn.send_binary(col.tobytes())
        column_names.insert(0, cds.column_names)

    code = compile_window(win)
    logger.debug(
        "Window %s: %d data source(s), %d figure(s), %d chars of code",
        win.window_id,
        len(win.data_sources),
        len(win.figures),
        len(code),
    )
    await conn.send_text(
        plot_win_message(win.group_id, win.window_id, column_names, code).to_json()
    )


async def output_plot(conn: PlotConnection, group: PlotGroup) -> None:
    for win in group.windows:
        await output_window(conn, win)


class _StreamGate:
    """Settles, across threads, whether a call may still be cancelled.

    Once streaming has started the call can no longer be cancelled, and
    once cancelled it never starts streaming.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._started = False
        self._cancelled = False

    def start(self) -> bool:
        with self._lock:
            if self._cancelled:
                return False
            self._started = True
            return True

    def cancel(self) -> bool:
        with self._lock:
            if self._started:
                return False
            self._cancelled = True
            return True


async def ui_plot(
    group_id: str,
    plot_procedure: PlotProcedure,
    session: Optional[PlotSessionManager] = None,
) -> bool:
    """
    Build a plot group with ``plot_procedure`` and stream it to the browser.

    Args:
        group_id: Identifier of the plot group in the browser.
        plot_procedure: Populates the group through the IR builder methods.
            May be a plain function or return an awaitable.
        session: Session to stream over (default: the global session).

    Returns:
        True if the group was streamed, False if no browser is connected
        (reported in the log, nothing is sent).

    Raises:
        TransportError: A frame could not be sent; frames already sent
            are not resent.
        MalformedPlotError: A glyph references a missing data source.
    """
    return await _stream_group(group_id, plot_procedure, session, None)


async def _stream_group(
    group_id: str,
    plot_procedure: PlotProcedure,
    session: Optional[PlotSessionManager],
    gate: Optional[_StreamGate],
) -> bool:
    session = plot_session if session is None else session

    if not session.is_active():
        logger.error("No ws in context to plot group %s", group_id)
        return False

    # prepare the plot state, then realize the procedure on it
    group = PlotGroup(group_id=group_id)
    result = plot_procedure(group)
    if inspect.isawaitable(result):
        await result
    validate_group(group)

    try:
        async with session.lease() as conn:
            if gate is not None and not gate.start():
                raise asyncio.CancelledError()
            # report total data size first, so the user knows what to expect
            tds = total_data_size(group)
            await conn.send_text(data_size_message(tds).to_json())
            await output_plot(conn, group)
    except NoActiveSessionError:
        logger.error("No ws in context to plot group %s", group_id)
        return False

    logger.info(
        "Plotted group %s: %d window(s), %d bytes of column data",
        group_id,
        len(group.windows),
        tds,
    )
    return True


def plot_sync(
    group_id: str,
    plot_procedure: PlotProcedure,
    session: Optional[PlotSessionManager] = None,
    timeout: Optional[float] = None,
) -> bool:
    """
    Blocking variant of ``ui_plot`` for code running in worker threads.

    The call is scheduled on the event loop serving the session and the
    calling thread waits for it to finish.

    Args:
        timeout: Seconds to wait (default from ``HAZE_PLOT_TIMEOUT``,
            otherwise wait indefinitely).

    Raises:
        RuntimeError: If called from the session's event loop thread.
        concurrent.futures.TimeoutError: The call did not finish in time.
            If it had not sent its first frame yet it is cancelled and
            nothing is sent; if it was already streaming, the stream still
            completes after this is raised.
    """
    session = plot_session if session is None else session

    loop = session.loop
    if loop is None or loop.is_closed():
        logger.error("No ws in context to plot group %s", group_id)
        return False

    try:
        running = asyncio.get_running_loop()
    except RuntimeError:
        running = None
    if running is loop:
        raise RuntimeError("plot_sync() would block the event loop; await ui_plot() instead")

    if timeout is None:
        timeout = get_settings().plot_timeout

    gate = _StreamGate()
    future = asyncio.run_coroutine_threadsafe(
        _stream_group(group_id, plot_procedure, session, gate), loop
    )
    try:
        return future.result(timeout)
    except concurrent.futures.TimeoutError:
        if gate.cancel():
            future.cancel()
            logger.warning("Plot group %s timed out before streaming, cancelled", group_id)
        else:
            logger.warning(
                "Plot group %s timed out while streaming, the stream will complete", group_id
            )
        raise
