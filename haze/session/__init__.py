"""
Session layer for the haze backend.

Owns the single browser WebSocket connection plots are streamed over.
"""

from .manager import (
    NoActiveSessionError,
    PlotConnection,
    PlotSessionManager,
    TransportError,
    plot_session,
)

__all__ = [
    "NoActiveSessionError",
    "PlotConnection",
    "PlotSessionManager",
    "TransportError",
    "plot_session",
]
