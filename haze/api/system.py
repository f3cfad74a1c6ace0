"""
System API routes for the haze backend.

Health check and the state of the browser plot session.
"""

import platform
import sys
from typing import Optional

import numpy as np
from fastapi import APIRouter
from pydantic import BaseModel

from .. import __version__
from ..session import plot_session

router = APIRouter()


class SessionStatus(BaseModel):
    """State of the browser connection plots are streamed to."""

    active: bool
    client_id: Optional[str] = None
    connected_at: Optional[str] = None
    streaming: bool = False


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "message": "haze is running",
        "version": __version__,
    }


@router.get("/system/info")
async def system_info():
    """Get interpreter and numeric stack information."""
    return {
        "python": {
            "version": sys.version,
            "platform": sys.platform,
        },
        "system": {
            "os": platform.system(),
            "machine": platform.machine(),
        },
        "numpy_version": np.__version__,
        # column frames are raw float64 buffers in host byte order
        "byteorder": sys.byteorder,
    }


@router.get("/session", response_model=SessionStatus)
async def session_status():
    """Get the plot session status."""
    return SessionStatus(**plot_session.get_status())
