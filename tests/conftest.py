"""
Root conftest.py for haze tests.

This file contains shared fixtures and pytest configuration
that applies to all test modules.
"""

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, List, Optional, Tuple

import numpy as np
import pytest

# Ensure the project root is in the path
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from haze.session import PlotSessionManager


# ============================================================================
# Pytest Hooks
# ============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "websocket: mark test as involving WebSocket communication",
    )


def pytest_collection_modifyitems(config, items):
    """Mark tests with 'websocket' in their name."""
    for item in items:
        if "websocket" in item.name.lower():
            item.add_marker(pytest.mark.websocket)


# ============================================================================
# Fakes
# ============================================================================


class FakeWebSocket:
    """Stand-in for ``fastapi.WebSocket`` that records sent frames.

    Args:
        fail_after: Number of frames to accept before every send raises.
    """

    def __init__(self, fail_after: Optional[int] = None):
        self.accepted = False
        self.frames: List[Tuple[str, Any]] = []
        self.fail_after = fail_after

    async def accept(self) -> None:
        self.accepted = True

    def _check(self) -> None:
        if self.fail_after is not None and len(self.frames) >= self.fail_after:
            raise RuntimeError("connection closed")

    # Each send yields to the event loop, like a real socket write can
    async def send_text(self, data: str) -> None:
        await asyncio.sleep(0)
        self._check()
        self.frames.append(("text", data))

    async def send_bytes(self, data: bytes) -> None:
        await asyncio.sleep(0)
        self._check()
        self.frames.append(("binary", data))

    @property
    def text_messages(self) -> List[dict]:
        return [json.loads(data) for kind, data in self.frames if kind == "text"]

    @property
    def binary_columns(self) -> List[np.ndarray]:
        return [np.frombuffer(data, dtype=np.float64) for kind, data in self.frames if kind == "binary"]

    @property
    def kinds(self) -> List[str]:
        return [kind for kind, _ in self.frames]


# ============================================================================
# Shared Fixtures
# ============================================================================


@pytest.fixture
def fake_ws():
    return FakeWebSocket()


@pytest.fixture
def session():
    """A fresh session manager with no browser connected."""
    return PlotSessionManager()
