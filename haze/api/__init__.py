"""
HTTP routes of the haze backend.

- System health and plot session status (system.py)
"""

from .system import router

__all__ = ["router"]
