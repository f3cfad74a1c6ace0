"""
Runtime configuration for the haze backend.

Settings are read from environment variables, in the same spirit as the
server's ``--port``/``--host`` defaults:

- HAZE_HOST: interface the server binds to (default 127.0.0.1)
- HAZE_PORT: port the server listens on (default 8000)
- HAZE_LOG_LEVEL: root logging level (default INFO)
- HAZE_RELOAD: enable uvicorn auto-reload (default false)
- HAZE_PLOT_TIMEOUT: seconds a worker thread waits in ``plot_sync``
  (default: wait indefinitely)
"""

import os
from dataclasses import asdict, dataclass
from typing import Any, Dict, Mapping, Optional

_TRUE_VALUES = ("1", "true", "yes", "on")


@dataclass
class HazeSettings:
    """Process wide settings for the plot streaming server."""

    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "INFO"
    reload: bool = False
    plot_timeout: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "HazeSettings":
        env = os.environ if environ is None else environ

        timeout_raw = env.get("HAZE_PLOT_TIMEOUT", "").strip()
        return cls(
            host=env.get("HAZE_HOST", "127.0.0.1"),
            port=int(env.get("HAZE_PORT", 8000)),
            log_level=env.get("HAZE_LOG_LEVEL", "INFO").upper(),
            reload=env.get("HAZE_RELOAD", "false").lower() in _TRUE_VALUES,
            plot_timeout=float(timeout_raw) if timeout_raw else None,
        )


_settings: Optional[HazeSettings] = None


def get_settings() -> HazeSettings:
    """Return the cached settings, loading them from the environment once."""
    global _settings
    if _settings is None:
        _settings = HazeSettings.from_env()
    return _settings
