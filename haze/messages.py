"""
JSON control messages exchanged with the browser.

Text frames carry one JSON object each; binary frames carry raw column
data and have no envelope. Outgoing messages are flat objects, for example::

    {"type": "msg", "msgText": "total plot data size: 1.0 MB"}
    {"type": "call", "name": "plotWin", "args": [gid, wid, names, code]}
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List


class MessageType(str, Enum):
    """Types of WebSocket text messages."""

    # Server to browser
    MSG = "msg"
    CALL = "call"

    # Keep-alive and errors
    PING = "ping"
    PONG = "pong"
    ERROR = "error"


@dataclass
class UiMessage:
    """A text message; ``data`` fields sit next to ``type`` on the wire."""

    type: MessageType
    data: Dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> str:
        """Convert message to JSON string."""
        return json.dumps({"type": self.type.value, **self.data})

    @classmethod
    def from_json(cls, json_str: str) -> "UiMessage":
        """Create message from JSON string.

        Raises:
            json.JSONDecodeError: Invalid JSON.
            ValueError: Unknown message type or not a JSON object.
        """
        data = json.loads(json_str)
        if not isinstance(data, dict):
            raise ValueError("message must be a JSON object")
        msg_type = MessageType(data.pop("type", "error"))
        return cls(type=msg_type, data=data)

    @classmethod
    def msg(cls, text: str) -> "UiMessage":
        return cls(type=MessageType.MSG, data={"msgText": text})

    @classmethod
    def call(cls, name: str, args: List[Any]) -> "UiMessage":
        return cls(type=MessageType.CALL, data={"name": name, "args": args})


def format_data_size(nbytes: int) -> str:
    """Format a byte count in mebibytes with one decimal, e.g. ``1.0 MB``."""
    return "%0.1f MB" % (nbytes / 1024 / 1024)


def data_size_message(nbytes: int) -> UiMessage:
    return UiMessage.msg(f"total plot data size: {format_data_size(nbytes)}")


def plot_win_message(
    group_id: str,
    window_id: str,
    column_names: List[List[str]],
    code: str,
) -> UiMessage:
    """The ``plotWin`` invocation that renders one window in the browser."""
    return UiMessage.call("plotWin", [group_id, window_id, column_names, code])
