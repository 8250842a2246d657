"""
Queue Message Boundary
======================

The minimal surface the relay needs from a message-queue client.

Connection, session and credential handling live in the queue adapter
(see solace_source.py). The pipeline only ever:
    - reads the body (bytes or text) up to a size limit
    - reads one named property as an integer
    - acknowledges the message

InMemoryMessage / InMemorySource implement the same protocols for tests
and for replaying captured XML files from disk.
"""

import logging
from collections import deque
from pathlib import Path
from typing import Any, Deque, Dict, Iterable, Optional, Protocol, Union


logger = logging.getLogger(__name__)


class QueueMessage(Protocol):
    """A received message that must be acknowledged explicitly."""

    @property
    def is_text(self) -> bool:
        ...

    def body_text(self) -> Optional[str]:
        ...

    def body_bytes(self, max_bytes: int) -> bytes:
        ...

    def body_length(self) -> int:
        ...

    def has_property(self, name: str) -> bool:
        ...

    def get_property(self, name: str) -> Any:
        ...

    def acknowledge(self) -> None:
        ...


class MessageSource(Protocol):
    """Blocking receiver of queue messages."""

    def receive(self, timeout_ms: int) -> Optional[QueueMessage]:
        ...

    def close(self) -> None:
        ...


def coerce_int(value: Any, default: int) -> int:
    """
    Coerce a message property to int.

    Numbers are truncated; strings are parsed after trimming. Anything else
    yields the default.
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        try:
            return int(value)
        except (ValueError, OverflowError):
            # NaN / inf
            return default
    try:
        return int(str(value).strip())
    except ValueError:
        return default


def read_body(message: QueueMessage, max_bytes: int) -> Optional[bytes]:
    """
    Read a message body, truncated to max_bytes.

    Text bodies are cut to max_bytes characters before encoding, so a
    non-ASCII text body may encode to more than max_bytes bytes. Byte
    bodies are cut to max_bytes bytes.

    Returns:
        UTF-8 bytes, or None for a blank text body
    """
    if message.is_text:
        text = message.body_text()
        if text is None or not text.strip():
            return None
        if len(text) > max_bytes:
            text = text[:max_bytes]
        return text.encode("utf-8")
    return message.body_bytes(max_bytes)


def read_body_strict(message: QueueMessage, max_bytes: int) -> Optional[bytes]:
    """
    Read a message body, refusing anything over max_bytes.

    Returns:
        UTF-8 bytes, or None when the body is empty or oversized
    """
    if message.is_text:
        text = message.body_text()
        if text is None:
            return None
        data = text.encode("utf-8")
    else:
        length = message.body_length()
        if length > max_bytes:
            logger.warning(f"Dropping oversized message: {length} bytes")
            return None
        data = message.body_bytes(max_bytes)

    if len(data) > max_bytes:
        logger.warning(f"Dropping oversized message: {len(data)} bytes")
        return None
    return data or None


class InMemoryMessage:
    """
    Message held in memory.

    Attributes:
        acknowledged: Number of acknowledge() calls received
    """

    def __init__(
        self,
        body: Union[str, bytes],
        properties: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._body = body
        self._properties = dict(properties or {})
        self.acknowledged = 0

    @property
    def is_text(self) -> bool:
        return isinstance(self._body, str)

    def body_text(self) -> Optional[str]:
        return self._body if isinstance(self._body, str) else None

    def body_bytes(self, max_bytes: int) -> bytes:
        data = self._body if isinstance(self._body, bytes) else self._body.encode("utf-8")
        return data[:max_bytes]

    def body_length(self) -> int:
        if isinstance(self._body, bytes):
            return len(self._body)
        return len(self._body.encode("utf-8"))

    def has_property(self, name: str) -> bool:
        return name in self._properties

    def get_property(self, name: str) -> Any:
        return self._properties.get(name)

    def acknowledge(self) -> None:
        self.acknowledged += 1

    def __repr__(self) -> str:
        kind = "text" if self.is_text else "bytes"
        return f"InMemoryMessage({kind}, {self.body_length()} bytes, acked={self.acknowledged})"


class InMemorySource:
    """
    FIFO source of in-memory messages.

    receive() returns None once the queue is drained, like an empty poll.
    """

    def __init__(self, messages: Iterable[InMemoryMessage] = ()) -> None:
        self._pending: Deque[InMemoryMessage] = deque(messages)
        self.delivered: list = []

    def put(self, message: InMemoryMessage) -> None:
        self._pending.append(message)

    @property
    def drained(self) -> bool:
        return not self._pending

    def receive(self, timeout_ms: int) -> Optional[InMemoryMessage]:
        if not self._pending:
            return None
        message = self._pending.popleft()
        self.delivered.append(message)
        return message

    def close(self) -> None:
        self._pending.clear()

    @classmethod
    def from_directory(cls, directory: Union[str, Path], pattern: str = "*.xml") -> "InMemorySource":
        """
        Load every matching file in a directory as a bytes message.

        Files are queued in name order.
        """
        root = Path(directory)
        if not root.is_dir():
            raise FileNotFoundError(f"Replay directory not found: {root}")
        paths = sorted(root.glob(pattern))
        logger.info(f"Replaying {len(paths)} messages from {root}")
        return cls(InMemoryMessage(path.read_bytes()) for path in paths)
