"""Senders speaking the Carbon plaintext protocol."""

import logging
import re
import socket
import sys
from typing import IO, List, Optional

from .errors import CloseError, CollectorConnectionError, TransmissionError

logger = logging.getLogger(__name__)

WHITESPACE = re.compile(r"\s+")

DEFAULT_PORT = 2003


def sanitize(text: str) -> str:
    """Replace runs of whitespace, which would break a wire line, with ``-``."""
    return WHITESPACE.sub("-", text)


def wire_line(path: str, value: str, timestamp: int) -> str:
    return f"{sanitize(path)} {sanitize(value)} {timestamp}\n"


class PlaintextSender:
    """Sends wire lines to a collector over TCP.

    Lines are buffered until ``flush()``; ``close()`` drops anything still
    buffered, so lines never outlive the cycle that produced them. Socket
    errors are wrapped in the transport error taxonomy and counted in
    ``failures``.
    """

    def __init__(self, host: str, port: int = DEFAULT_PORT, timeout_s: Optional[float] = None):
        self.host = host
        self.port = port
        self.timeout_s = timeout_s
        self.failures = 0
        self._socket: Optional[socket.socket] = None
        self._pending: List[str] = []

    def is_connected(self) -> bool:
        return self._socket is not None

    def connect(self) -> None:
        if self.is_connected():
            raise CollectorConnectionError(f"Already connected to {self.host}:{self.port}")

        try:
            self._socket = socket.create_connection((self.host, self.port), timeout=self.timeout_s)
        except OSError as e:
            self.failures += 1
            raise CollectorConnectionError(f"Unable to connect to {self.host}:{self.port}: {e}") from e

        logger.info(f"Connected to collector at {self.host}:{self.port}")

    def send(self, path: str, value: str, timestamp: int) -> None:
        if self._socket is None:
            raise TransmissionError(f"Not connected to {self.host}:{self.port}")
        self._pending.append(wire_line(path, value, timestamp))

    def flush(self) -> None:
        if self._socket is None or not self._pending:
            return

        payload = "".join(self._pending).encode("ascii", errors="replace")
        self._pending = []
        try:
            self._socket.sendall(payload)
            self.failures = 0
        except OSError as e:
            self.failures += 1
            raise TransmissionError(f"Unable to flush to {self.host}:{self.port}: {e}") from e

    def close(self) -> None:
        sock = self._socket
        self._socket = None
        if self._pending:
            logger.debug(f"Discarding {len(self._pending)} unflushed lines for {self.host}:{self.port}")
            self._pending = []

        if sock is None:
            return
        try:
            sock.close()
        except OSError as e:
            raise CloseError(f"Error closing connection to {self.host}:{self.port}: {e}") from e

    def __repr__(self) -> str:
        return f"PlaintextSender({self.host}:{self.port})"


class StreamSender:
    """Writes wire lines to a text stream, for dry runs."""

    def __init__(self, stream: Optional[IO[str]] = None):
        self.stream = stream or sys.stdout
        self._connected = False

    def is_connected(self) -> bool:
        return self._connected

    def connect(self) -> None:
        self._connected = True

    def send(self, path: str, value: str, timestamp: int) -> None:
        try:
            self.stream.write(wire_line(path, value, timestamp))
        except (OSError, ValueError) as e:
            raise TransmissionError(f"Unable to write to stream: {e}") from e

    def flush(self) -> None:
        try:
            self.stream.flush()
        except (OSError, ValueError) as e:
            raise TransmissionError(f"Unable to flush stream: {e}") from e

    def close(self) -> None:
        self._connected = False

    def __repr__(self) -> str:
        return f"StreamSender({getattr(self.stream, 'name', type(self.stream).__name__)})"
