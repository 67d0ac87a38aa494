"""Capability surface the reporter needs from a transport."""

from typing import Protocol


class Sender(Protocol):
    """Connection to a Carbon collector.

    ``connect`` raises CollectorConnectionError, ``send`` and ``flush`` raise
    TransmissionError and ``close`` raises CloseError.
    """

    def is_connected(self) -> bool:
        ...

    def connect(self) -> None:
        ...

    def send(self, path: str, value: str, timestamp: int) -> None:
        ...

    def flush(self) -> None:
        ...

    def close(self) -> None:
        ...
