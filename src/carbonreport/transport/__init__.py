"""Senders that deliver wire lines to a Carbon collector."""

from .errors import CloseError, CollectorConnectionError, TransmissionError, TransportError
from .plaintext import PlaintextSender, StreamSender, sanitize
from .sender import Sender

__all__ = [
    "CloseError",
    "CollectorConnectionError",
    "PlaintextSender",
    "Sender",
    "StreamSender",
    "TransmissionError",
    "TransportError",
    "sanitize",
]
