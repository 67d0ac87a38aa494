"""Error taxonomy for talking to a Carbon collector."""


class TransportError(Exception):
    """Base class for every failure raised by a sender."""
    pass


class CollectorConnectionError(TransportError):
    """Raised when the connection to the collector cannot be established."""
    pass


class TransmissionError(TransportError):
    """Raised when sending or flushing wire lines fails."""
    pass


class CloseError(TransportError):
    """Raised when releasing the connection fails. Never fatal to the reporter."""
    pass
