"""Serial link and packet decoding for the Si1000 ISS receiver."""

from .connection import ConnectionManager, ConnectionState, LinkUnavailableError, ReconnectPolicy
from .packet_reader import EndOfStream, PacketReader, RecordDecodeError, RecordDecoder

__all__ = [
    "ConnectionManager",
    "ConnectionState",
    "LinkUnavailableError",
    "ReconnectPolicy",
    "EndOfStream",
    "PacketReader",
    "RecordDecodeError",
    "RecordDecoder",
]
