"""
Broadcast Module - outbound event delivery

Classes:
    Broadcaster: real-time event sink protocol
    StoreDispatcher: state store action protocol
    ConnectionManager: websocket broadcaster grouped by channel
"""

from .broadcaster import Broadcaster, StoreDispatcher
from .websocket import ConnectionManager, envelope

__all__ = [
    "Broadcaster",
    "StoreDispatcher",
    "ConnectionManager",
    "envelope",
]
