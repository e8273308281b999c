"""
Outbound event interfaces.

The orchestrator forwards every channel message to a ``Broadcaster`` and
lifecycle actions to a ``StoreDispatcher``. Both are optional and either
may be sync or async; failures are logged and never reach the engine.
"""
from typing import Any, Dict, Protocol


class Broadcaster(Protocol):
    """Real-time event sink (websocket hub, message bus, ...)."""

    async def publish(self, channel: str, event: str, payload: Dict[str, Any]) -> None:
        """Send ``event`` with ``payload`` to subscribers of ``channel``."""


class StoreDispatcher(Protocol):
    """State store receiving ``{"type": ..., "payload": ...}`` actions."""

    def dispatch(self, action: Dict[str, Any]) -> Any:
        """Apply an action. May return an awaitable."""
