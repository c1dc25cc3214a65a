"""Adapters between the streaming layer and the outside world."""

from tutor_llm.application.transport import QueueTransport, TransportEvent

__all__ = ["QueueTransport", "TransportEvent"]
