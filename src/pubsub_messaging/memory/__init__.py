"""In-memory broker adapter for testing."""

from __future__ import annotations

from .bus import InMemoryBroker
from .consumer import InMemoryMessage, InMemorySubscription
from .publisher import InMemoryTopic

__all__ = [
    "InMemoryBroker",
    "InMemoryMessage",
    "InMemorySubscription",
    "InMemoryTopic",
]
