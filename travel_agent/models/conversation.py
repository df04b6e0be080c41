"""Conversation-level runtime models."""

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class ModelEndpoint:
    """A completion model, tried in ascending priority order."""
    identifier: str  # e.g. "mistralai/Mixtral-8x7B-Instruct-v0.1"
    priority: int


class ConnectionState(str, Enum):
    """Lifecycle of the external capability provider connection."""
    UNCONNECTED = "unconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"  # Live session, discovered tools merged
    DEGRADED = "degraded"  # Live session, discovery failed, fallback tools merged
    UNAVAILABLE = "unavailable"  # Handshake failed or timed out, never retried

    @property
    def is_settled(self) -> bool:
        return self in (ConnectionState.CONNECTED, ConnectionState.DEGRADED, ConnectionState.UNAVAILABLE)

    @property
    def has_session(self) -> bool:
        return self in (ConnectionState.CONNECTED, ConnectionState.DEGRADED)
