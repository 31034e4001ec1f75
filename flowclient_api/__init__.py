# FlowClient API - in-memory presence tracking for FlowClient players
# Clients ping periodically; players that stop pinging are expired

__version__ = "1.0.0"

from flowclient_api.presence import (
    PresenceRecord,
    PresenceRegistry,
    PresenceReaper,
    ReaperState,
    UpsertResult,
)
from flowclient_api.validation import HeartbeatValidator

__all__ = [
    "__version__",
    "PresenceRecord",
    "PresenceRegistry",
    "PresenceReaper",
    "ReaperState",
    "UpsertResult",
    "HeartbeatValidator",
]
