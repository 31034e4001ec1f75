# Presence
# In-memory presence tracking: records, registry, and the background reaper

from flowclient_api.presence.record import (
    DEFAULT_CLIENT_TAG,
    DEFAULT_CLIENT_VERSION,
    PresenceRecord,
)
from flowclient_api.presence.registry import PresenceRegistry, UpsertResult
from flowclient_api.presence.reaper import PresenceReaper, ReaperState

__all__ = [
    "DEFAULT_CLIENT_TAG",
    "DEFAULT_CLIENT_VERSION",
    "PresenceRecord",
    "PresenceRegistry",
    "UpsertResult",
    "PresenceReaper",
    "ReaperState",
]
