"""
Presence Record Model

Represents one tracked client in the presence registry.
Contains identity, reported client software and liveness timestamps.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, Field


DEFAULT_CLIENT_TAG = "FlowClient"
DEFAULT_CLIENT_VERSION = "1.8.9"


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


class PresenceRecord(BaseModel):
    """
    The registry's view of a single online client.

    Records are owned by PresenceRegistry; everything handed out
    to callers is a copy.
    """

    # === Identity ===
    client_id: str = Field(
        ...,
        description="Stable client identifier (UUID text form, validated upstream)"
    )
    display_name: str = Field(
        ...,
        description="Player name reported with the latest heartbeat"
    )

    # === Client software ===
    client_tag: str = Field(
        default=DEFAULT_CLIENT_TAG,
        description="Name of the reporting client software"
    )
    client_version: str = Field(
        default=DEFAULT_CLIENT_VERSION,
        description="Version string reported by the client"
    )

    # === Presence ===
    last_seen: datetime = Field(
        default_factory=utcnow,
        description="Timestamp of the most recent heartbeat"
    )
    first_seen: datetime = Field(
        default_factory=utcnow,
        description="When the current online session for this id began"
    )

    def age_seconds(self, now: datetime | None = None) -> float:
        """Seconds elapsed since the last heartbeat."""
        return ((now or utcnow()) - self.last_seen).total_seconds()

    def is_stale(self, timeout_seconds: float, now: datetime | None = None) -> bool:
        """True once the last heartbeat is strictly older than the timeout."""
        return self.age_seconds(now) > timeout_seconds

    def to_public_dict(self) -> dict:
        """Return the public view of the record (for /online responses)."""
        return {"username": self.display_name}
