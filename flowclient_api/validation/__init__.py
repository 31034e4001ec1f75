# Validation
# Shape checks for inbound heartbeats, applied before the registry is touched

from flowclient_api.validation.validator import (
    Heartbeat,
    HeartbeatValidator,
    ValidationResult,
)

__all__ = ["Heartbeat", "HeartbeatValidator", "ValidationResult"]
