"""
Heartbeat Validator

Checks the shape of inbound heartbeat payloads before they reach the
PresenceRegistry. Failures are reported as results, never raised.

Rules, checked in order:
1. uuid and username present and non-empty
2. uuid in canonical 8-4-4-4-12 hex form (case-insensitive)
3. username of 3-16 characters from [A-Za-z0-9_]
"""

import logging
import re
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)
USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_]{3,16}$")

MISSING_FIELDS_ERROR = "Missing required fields: uuid, username"
INVALID_UUID_ERROR = "Invalid UUID format"
INVALID_USERNAME_ERROR = "Invalid username format"


@dataclass(frozen=True)
class Heartbeat:
    """A validated heartbeat, ready for PresenceRegistry.upsert."""
    client_id: str
    display_name: str
    client_tag: str | None = None
    client_version: str | None = None


@dataclass(frozen=True)
class ValidationResult:
    """Result of validating one heartbeat payload."""
    heartbeat: Heartbeat | None = None
    error: str | None = None

    @property
    def is_valid(self) -> bool:
        return self.heartbeat is not None

    @classmethod
    def ok(cls, heartbeat: Heartbeat) -> "ValidationResult":
        return cls(heartbeat=heartbeat)

    @classmethod
    def fail(cls, error: str) -> "ValidationResult":
        return cls(error=error)


def _optional_text(value: Any) -> str | None:
    # Non-string or empty optionals fall back to registry defaults
    if isinstance(value, str) and value:
        return value
    return None


class HeartbeatValidator:
    """Validates raw /ping payloads."""

    def validate(self, payload: Any) -> ValidationResult:
        """
        Validate a decoded JSON heartbeat body.

        Args:
            payload: Decoded request body (expected to be a dict)

        Returns:
            ValidationResult carrying either a Heartbeat or an error message
        """
        if not isinstance(payload, dict):
            return ValidationResult.fail(MISSING_FIELDS_ERROR)

        client_id = payload.get("uuid")
        display_name = payload.get("username")

        if not client_id or not display_name:
            return ValidationResult.fail(MISSING_FIELDS_ERROR)

        if not isinstance(client_id, str) or not UUID_PATTERN.fullmatch(client_id):
            logger.debug(f"Rejected heartbeat with malformed uuid: {client_id!r}")
            return ValidationResult.fail(INVALID_UUID_ERROR)

        if not isinstance(display_name, str) or not USERNAME_PATTERN.fullmatch(display_name):
            logger.debug(f"Rejected heartbeat with malformed username: {display_name!r}")
            return ValidationResult.fail(INVALID_USERNAME_ERROR)

        return ValidationResult.ok(Heartbeat(
            client_id=client_id,
            display_name=display_name,
            client_tag=_optional_text(payload.get("client")),
            client_version=_optional_text(payload.get("version")),
        ))
