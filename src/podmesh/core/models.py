"""
podmesh Core Data Models

These models define the data exchanged between agents:
- Access modes: WAC modes granted on a resource
- Directory entries: Agents registered in the shared directory
- Notifications: Sharing announcements in an agent's inbox
- Share results: Outcome of a grant-then-notify share
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Enums
# =============================================================================


class AccessMode(str, Enum):
    """WAC access modes."""

    READ = "Read"
    WRITE = "Write"
    APPEND = "Append"
    CONTROL = "Control"

    @classmethod
    def parse(cls, value: "AccessMode | str") -> "AccessMode":
        """Parse a mode name case-insensitively ("read", "Read", "acl:Read")."""
        if isinstance(value, cls):
            return value
        name = value.strip().removeprefix("acl:")
        for mode in cls:
            if mode.value.lower() == name.lower():
                return mode
        raise ValueError(f"Unknown access mode: {value}")


def parse_modes(values: "list[AccessMode | str] | str") -> list[AccessMode]:
    """Parse modes from a list or a comma-separated string, keeping order."""
    if isinstance(values, str):
        values = [v for v in values.split(",") if v.strip()]

    modes: list[AccessMode] = []
    for value in values:
        mode = AccessMode.parse(value)
        if mode not in modes:
            modes.append(mode)
    return modes


# =============================================================================
# Directory Models
# =============================================================================


class DirectoryEntry(BaseModel):
    """An agent registered in the shared directory."""

    web_id: str
    name: str
    pod_url: str = ""
    capabilities: list[str] = Field(default_factory=list)

    @property
    def inbox_url(self) -> str:
        """The agent's inbox container, by pod layout convention."""
        pod_url = self.pod_url if self.pod_url.endswith("/") else self.pod_url + "/"
        return f"{pod_url}inbox/"

    def has_capability(self, capability: str) -> bool:
        """Case-insensitive capability membership."""
        wanted = capability.lower()
        return any(c.lower() == wanted for c in self.capabilities)


# =============================================================================
# Notification Models
# =============================================================================


class SharingNotification(BaseModel):
    """A sharing announcement stored in a recipient's inbox."""

    model_config = ConfigDict(frozen=True)

    id: str  # Store-assigned location of the notification
    actor: str
    target: str = ""
    resource_url: str
    modes: list[str] = Field(default_factory=list)
    published: datetime | None = None
    summary: str | None = None


# =============================================================================
# Sharing Models
# =============================================================================


class ShareResult(BaseModel):
    """
    Outcome of a share.

    The grant is the durable effect: once ``granted`` is True it stays
    in place even when the notification stage failed, in which case
    ``notified`` is False and ``error`` describes the failure.
    """

    granted: bool
    notified: bool = False
    notification_url: str | None = None
    error: str | None = None
    error_status: int | None = None
