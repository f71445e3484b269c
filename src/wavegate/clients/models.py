"""Typed views of remote state, parsed at the client boundary."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class ClusterStatus(Enum):
    """Lifecycle status of the local cluster host."""
    RUNNING = "Running"
    STOPPED = "Stopped"
    ABSENT = "Absent"

    @classmethod
    def parse(cls, raw: Optional[str]) -> "ClusterStatus":
        if raw == "Running":
            return cls.RUNNING
        if raw == "Stopped":
            return cls.STOPPED
        return cls.ABSENT


class SyncState(Enum):
    """Whether live state matches the declared desired state."""
    SYNCED = "Synced"
    OUT_OF_SYNC = "OutOfSync"
    UNKNOWN = "Unknown"
    ERROR = "Error"

    @classmethod
    def parse(cls, raw: Optional[str]) -> "SyncState":
        for state in cls:
            if state.value == raw:
                return state
        return cls.UNKNOWN


class HealthState(Enum):
    """Runtime health of the resources produced by a reconciliation."""
    HEALTHY = "Healthy"
    PROGRESSING = "Progressing"
    DEGRADED = "Degraded"
    SUSPENDED = "Suspended"
    MISSING = "Missing"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, raw: Optional[str]) -> "HealthState":
        for state in cls:
            if state.value == raw:
                return state
        return cls.UNKNOWN


# Condition types meaning a sync will not converge by waiting
SYNC_ERROR_CONDITIONS = frozenset({"ComparisonError", "SyncError"})


@dataclass(frozen=True)
class ManagedResourceRef:
    """Identifies a remotely reconciled resource."""

    name: str
    namespace: str
    kind: str = "application"

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass(frozen=True)
class ResourceCondition:
    """One condition reported by the control plane, kept for display only."""

    type: str
    message: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResourceCondition":
        return cls(type=str(data.get("type", "Unknown")), message=str(data.get("message", "")))

    def to_dict(self) -> Dict[str, str]:
        return {"type": self.type, "message": self.message}


@dataclass
class SyncStatus:
    """Sync state plus the conditions reported alongside it."""

    state: SyncState
    conditions: List[ResourceCondition] = field(default_factory=list)

    def has_sync_error(self) -> bool:
        """Check for conditions that mean the sync can never succeed."""
        return any(c.type in SYNC_ERROR_CONDITIONS for c in self.conditions)


@dataclass
class HealthStatus:
    """Health state plus the conditions reported alongside it."""

    state: HealthState
    conditions: List[ResourceCondition] = field(default_factory=list)


def parse_conditions(raw: Any) -> List[ResourceCondition]:
    """Parse a raw condition list, ignoring malformed entries."""
    if not isinstance(raw, list):
        return []
    return [ResourceCondition.from_dict(item) for item in raw if isinstance(item, dict)]


def conditions_payload(conditions: List[ResourceCondition]) -> List[Dict[str, str]]:
    """Serialize conditions for error diagnostics."""
    return [condition.to_dict() for condition in conditions]
