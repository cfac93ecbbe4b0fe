"""Finding model emitted by the bots."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class FindingSeverity(str, Enum):
    """Finding severity levels."""

    UNKNOWN = "unknown"
    INFO = "info"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class FindingType(str, Enum):
    """Finding classification."""

    UNKNOWN = "unknown"
    EXPLOIT = "exploit"
    SUSPICIOUS = "suspicious"
    DEGRADED = "degraded"
    INFO = "info"


def parse_enum_name(enum_cls: type, value: Any) -> Any:
    """Accept either an enum member, its value, or its name in any case."""
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        for member in enum_cls:
            if member.value == normalized or member.name.lower() == normalized:
                return member
    raise ValueError(f"Unknown {enum_cls.__name__}: {value!r}")


@dataclass
class Finding:
    """Structured alert produced by a bot."""

    name: str
    description: str
    alert_id: str
    severity: FindingSeverity
    type: FindingType
    protocol: str
    metadata: Dict[str, str] = field(default_factory=dict)
    addresses: List[str] = field(default_factory=list)
    bot: str = ""
    block_number: Optional[int] = None
    tx_hash: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["severity"] = self.severity.value
        data["type"] = self.type.value
        data["timestamp"] = self.timestamp.isoformat()
        return data
