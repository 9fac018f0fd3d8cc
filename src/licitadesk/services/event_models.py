"""
Event data models for realtime delivery.

A ``ChangeEvent`` describes one committed insert/update/delete of a row (or
an ephemeral signal such as typing) and is what every subscriber receives.
The same structure is flattened for the Redis Streams mirror.
"""

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict


class ChangeAction(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
    # Broadcast-only signals, never persisted
    TYPING_START = "typing_start"
    TYPING_STOP = "typing_stop"


# Tables the bus publishes on
CHAT_MESSAGES = "chat_messages"
CHAT_ROOMS = "chat_rooms"
OPPORTUNITIES = "opportunities"
TICKETS = "tickets"
TICKET_MESSAGES = "ticket_messages"
NOTIFICATIONS = "notifications"
TYPING = "typing"


@dataclass
class ChangeEvent:
    """
    Attributes:
        table: Logical table the change belongs to
        action: insert / update / delete or an ephemeral signal
        record: Row data after the change (before it, for deletes)
        event_id: Unique identifier for client-side dedup
        timestamp: Publication time, ISO 8601 UTC
    """

    table: str
    action: ChangeAction
    record: Dict[str, Any] = field(default_factory=dict)
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "table": self.table,
            "action": self.action.value,
            "timestamp": self.timestamp,
            "record": self.record,
        }

    def to_stream_dict(self) -> Dict[str, str]:
        """Redis Streams XADD format: every value must be a string."""
        return {
            "event_id": self.event_id,
            "table": self.table,
            "action": self.action.value,
            "timestamp": self.timestamp,
            "record": json.dumps(self.record, default=str),
        }

    @classmethod
    def from_stream_dict(cls, data: Dict[bytes, bytes]) -> "ChangeEvent":
        def text(key: bytes, default: str = "") -> str:
            value = data.get(key, default.encode())
            return value.decode("utf-8") if isinstance(value, bytes) else str(value)

        return cls(
            table=text(b"table"),
            action=ChangeAction(text(b"action")),
            record=json.loads(text(b"record", "{}") or "{}"),
            event_id=text(b"event_id"),
            timestamp=text(b"timestamp"),
        )


def record_of(row: Any) -> Dict[str, Any]:
    """JSON-safe snapshot of a table row for an event payload."""
    return row.model_dump(mode="json")
