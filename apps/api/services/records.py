"""Domain records shared by the stores and the services that read them."""

from __future__ import annotations

import secrets
import string
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional


STORY_STATUSES = ("pending", "approved", "denied")
EVENT_KINDS = ("page_view", "page_exit", "event")

_ID_ALPHABET = string.ascii_lowercase + string.digits


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _random_suffix(length: int = 9) -> str:
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(length))


def new_record_id(prefix: str, now: Optional[datetime] = None) -> str:
    """Time-prefixed id such as ``story_1718000000000_k3j9x0a1b``."""
    current = now or utc_now()
    return f"{prefix}_{int(current.timestamp() * 1000)}_{_random_suffix()}"


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string (``Z`` suffix allowed) into an aware datetime."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    text = str(value or "").strip()
    if not text:
        return None
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class StoryRecord:
    id: str
    content: str
    timestamp: datetime
    title: str = "Untitled Story"
    category: str = "other"
    status: str = "pending"
    reviewed_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "category": self.category,
            "status": self.status,
            "timestamp": _isoformat(self.timestamp),
            "reviewed_at": _isoformat(self.reviewed_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StoryRecord":
        return cls(
            id=str(data["id"]),
            title=str(data.get("title") or "Untitled Story"),
            content=str(data.get("content") or ""),
            category=str(data.get("category") or "other"),
            status=str(data.get("status") or "pending"),
            timestamp=parse_datetime(data.get("timestamp")) or utc_now(),
            reviewed_at=parse_datetime(data.get("reviewed_at")),
        )


@dataclass
class EventRecord:
    id: str
    type: str
    page: str
    timestamp: datetime
    session_id: str = "unknown"
    event_type: Optional[str] = None
    event_data: Dict[str, Any] = field(default_factory=dict)
    ip: str = "unknown"

    @property
    def time_on_page(self) -> Optional[float]:
        value = self.event_data.get("timeOnPage")
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        return float(value)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "page": self.page,
            "session_id": self.session_id,
            "timestamp": _isoformat(self.timestamp),
            "event_type": self.event_type,
            "event_data": dict(self.event_data),
            "ip": self.ip,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EventRecord":
        return cls(
            id=str(data["id"]),
            type=str(data.get("type") or "event"),
            page=str(data.get("page") or "unknown"),
            timestamp=parse_datetime(data.get("timestamp")) or utc_now(),
            session_id=str(data.get("session_id") or "unknown"),
            event_type=data.get("event_type"),
            event_data=dict(data.get("event_data") or {}),
            ip=str(data.get("ip") or "unknown"),
        )
