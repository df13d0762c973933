"""Data models for name expiry processing."""
from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class NameRecord:
    """Registry entry from a single name_list query."""
    name: str
    height: int
    expires_in: int
    expired: bool


@dataclass(frozen=True)
class ExtraInfo:
    """Derived expiry data, paired by index with a NameRecord."""
    estimated_expiry_time: datetime
    expiry_height: int


@dataclass(frozen=True)
class CalendarEvent:
    """Calendar entry marking the estimated expiry of one name."""
    uid: str
    created_at: datetime
    timestamp: datetime
    summary: str
    description: str
    organizer: str


@dataclass
class PublishResult:
    """Result of a publish operation."""
    file_written: bool = False
    remote_updated: bool = False
    errors: list[str] = field(default_factory=list)
    
    @property
    def ok(self) -> bool:
        return not self.errors
