"""Calendar event generation for name expiry estimates."""
import logging
from datetime import datetime
from typing import List, Sequence

from icalendar import Calendar, Event, vCalAddress

from processor.models import CalendarEvent, ExtraInfo, NameRecord

logger = logging.getLogger(__name__)

UID_DOMAIN = "nccald"
ORGANIZER = "nccald@namecoin.org"
PRODUCT_ID = "nccald"
CALENDAR_NAME = "nccald calendar"

_SAFE_CHARS = frozenset("abcdefghijklmnopqrstuvwxyz0123456789-")


def encode_name(name: str) -> str:
    """
    Munge a Namecoin name to something safe to use in URLs and paths.
    
    Characters in [a-z0-9-] pass through; anything else becomes '_'
    followed by its codepoint in lowercase hex (at least two digits).
    
    Args:
        name: Raw Namecoin name, e.g. "d/Example"
        
    Returns:
        Encoded name, e.g. "d_2f_45xample"
    """
    return "".join(
        ch if ch in _SAFE_CHARS else f"_{ord(ch):02x}"
        for ch in name
    )


class CalendarEventBuilder:
    """Builder turning name records and expiry estimates into events."""
    
    def __init__(self, organizer: str = ORGANIZER, uid_domain: str = UID_DOMAIN):
        self.organizer = organizer
        self.uid_domain = uid_domain
    
    def build_events(
        self,
        now: datetime,
        records: Sequence[NameRecord],
        extra_info: Sequence[ExtraInfo]
    ) -> List[CalendarEvent]:
        """
        Build one calendar event per name record.
        
        records[i] must correspond to extra_info[i] for every i.
        
        Args:
            now: Generation timestamp
            records: Name records from a single registry query
            extra_info: Expiry estimates paired by index with records
            
        Returns:
            List of CalendarEvent objects in input order
            
        Raises:
            ValueError: If records and extra_info differ in length
        """
        if len(records) != len(extra_info):
            raise ValueError(
                f"Got {len(records)} records but {len(extra_info)} estimates"
            )
        
        return [
            self._build_event(now, record, info)
            for record, info in zip(records, extra_info)
        ]
    
    def _build_event(
        self,
        now: datetime,
        record: NameRecord,
        info: ExtraInfo
    ) -> CalendarEvent:
        name = encode_name(record.name)
        return CalendarEvent(
            uid=f"{name}@{self.uid_domain}",
            created_at=now,
            timestamp=info.estimated_expiry_time,
            summary=f'Expiry of Namecoin name "{name}" ({info.expiry_height})',
            description=(
                f'Namecoin name "{name}" is estimated to expire around this '
                f'time (expires at height {info.expiry_height})'
            ),
            organizer=self.organizer
        )


def render_calendar(now: datetime, events: Sequence[CalendarEvent]) -> bytes:
    """
    Render calendar events as a single ICS VCALENDAR.
    
    Each event becomes a zero-duration VEVENT at its estimated expiry time.
    
    Args:
        now: Generation timestamp, used as LAST-MODIFIED
        events: Events to include
        
    Returns:
        ICS file content
    """
    cal = Calendar()
    cal.add('prodid', PRODUCT_ID)
    cal.add('version', '2.0')
    cal.add('method', 'PUBLISH')
    cal.add('x-wr-calname', CALENDAR_NAME)
    cal.add('last-modified', now)
    
    for event in events:
        vevent = Event()
        vevent.add('uid', event.uid)
        vevent.add('created', event.created_at)
        vevent.add('dtstamp', event.created_at)
        vevent.add('dtstart', event.timestamp)
        vevent.add('dtend', event.timestamp)
        vevent.add('summary', event.summary)
        vevent.add('description', event.description)
        vevent['organizer'] = vCalAddress(f"mailto:{event.organizer}")
        cal.add_component(vevent)
    
    logger.debug(f"Rendered calendar with {len(events)} events")
    return cal.to_ical()
