"""Publication of rendered calendars to file and CalDAV targets."""
import logging
import os
from datetime import datetime
from typing import Callable, Optional, Sequence

from processor.event_builder import render_calendar
from processor.models import CalendarEvent, PublishResult
from storage.caldav_client import CalDAVClient, CalDAVError


class Publisher:
    """Publisher writing a calendar to an ICS file and/or a CalDAV resource."""
    
    def __init__(
        self,
        ics_path: Optional[str] = None,
        caldav: Optional[CalDAVClient] = None,
        renderer: Callable[[datetime, Sequence[CalendarEvent]], bytes] = render_calendar,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the publisher.
        
        Args:
            ics_path: Path of the ICS file to maintain, if any
            caldav: Client for the CalDAV resource to update, if any
            renderer: Function rendering events to ICS bytes
            logger: Logger to report through (default: module logger)
        """
        self.ics_path = ics_path or None
        self.caldav = caldav
        self.renderer = renderer
        self.logger = logger or logging.getLogger(__name__)
    
    @property
    def has_targets(self) -> bool:
        return self.ics_path is not None or self.caldav is not None
    
    def publish_events(
        self,
        now: datetime,
        events: Sequence[CalendarEvent]
    ) -> PublishResult:
        """
        Render events and publish the result to all configured targets.
        
        If rendering fails nothing is published.
        
        Args:
            now: Generation timestamp
            events: Calendar events to publish
            
        Returns:
            PublishResult describing the outcome per target
        """
        if not self.has_targets:
            return self.publish(now, b"")
        
        try:
            artifact = self.renderer(now, events)
        except Exception as e:
            error_msg = f"Could not render calendar: {e}"
            self.logger.error(error_msg, exc_info=True)
            return PublishResult(errors=[error_msg])
        
        return self.publish(now, artifact)
    
    def publish(self, now: datetime, artifact: bytes) -> PublishResult:
        """
        Publish a rendered calendar to all configured targets.
        
        The targets are independent: a failure of one is reported in the
        result and does not prevent or undo the other.
        
        Args:
            now: Generation timestamp
            artifact: Rendered ICS calendar
            
        Returns:
            PublishResult describing the outcome per target
        """
        result = PublishResult()
        
        if not self.has_targets:
            self.logger.warning(
                "Neither ICS path nor CalDAV URL configured, nothing to do"
            )
            return result
        
        if self.ics_path is not None:
            self.logger.info(f"Updating ICS file {self.ics_path}")
            try:
                self.write_file(self.ics_path, artifact)
                result.file_written = True
            except OSError as e:
                error_msg = f"Could not update ICS file: {e}"
                self.logger.error(error_msg)
                result.errors.append(error_msg)
        
        if self.caldav is not None:
            try:
                self.caldav.put(artifact)
                result.remote_updated = True
            except CalDAVError as e:
                error_msg = f"Could not update CalDAV resource: {e}"
                self.logger.error(error_msg)
                result.errors.append(error_msg)
        
        self.logger.info(
            "Publish complete",
            extra={
                'generated_at': now.isoformat(),
                'file_written': result.file_written,
                'remote_updated': result.remote_updated,
                'errors': result.errors
            }
        )
        return result
    
    @staticmethod
    def write_file(path: str, artifact: bytes) -> None:
        """
        Atomically replace a file with new content.
        
        The data is written to path + ".tmp" and renamed over path, so a
        reader watching the file never sees a partial write. A temporary
        file left behind by a failed rename is not removed.
        
        Args:
            path: Destination file path
            artifact: File content
            
        Raises:
            OSError: If writing or renaming fails
        """
        tmp_path = path + ".tmp"
        
        with open(tmp_path, 'wb') as f:
            f.write(artifact)
        
        os.replace(tmp_path, path)
