"""CalDAV client for updating a remote calendar resource."""
import logging
from typing import Optional

import requests
from requests.auth import HTTPBasicAuth

logger = logging.getLogger(__name__)


class CalDAVError(Exception):
    """Raised when a CalDAV resource cannot be updated."""


class CalDAVClient:
    """Client that replaces a CalDAV calendar resource with HTTP PUT."""
    
    CONTENT_TYPE = "text/calendar; charset=utf-8"
    
    def __init__(
        self,
        url: str,
        username: str = "",
        password: str = "",
        timeout: int = 30,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the CalDAV client.
        
        Args:
            url: URL of the calendar resource
            username: Basic auth username; no auth is sent when empty
            password: Basic auth password
            timeout: HTTP request timeout in seconds (default: 30)
            session: Optional requests session to reuse
        """
        self.url = url
        self.timeout = timeout
        self.auth = HTTPBasicAuth(username, password) if username else None
        self.session = session or requests.Session()
    
    def put(self, artifact: bytes) -> None:
        """
        Replace the remote calendar resource with the given ICS data.
        
        Args:
            artifact: Rendered ICS calendar
            
        Raises:
            CalDAVError: On transport failure or a non-2xx response
        """
        logger.info(f"Updating CalDAV resource {self.url}")
        
        try:
            response = self.session.put(
                self.url,
                data=artifact,
                headers={'Content-Type': self.CONTENT_TYPE},
                auth=self.auth,
                timeout=self.timeout
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise CalDAVError(f"Could not update CalDAV resource {self.url}: {e}") from e
        
        logger.info(f"CalDAV resource updated (HTTP {response.status_code})")
