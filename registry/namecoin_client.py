"""JSON-RPC client for the Namecoin Core name registry."""
import itertools
import logging
from typing import Any, List, Optional

import requests
from requests.auth import HTTPBasicAuth

from processor.models import NameRecord

logger = logging.getLogger(__name__)


class RegistryError(Exception):
    """Raised when the name registry cannot be queried."""


class NamecoinRPCClient:
    """Client for the name_list call of a Namecoin Core RPC server."""
    
    COOKIE_USERNAME = "__cookie__"
    
    def __init__(
        self,
        address: str = "127.0.0.1:8336",
        username: str = "",
        password: str = "",
        cookie_path: str = "",
        timeout: float = 1.5,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the RPC client.
        
        Namecoin Core only speaks plain HTTP POST, so no TLS is used. When
        no password is given and a cookie path is, credentials are read
        from the cookie file written by the node.
        
        Args:
            address: host:port of the RPC server
            username: RPC username
            password: RPC password
            cookie_path: Path of the node's .cookie file
            timeout: HTTP request timeout in seconds (default: 1.5)
            session: Optional requests session to reuse
            
        Raises:
            RegistryError: If the cookie file cannot be read
        """
        self.url = f"http://{address}/"
        self.timeout = timeout
        self.session = session or requests.Session()
        self._ids = itertools.count(1)
        
        if not password and cookie_path:
            username, password = self._read_cookie(cookie_path)
        
        self.auth = HTTPBasicAuth(username, password) if username else None
        logger.info(f"Initialized NamecoinRPCClient for {self.url}")
    
    def _read_cookie(self, cookie_path: str) -> tuple[str, str]:
        """
        Read RPC credentials from a cookie file.
        
        Args:
            cookie_path: Path of the cookie file
            
        Returns:
            Tuple of (username, password)
        """
        try:
            with open(cookie_path, encoding='utf-8') as f:
                content = f.read().strip()
        except OSError as e:
            raise RegistryError(
                f"Could not read RPC cookie file {cookie_path}: {e}"
            ) from e
        
        username, sep, password = content.partition(':')
        if not sep:
            raise RegistryError(f"Malformed RPC cookie file {cookie_path}")
        
        return username, password
    
    def call(self, method: str, *params: Any) -> Any:
        """
        Perform a JSON-RPC call.
        
        Args:
            method: RPC method name
            *params: Positional RPC parameters
            
        Returns:
            The "result" member of the response
            
        Raises:
            RegistryError: On transport failure or an RPC error response
        """
        payload = {
            'jsonrpc': '1.0',
            'id': next(self._ids),
            'method': method,
            'params': list(params)
        }
        
        try:
            response = self.session.post(
                self.url,
                json=payload,
                auth=self.auth,
                timeout=self.timeout
            )
        except requests.RequestException as e:
            raise RegistryError(f"RPC request {method} failed: {e}") from e
        
        # Namecoin Core reports RPC errors with a 500 status and a JSON body.
        try:
            body = response.json()
        except ValueError as e:
            raise RegistryError(
                f"RPC request {method} returned HTTP {response.status_code} "
                f"with a non-JSON body"
            ) from e
        
        if not isinstance(body, dict):
            raise RegistryError(f"RPC request {method} returned a malformed body")

        error = body.get('error')
        if error:
            message = error.get('message', error) if isinstance(error, dict) else error
            raise RegistryError(f"RPC request {method} failed: {message}")
        
        if not response.ok:
            raise RegistryError(
                f"RPC request {method} returned HTTP {response.status_code}"
            )
        
        return body.get('result')
    
    def list_names(self) -> List[NameRecord]:
        """
        List the names held by the node's wallet.
        
        Returns:
            List of NameRecord objects in registry order
            
        Raises:
            RegistryError: If the query fails
        """
        result = self.call('name_list')
        if not isinstance(result, list):
            raise RegistryError(
                f"Unexpected name_list result type: {type(result).__name__}"
            )
        
        records = []
        for item in result:
            record = self._parse_record(item)
            if record:
                records.append(record)
        
        logger.info(f"Retrieved {len(records)} names from registry")
        return records
    
    def _parse_record(self, item: Any) -> Optional[NameRecord]:
        """
        Parse a single name_list entry.
        
        Args:
            item: Entry from the name_list result
            
        Returns:
            NameRecord object or None if the entry is malformed
        """
        try:
            return NameRecord(
                name=str(item['name']),
                height=int(item['height']),
                expires_in=int(item['expires_in']),
                expired=bool(item.get('expired', False))
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Skipping malformed name_list entry: {e}")
            return None
