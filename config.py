"""Configuration loading for the calendar daemon."""
import os
import re
from dataclasses import dataclass
from datetime import timedelta
from typing import Mapping, Optional


class ConfigError(Exception):
    """Raised when the configuration is invalid."""


_DURATION_PART = re.compile(r'(\d+(?:\.\d+)?)(ms|h|m|s)')

_DURATION_UNITS = {
    'h': timedelta(hours=1),
    'm': timedelta(minutes=1),
    's': timedelta(seconds=1),
    'ms': timedelta(milliseconds=1),
}


def parse_duration(value: str) -> timedelta:
    """
    Parse a duration such as "72h", "10m" or "1h30m".
    
    Args:
        value: Duration string made of number/unit pairs (h, m, s, ms)
        
    Returns:
        Parsed duration
        
    Raises:
        ConfigError: If the string is not a valid duration
    """
    text = value.strip()
    if text in ('0', ''):
        return timedelta(0)
    
    pos = 0
    total = timedelta(0)
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    
    if pos != len(text):
        raise ConfigError(f"Invalid duration: {value!r}")
    
    return total


def _parse_bool(value: str) -> bool:
    text = value.strip().lower()
    if text in ('1', 'true', 'yes', 'on'):
        return True
    if text in ('', '0', 'false', 'no', 'off'):
        return False
    raise ConfigError(f"Invalid boolean: {value!r}")


@dataclass(frozen=True)
class Config:
    """Daemon configuration; read-only once loaded."""
    namecoin_rpc_username: str = ""
    namecoin_rpc_password: str = ""
    namecoin_rpc_address: str = "127.0.0.1:8336"
    namecoin_rpc_cookie_path: str = ""
    namecoin_rpc_timeout: timedelta = timedelta(milliseconds=1500)
    cal_margin: timedelta = timedelta(hours=72)
    cal_quantum: timedelta = timedelta(hours=72)
    cal_query_interval: timedelta = timedelta(minutes=10)
    ics_path: str = ""
    caldav_url: str = ""
    caldav_username: str = ""
    caldav_password: str = ""
    once: bool = False
    log_level: str = "INFO"


def load_config(environ: Optional[Mapping[str, str]] = None) -> Config:
    """
    Load configuration from environment variables.
    
    Args:
        environ: Environment mapping (default: os.environ)
        
    Returns:
        Config object
        
    Raises:
        ConfigError: If a value cannot be parsed
    """
    env = os.environ if environ is None else environ
    
    timeout_ms = env.get('NAMECOIN_RPC_TIMEOUT', '1500')
    try:
        rpc_timeout = timedelta(milliseconds=int(timeout_ms))
    except ValueError as e:
        raise ConfigError(f"Invalid NAMECOIN_RPC_TIMEOUT: {timeout_ms!r}") from e
    
    return Config(
        namecoin_rpc_username=env.get('NAMECOIN_RPC_USERNAME', ''),
        namecoin_rpc_password=env.get('NAMECOIN_RPC_PASSWORD', ''),
        namecoin_rpc_address=env.get('NAMECOIN_RPC_ADDRESS', '127.0.0.1:8336'),
        namecoin_rpc_cookie_path=env.get('NAMECOIN_RPC_COOKIE_PATH', ''),
        namecoin_rpc_timeout=rpc_timeout,
        cal_margin=parse_duration(env.get('CAL_MARGIN', '72h')),
        cal_quantum=parse_duration(env.get('CAL_QUANTUM', '72h')),
        cal_query_interval=parse_duration(env.get('CAL_QUERY_INTERVAL', '10m')),
        ics_path=env.get('ICS_PATH', ''),
        caldav_url=env.get('CALDAV_URL', ''),
        caldav_username=env.get('CALDAV_USERNAME', ''),
        caldav_password=env.get('CALDAV_PASSWORD', ''),
        once=_parse_bool(env.get('ONCE', '')),
        log_level=env.get('LOG_LEVEL', 'INFO')
    )
