"""Namecoin name expiry calendar daemon."""
import argparse
import json
import logging
import signal
import sys
from typing import List, Optional

from config import Config, ConfigError, load_config
from registry.namecoin_client import NamecoinRPCClient, RegistryError
from scheduler.poll_scheduler import PollScheduler, SchedulerState, run_once
from storage.caldav_client import CalDAVClient
from storage.publisher import Publisher


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""
    
    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }
        
        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)
        
        return json.dumps(log_data)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.
    
    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()
    
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)
    
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def build_scheduler(config: Config, logger: Optional[logging.Logger] = None) -> PollScheduler:
    """
    Instantiate the registry client, publisher and scheduler.
    
    Args:
        config: Daemon configuration
        logger: Logger handed to the publisher and scheduler
        
    Returns:
        PollScheduler ready to be started
        
    Raises:
        RegistryError: If the registry client cannot be set up
    """
    registry = NamecoinRPCClient(
        address=config.namecoin_rpc_address,
        username=config.namecoin_rpc_username,
        password=config.namecoin_rpc_password,
        cookie_path=config.namecoin_rpc_cookie_path,
        timeout=config.namecoin_rpc_timeout.total_seconds()
    )
    
    caldav = None
    if config.caldav_url:
        caldav = CalDAVClient(
            url=config.caldav_url,
            username=config.caldav_username,
            password=config.caldav_password
        )
    
    publisher = Publisher(
        ics_path=config.ics_path or None,
        caldav=caldav,
        logger=logger
    )
    
    return PollScheduler(
        registry=registry,
        publisher=publisher,
        margin=config.cal_margin,
        quantum=config.cal_quantum,
        interval=config.cal_query_interval,
        logger=logger
    )


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog='nccald',
        description='Namecoin calendar daemon'
    )
    parser.add_argument(
        '--once',
        action='store_true',
        help='Write ICS file/update CalDAV resource once and exit'
    )
    parser.add_argument(
        '--log-level',
        default=None,
        help='Logging level (overrides LOG_LEVEL)'
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Run the daemon.
    
    Configuration is read from environment variables; --once and
    --log-level override the matching variables.
    
    Returns:
        Process exit status
    """
    args = parse_args(argv)
    
    try:
        config = load_config()
    except ConfigError as e:
        setup_logging(args.log_level or 'INFO')
        logging.getLogger(__name__).error(f"Invalid configuration: {e}")
        return 1
    
    setup_logging(args.log_level or config.log_level)
    logger = logging.getLogger(__name__)
    
    try:
        scheduler = build_scheduler(config, logger=logging.getLogger('nccald'))
    except RegistryError as e:
        logger.error(
            f"Could not instantiate server: {e}",
            extra={'error_type': type(e).__name__}
        )
        return 1
    
    if args.once or config.once:
        run_once(scheduler)
        return 0
    
    def handle_signal(signum, frame):
        logger.info(f"Received signal {signum}, shutting down")
        if scheduler.state is SchedulerState.RUNNING:
            scheduler.stop()
    
    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)
    
    scheduler.start()
    while scheduler.is_alive():
        scheduler.join(timeout=1.0)
    
    return 0


if __name__ == '__main__':
    sys.exit(main())
