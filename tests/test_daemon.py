"""Integration tests for the daemon entry point."""
import json
import logging
import os
from datetime import timedelta
from unittest.mock import Mock, patch

import pytest

from config import Config
from daemon import JsonFormatter, build_scheduler, main, setup_logging
from registry.namecoin_client import RegistryError
from scheduler.poll_scheduler import PollScheduler


@pytest.fixture
def mock_env(tmp_path):
    """Set up environment variables for testing."""
    env_vars = {
        'NAMECOIN_RPC_USERNAME': 'user',
        'NAMECOIN_RPC_PASSWORD': 'secret',
        'ICS_PATH': str(tmp_path / 'names.ics'),
        'LOG_LEVEL': 'INFO'
    }
    with patch.dict(os.environ, env_vars, clear=True):
        yield env_vars


@pytest.fixture(autouse=True)
def restore_root_logger():
    """Restore root logger handlers and level changed by setup_logging."""
    root_logger = logging.getLogger()
    handlers = root_logger.handlers[:]
    level = root_logger.level
    yield
    root_logger.handlers[:] = handlers
    root_logger.setLevel(level)


class TestMain:
    """Test cases for main."""
    
    @patch('daemon.run_once')
    @patch('daemon.build_scheduler')
    def test_once_mode(self, mock_build, mock_run_once, mock_env):
        """Test that --once runs a single cycle and exits cleanly."""
        scheduler = Mock()
        mock_build.return_value = scheduler
        
        assert main(['--once']) == 0
        
        mock_run_once.assert_called_once_with(scheduler)
        scheduler.start.assert_not_called()
    
    @patch('daemon.run_once')
    @patch('daemon.build_scheduler')
    def test_once_from_environment(self, mock_build, mock_run_once, mock_env):
        """Test that ONCE=1 selects run-once mode."""
        with patch.dict(os.environ, {'ONCE': '1'}):
            assert main([]) == 0
        
        mock_run_once.assert_called_once()
    
    @patch('daemon.build_scheduler')
    def test_construction_failure(self, mock_build, mock_env):
        """Test that a construction error exits with status 1."""
        mock_build.side_effect = RegistryError('Could not read RPC cookie file')
        
        assert main(['--once']) == 1
    
    def test_invalid_configuration(self, mock_env):
        """Test that invalid configuration exits with status 1."""
        with patch.dict(os.environ, {'CAL_MARGIN': 'soon'}):
            assert main(['--once']) == 1
    
    @patch('daemon.build_scheduler')
    def test_service_mode_runs_until_stopped(self, mock_build, mock_env):
        """Test that service mode starts the scheduler and waits for it."""
        scheduler = Mock()
        scheduler.is_alive.side_effect = [True, False]
        mock_build.return_value = scheduler
        
        with patch('daemon.signal.signal'):
            assert main([]) == 0
        
        scheduler.start.assert_called_once()
        scheduler.join.assert_called_once_with(timeout=1.0)


class TestBuildScheduler:
    """Test cases for build_scheduler."""
    
    def test_build_with_file_and_caldav(self, tmp_path):
        """Test wiring of registry, publisher and scheduler."""
        config = Config(
            namecoin_rpc_username='user',
            namecoin_rpc_password='secret',
            cal_query_interval=timedelta(minutes=5),
            ics_path=str(tmp_path / 'names.ics'),
            caldav_url='https://dav.example.com/names.ics',
            caldav_username='dav',
            caldav_password='davpw'
        )
        
        scheduler = build_scheduler(config)
        
        assert isinstance(scheduler, PollScheduler)
        assert scheduler.interval == timedelta(minutes=5)
        assert scheduler.publisher.ics_path == config.ics_path
        assert scheduler.publisher.caldav.url == config.caldav_url
        assert scheduler.registry.url == 'http://127.0.0.1:8336/'
    
    def test_build_without_targets(self):
        """Test that no targets leaves the publisher empty."""
        scheduler = build_scheduler(Config())
        
        assert scheduler.publisher.has_targets is False


class TestSetupLogging:
    """Test cases for logging setup."""
    
    def test_setup_logging_default_level(self):
        """Test logging setup with default INFO level."""
        setup_logging()
        assert logging.getLogger().level == logging.INFO
    
    def test_setup_logging_debug_level(self):
        """Test logging setup with DEBUG level."""
        setup_logging('DEBUG')
        assert logging.getLogger().level == logging.DEBUG
    
    def test_setup_logging_uses_json_formatter(self):
        """Test that the root handler formats records as JSON."""
        setup_logging('INFO')
        handler = logging.getLogger().handlers[0]
        assert isinstance(handler.formatter, JsonFormatter)
    
    def test_json_formatter_output(self):
        """Test the JSON fields produced for a record."""
        record = logging.LogRecord(
            name='nccald',
            level=logging.ERROR,
            pathname=__file__,
            lineno=1,
            msg='Could not list names: %s',
            args=('refused',),
            exc_info=None
        )
        
        data = json.loads(JsonFormatter().format(record))
        
        assert data['level'] == 'ERROR'
        assert data['message'] == 'Could not list names: refused'
        assert data['logger'] == 'nccald'
        assert 'timestamp' in data
        assert 'exception' not in data
