"""Unit tests for Publisher and CalDAVClient."""
import logging
import os
from datetime import datetime, timezone

import pytest
import requests
import responses

from processor.models import CalendarEvent
from storage.caldav_client import CalDAVClient, CalDAVError
from storage.publisher import Publisher

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
CALDAV_URL = "https://dav.example.com/calendars/user/names.ics"
ARTIFACT = b"BEGIN:VCALENDAR\r\nEND:VCALENDAR\r\n"


@pytest.fixture
def sample_events():
    """Create sample calendar events."""
    return [
        CalendarEvent(
            uid='d_2fexample@nccald',
            created_at=NOW,
            timestamp=datetime(2026, 9, 5, tzinfo=timezone.utc),
            summary='Expiry of Namecoin name "d_2fexample" (37000)',
            description='Namecoin name "d_2fexample" is estimated to expire',
            organizer='nccald@namecoin.org'
        )
    ]


class TestPublisher:
    """Test cases for Publisher class."""
    
    def test_publish_file_only(self, tmp_path):
        """Test that the artifact is written and no temp file remains."""
        path = tmp_path / 'names.ics'
        path.write_bytes(b'old')
        
        result = Publisher(ics_path=str(path)).publish(NOW, ARTIFACT)
        
        assert result.ok
        assert result.file_written is True
        assert result.remote_updated is False
        assert path.read_bytes() == ARTIFACT
        assert not os.path.exists(str(path) + '.tmp')
    
    def test_publish_without_targets(self, caplog):
        """Test that publishing with no targets is a logged no-op."""
        with caplog.at_level(logging.WARNING):
            result = Publisher().publish(NOW, ARTIFACT)
        
        assert result.ok
        assert result.file_written is False
        assert result.remote_updated is False
        assert any('nothing to do' in r.message for r in caplog.records)
    
    @responses.activate
    def test_file_succeeds_remote_fails(self, tmp_path):
        """Test that a CalDAV failure is reported without touching the file."""
        responses.add(responses.PUT, CALDAV_URL, body='Server Error', status=500)
        path = tmp_path / 'names.ics'
        
        publisher = Publisher(
            ics_path=str(path),
            caldav=CalDAVClient(CALDAV_URL, username='user', password='pw')
        )
        result = publisher.publish(NOW, ARTIFACT)
        
        assert result.file_written is True
        assert result.remote_updated is False
        assert len(result.errors) == 1
        assert 'CalDAV' in result.errors[0]
        assert path.read_bytes() == ARTIFACT
    
    @responses.activate
    def test_remote_succeeds_file_fails(self, tmp_path):
        """Test that a file failure does not block the CalDAV update."""
        responses.add(responses.PUT, CALDAV_URL, status=204)
        path = tmp_path / 'missing-dir' / 'names.ics'
        
        publisher = Publisher(ics_path=str(path), caldav=CalDAVClient(CALDAV_URL))
        result = publisher.publish(NOW, ARTIFACT)
        
        assert result.file_written is False
        assert result.remote_updated is True
        assert len(result.errors) == 1
        assert 'ICS file' in result.errors[0]
        assert len(responses.calls) == 1
    
    def test_rename_failure_leaves_temp_file(self, tmp_path):
        """Test that a failed rename is reported and the temp file kept."""
        path = tmp_path / 'names.ics'
        path.mkdir()
        
        result = Publisher(ics_path=str(path)).publish(NOW, ARTIFACT)
        
        assert result.file_written is False
        assert len(result.errors) == 1
        assert (tmp_path / 'names.ics.tmp').read_bytes() == ARTIFACT
    
    @responses.activate
    def test_publish_events_renders_once_for_both_targets(self, tmp_path, sample_events):
        """Test that both targets receive the same rendered calendar."""
        responses.add(responses.PUT, CALDAV_URL, status=201)
        path = tmp_path / 'names.ics'
        
        publisher = Publisher(ics_path=str(path), caldav=CalDAVClient(CALDAV_URL))
        result = publisher.publish_events(NOW, sample_events)
        
        assert result.ok
        data = path.read_bytes()
        assert b'BEGIN:VCALENDAR' in data
        assert b'd_2fexample@nccald' in data
        assert responses.calls[0].request.body == data
    
    @responses.activate
    def test_render_failure_skips_publishing(self, tmp_path, sample_events):
        """Test that nothing is published when rendering fails."""
        path = tmp_path / 'names.ics'
        
        def broken_renderer(now, events):
            raise ValueError('cannot render')
        
        publisher = Publisher(
            ics_path=str(path),
            caldav=CalDAVClient(CALDAV_URL),
            renderer=broken_renderer
        )
        result = publisher.publish_events(NOW, sample_events)
        
        assert len(result.errors) == 1
        assert 'cannot render' in result.errors[0]
        assert not path.exists()
        assert len(responses.calls) == 0


class TestCalDAVClient:
    """Test cases for CalDAVClient class."""
    
    @responses.activate
    def test_put_sends_calendar_with_basic_auth(self):
        """Test the PUT request headers and body."""
        responses.add(responses.PUT, CALDAV_URL, status=204)
        
        CalDAVClient(CALDAV_URL, username='user', password='pw').put(ARTIFACT)
        
        request = responses.calls[0].request
        assert request.body == ARTIFACT
        assert request.headers['Content-Type'].startswith('text/calendar')
        assert request.headers['Authorization'].startswith('Basic ')
    
    @responses.activate
    def test_put_without_credentials(self):
        """Test that no auth header is sent without a username."""
        responses.add(responses.PUT, CALDAV_URL, status=204)
        
        CalDAVClient(CALDAV_URL).put(ARTIFACT)
        
        assert 'Authorization' not in responses.calls[0].request.headers
    
    @responses.activate
    def test_put_http_error(self):
        """Test that a non-2xx response raises CalDAVError."""
        responses.add(responses.PUT, CALDAV_URL, status=403)
        
        with pytest.raises(CalDAVError):
            CalDAVClient(CALDAV_URL).put(ARTIFACT)
    
    @responses.activate
    def test_put_timeout(self):
        """Test that a timeout raises CalDAVError."""
        responses.add(
            responses.PUT,
            CALDAV_URL,
            body=requests.exceptions.Timeout('Request timed out')
        )
        
        with pytest.raises(CalDAVError):
            CalDAVClient(CALDAV_URL).put(ARTIFACT)
