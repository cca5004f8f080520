"""
Google Calendar Service
Read-only mirror of the user's primary Google Calendar
"""

import logging
from datetime import datetime, timedelta, timezone

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from .models import CalendarEvent

logger = logging.getLogger(__name__)

# Google Calendar API scopes
SCOPES = ['https://www.googleapis.com/auth/calendar.readonly']


class CalendarAuthError(Exception):
    """The access token was rejected; the user has to authenticate again"""


class CalendarSyncError(Exception):
    """Any other failure reported by the Calendar API"""

    def __init__(self, message, status=None):
        super().__init__(message)
        self.status = status


def _rfc3339(dt):
    return dt.astimezone(timezone.utc).isoformat().replace('+00:00', 'Z')


class GoogleCalendarService:
    """Service for reading events with a bearer access token"""

    def __init__(self, access_token, calendar_id='primary'):
        self.credentials = Credentials(token=access_token, scopes=SCOPES)
        self.calendar_id = calendar_id
        self.service = build('calendar', 'v3', credentials=self.credentials,
                             cache_discovery=False)

    def get_events(self, time_min=None, time_max=None, max_results=50):
        """
        Retrieve events from Google Calendar

        Args:
            time_min: Lower bound (exclusive) for an event's end time, RFC 3339
            time_max: Upper bound (exclusive) for an event's start time, RFC 3339
            max_results: Maximum number of events to retrieve

        Returns:
            List of raw calendar event resources

        Raises:
            CalendarAuthError: token expired or revoked (HTTP 401)
            CalendarSyncError: any other API error
        """
        try:
            events_result = self.service.events().list(
                calendarId=self.calendar_id,
                maxResults=max_results,
                timeMin=time_min,
                timeMax=time_max,
                singleEvents=True,
                orderBy='startTime'
            ).execute()
        except HttpError as error:
            status = getattr(error.resp, 'status', None)
            if status is not None and int(status) == 401:
                logger.warning("Calendar token rejected")
                raise CalendarAuthError('Calendar access token expired') from error
            logger.error("Calendar API error: %s", error)
            raise CalendarSyncError(str(error), status=status) from error

        return events_result.get('items', [])

    def fetch_upcoming(self, days=30, max_results=50, now=None):
        """
        Events from now until ``days`` ahead, converted to CalendarEvent

        Returns:
            List of CalendarEvent ordered by start time
        """
        now = now or datetime.now(timezone.utc)
        events = self.get_events(
            time_min=_rfc3339(now),
            time_max=_rfc3339(now + timedelta(days=days)),
            max_results=max_results
        )
        return [CalendarEvent.from_google(event) for event in events]
