"""
HTTP client for the barbershop site's booking API.
"""

import logging
from contextlib import contextmanager
from datetime import date
from typing import Any, Iterator, List, Optional

import requests

from ..domain.exceptions import BookingDataError, DataSourceError
from ..domain.models import Booking, BusinessHours, as_date

logger = logging.getLogger(__name__)


class BarbershopApiClient:
    """
    Reads bookings and business hours from the deployed site.

    Endpoints:
    - ``GET /api/bookings`` (admin session required)
    - ``GET /api/availability`` (public, only date/time/duration/status)
    - ``GET /api/business-hours``
    """

    def __init__(
        self,
        base_url: str,
        admin_token: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: int = 30,
    ):
        """
        Initialize the API client.

        Args:
            base_url: Site root, e.g. ``https://shop.example.com``
            admin_token: Session token for admin-only endpoints
            session: Optional pre-configured requests session
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.headers = {"Accept": "application/json"}

        if admin_token:
            # The site accepts the token as cookie or bearer header
            self.headers["Authorization"] = f"Bearer {admin_token}"
            self.session.cookies.set("admin_token", admin_token)

    def _get_json(self, path: str) -> Any:
        url = f"{self.base_url}{path}"

        try:
            response = self.session.get(url, headers=self.headers, timeout=self.timeout)
            response.raise_for_status()
            return response.json()

        except requests.exceptions.RequestException as e:
            logger.warning("Request to %s failed: %s", url, e)
            raise DataSourceError(f"Failed to fetch {url}: {e}") from e

        except ValueError as e:
            raise DataSourceError(f"Invalid JSON returned by {url}: {e}") from e

    def _parse_bookings(self, rows: Any, source: str) -> List[Booking]:
        if not isinstance(rows, list):
            raise BookingDataError(f"Expected a list of bookings from {source}")

        bookings: List[Booking] = []
        for row in rows:
            try:
                bookings.append(Booking.from_record(row))
            except BookingDataError as e:
                # A malformed row must not hide the rest of the calendar
                logger.warning("Skipping booking row from %s: %s", source, e)
        return bookings

    def fetch_bookings(self) -> List[Booking]:
        """Fetch all bookings (admin endpoint)."""
        return self._parse_bookings(self._get_json("/api/bookings"), "/api/bookings")

    def fetch_public_availability(self) -> List[Booking]:
        """Fetch the public, non-sensitive view of booked slots."""
        return self._parse_bookings(self._get_json("/api/availability"), "/api/availability")

    def fetch_business_hours(self) -> BusinessHours:
        """
        Fetch the weekly schedule.

        Response format:
        [
            {"day_name": "monday", "enabled": true, "open_time": "09:00:00",
             "close_time": "18:00:00", "overtime_buffer_minutes": 0},
            ...
        ]
        """
        rows = self._get_json("/api/business-hours")
        if not isinstance(rows, list):
            raise BookingDataError("Expected a list of business hours rows")

        try:
            return BusinessHours.from_rows(rows)
        except (KeyError, ValueError) as e:
            raise BookingDataError(f"Invalid business hours data: {e}") from e


class ApiBookingSource:
    """
    Read-only booking store over the site API.

    Bookings are fetched fresh on every call. Writes are not supported; the
    site's own booking endpoint performs the insert.
    """

    def __init__(self, client: BarbershopApiClient, public: bool = False):
        self.client = client
        self.public = public

    def _fetch(self) -> List[Booking]:
        if self.public:
            return self.client.fetch_public_availability()
        return self.client.fetch_bookings()

    def list_bookings(self, day: Optional[date] = None) -> List[Booking]:
        bookings = self._fetch()
        if day is None:
            return bookings
        day = as_date(day)
        return [b for b in bookings if b.date == day]

    def get_booking(self, booking_id: int) -> Optional[Booking]:
        for booking in self._fetch():
            if booking.id == booking_id:
                return booking
        return None

    def add_booking(self, booking: Booking) -> Booking:
        raise DataSourceError("The site API source is read-only")

    def update_booking(self, booking: Booking) -> Booking:
        raise DataSourceError("The site API source is read-only")

    @contextmanager
    def transaction(self) -> Iterator[None]:
        yield
