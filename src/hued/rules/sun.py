"""
Sunrise/sunset data for the dark_at condition.

SunDataCache keeps one entry, valid for a single calendar day (and
location). SunriseSunsetClient fetches the data from the sunrise-sunset.org
JSON API.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, Tuple

import httpx

from hued.exceptions import SunDataError

logger = logging.getLogger(__name__)

SUNRISE_SUNSET_URL = "https://api.sunrise-sunset.org/json"


@dataclass(frozen=True)
class SunTimes:
    """Sunrise and sunset for one day at one location."""

    day: date
    sunrise: datetime
    sunset: datetime
    latitude: float = 0.0
    longitude: float = 0.0


class SunDataSource(ABC):
    """Provides sunrise/sunset timestamps for a location and date."""

    @abstractmethod
    def fetch(self, latitude: float, longitude: float, day: date) -> Tuple[datetime, datetime]:
        """
        Get sunrise and sunset.

        Returns:
            (sunrise, sunset) as timezone-aware datetimes

        Raises:
            SunDataError: if the data could not be retrieved
        """
        pass


class SunriseSunsetClient(SunDataSource):
    """SunDataSource backed by api.sunrise-sunset.org."""

    def __init__(
        self,
        timeout: float = 10.0,
        url: str = SUNRISE_SUNSET_URL,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._timeout = timeout
        self._url = url
        self._transport = transport

    def fetch(self, latitude: float, longitude: float, day: date) -> Tuple[datetime, datetime]:
        params = {
            "lat": latitude,
            "lng": longitude,
            "date": day.isoformat(),
            "formatted": 0,
        }
        logger.debug(f"Retrieving sunrise/sunset data from {self._url} {params}...")
        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                response = client.get(self._url, params=params)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            raise SunDataError(f"Request failed: {e}") from e
        except ValueError as e:
            raise SunDataError(f"Invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise SunDataError(f"Unexpected response: {data!r}")
        if data.get("status") != "OK":
            raise SunDataError(f"API returned status {data.get('status')!r}")

        try:
            results = data["results"]
            sunrise = datetime.fromisoformat(results["sunrise"])
            sunset = datetime.fromisoformat(results["sunset"])
        except (KeyError, TypeError, ValueError) as e:
            raise SunDataError(f"Malformed sun data: {e}") from e

        return sunrise, sunset


class SunDataCache:
    """
    Single-entry cache of sunrise/sunset data.

    An entry is only reused on the day (and at the location) it was fetched
    for. A failed refresh leaves the cache empty, never stale.
    """

    def __init__(self, source: SunDataSource) -> None:
        self._source = source
        self._entry: Optional[SunTimes] = None

    @property
    def entry(self) -> Optional[SunTimes]:
        return self._entry

    def get(self, latitude: float, longitude: float, today: date) -> Optional[SunTimes]:
        """
        Get sun times for today, fetching them if the cache does not hold them.

        Returns:
            SunTimes, or None if the data source failed
        """
        entry = self._entry
        if (
            entry is not None
            and entry.day == today
            and entry.latitude == latitude
            and entry.longitude == longitude
        ):
            return entry

        try:
            sunrise, sunset = self._source.fetch(latitude, longitude, today)
        except SunDataError as e:
            logger.warning(f"Could not retrieve sunset data: {e}, will retry")
            self._entry = None
            return None

        self._entry = SunTimes(
            day=today,
            sunrise=sunrise,
            sunset=sunset,
            latitude=latitude,
            longitude=longitude,
        )
        logger.debug(f"Sun data for {today}: sunrise {sunrise}, sunset {sunset}")
        return self._entry

    def invalidate(self) -> None:
        """Drop the cached entry."""
        self._entry = None
