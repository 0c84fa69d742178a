"""Lookup of valid municipality names from an external directory."""
import logging
import threading
from functools import lru_cache
from typing import List, Optional

import httpx

from bulkwaste.config import get_settings

logger = logging.getLogger(__name__)


class MunicipalityDirectory:
    """Single-slot cache in front of the municipality API.

    Only a non-empty list is ever cached. When the API is unreachable the
    caller gets an empty list, and ``is_valid`` then accepts any non-blank
    name so that bookings keep flowing while the directory is down.
    """

    def __init__(self, api_url: str, timeout: float = 5.0, client: Optional[httpx.Client] = None):
        self.api_url = api_url
        self.timeout = timeout
        self._client = client
        self._cached: Optional[List[str]] = None
        self._lock = threading.Lock()

    def _fetch(self) -> List[str]:
        logger.info("Fetching municipalities from external API")
        try:
            if self._client is not None:
                response = self._client.get(self.api_url, timeout=self.timeout)
            else:
                response = httpx.get(self.api_url, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Failed to fetch municipalities from external API: %s", e)
            return []

        if not isinstance(payload, list) or not payload:
            logger.warning("External API returned empty municipality list")
            return []

        names = [str(name) for name in payload if name]
        logger.info("Successfully fetched %d municipalities", len(names))
        return names

    def list_available(self) -> List[str]:
        cached = self._cached
        if cached:
            return list(cached)
        with self._lock:
            if not self._cached:
                names = self._fetch()
                if names:
                    self._cached = names
            return list(self._cached or [])

    def canonical_name(self, name: Optional[str]) -> Optional[str]:
        """Directory spelling of ``name``, or None when it is not a municipality.

        While the directory is unavailable the stripped input is returned as is.
        """
        if name is None or not name.strip():
            return None

        municipalities = self.list_available()
        if not municipalities:
            logger.warning("Cannot validate municipality - API unavailable, allowing booking")
            return name.strip()

        wanted = name.strip().casefold()
        for municipality in municipalities:
            if municipality.casefold() == wanted:
                return municipality
        logger.debug("Municipality validation failed")
        return None

    def is_valid(self, name: Optional[str]) -> bool:
        return self.canonical_name(name) is not None

    def refresh(self) -> List[str]:
        # a failed refresh keeps the previous good list
        with self._lock:
            names = self._fetch()
            if names:
                self._cached = names
            return list(self._cached or [])


@lru_cache
def get_municipality_directory() -> MunicipalityDirectory:
    settings = get_settings()
    return MunicipalityDirectory(settings.municipality_api_url, settings.municipality_api_timeout)
