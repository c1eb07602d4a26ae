"""
Base API Connector Class for Hazard Data
Provides abstract interface for fetching crisis events from external feeds
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import pandas as pd
import requests

from crisis_core.errors import HazardFetchError
from crisis_core.logging import get_logger
from crisis_core.models import Coordinates, CrisisEvent

logger = get_logger(__name__)


@dataclass
class APIConfig:
    """Configuration for API connection"""
    api_name: str
    base_url: str
    api_key: Optional[str] = None
    headers: Optional[Dict[str, str]] = None
    timeout: int = 15
    additional_params: Optional[Dict[str, Any]] = None


class HazardSource(ABC):
    """Anything that can produce crisis events for a location."""

    name: str = "hazard"

    @abstractmethod
    def fetch_events(self, location: Coordinates, **kwargs) -> List[CrisisEvent]:
        """Fetch current events around ``location``; raises HazardFetchError."""

    def fetch(self, location: Coordinates, **kwargs) -> List[CrisisEvent]:
        """
        Fetch current events around ``location``.

        Never raises: any failure yields an empty list, which means "no data
        available", not "no hazards".
        """
        try:
            events = self.fetch_events(location, **kwargs)
        except Exception as e:
            logger.error(f"Failed to fetch {self.name} data: {e}")
            return []
        logger.info(f"Fetched {len(events)} new events from {self.name}.")
        return events


class BaseAPIConnector(HazardSource):
    """Abstract base class for HTTP hazard connectors"""

    def __init__(self, config: APIConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.name = config.api_name
        self.session = session or requests.Session()

        # Set default headers
        if config.headers:
            self.session.headers.update(config.headers)

    def fetch_events(self, location: Coordinates, **kwargs) -> List[CrisisEvent]:
        raw = self.fetch_data(location, **kwargs)
        try:
            return self.map_to_events(raw)
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise HazardFetchError(
                f"Unexpected {self.config.api_name} payload: {e}",
                source=self.config.api_name,
            )

    @abstractmethod
    def fetch_data(self, location: Coordinates, **kwargs) -> pd.DataFrame:
        """
        Fetch raw records around ``location``

        Returns:
            DataFrame with one row per API record, API-specific columns
        """

    @abstractmethod
    def map_to_events(self, raw_data: pd.DataFrame) -> List[CrisisEvent]:
        """Map API records to the application's CrisisEvent schema"""

    def validate_response(self, response: requests.Response) -> bool:
        """Validate API response"""
        try:
            data = response.json()
        except ValueError:
            return False
        return isinstance(data, dict) and isinstance(data.get("features"), list)

    def _make_request(
        self,
        endpoint: str = "",
        params: Optional[Dict] = None,
    ) -> requests.Response:
        """
        Make HTTP GET request with error handling

        Args:
            endpoint: API endpoint (appended to base_url)
            params: Query parameters

        Returns:
            Response object
        """
        url = f"{self.config.base_url}/{endpoint}" if endpoint else self.config.base_url

        try:
            response = self.session.get(url, params=params, timeout=self.config.timeout)
        except requests.exceptions.ConnectionError as e:
            raise HazardFetchError(
                f"{self.config.api_name} is unreachable: {str(e)}",
                source=self.config.api_name,
                unreachable=True,
            )
        except requests.exceptions.RequestException as e:
            raise HazardFetchError(
                f"API request failed for {self.config.api_name}: {str(e)}",
                source=self.config.api_name,
            )

        if response.status_code != 200:
            raise HazardFetchError(
                f"{self.config.api_name} responded with status: {response.status_code}",
                source=self.config.api_name,
                status_code=response.status_code,
            )
        return response
