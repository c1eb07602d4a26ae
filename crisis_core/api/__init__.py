"""
Hazard Data and Location Module
Provides connectors for fetching crisis events and the device location
"""

from .base_connector import BaseAPIConnector, APIConfig, HazardSource
from .usgs_connector import USGSEarthquakeConnector, severity_from_magnitude, aftershock_risk
from .weather_connector import MockWeatherAlertConnector, NWSWeatherAlertConnector
from .geolocation import (
    DEFAULT_LOCATION,
    LocationOptions,
    LocationResult,
    LocationProvider,
    LocationUnavailable,
    StaticLocationProvider,
    IPGeolocationProvider,
    LocationResolver,
)

__all__ = [
    # Base classes
    "BaseAPIConnector",
    "APIConfig",
    "HazardSource",

    # Hazard connectors
    "USGSEarthquakeConnector",
    "severity_from_magnitude",
    "aftershock_risk",
    "MockWeatherAlertConnector",
    "NWSWeatherAlertConnector",

    # Location
    "DEFAULT_LOCATION",
    "LocationOptions",
    "LocationResult",
    "LocationProvider",
    "LocationUnavailable",
    "StaticLocationProvider",
    "IPGeolocationProvider",
    "LocationResolver",
]
