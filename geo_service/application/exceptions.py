"""
Core business exceptions for the geolocation service.

This module defines a hierarchy of custom exceptions to allow for granular
error handling and clear separation of failure domains: refresh-cycle
failures are contained by the coordinator, while query-time failures reach
lookup callers.
"""

from typing import Optional


class GeoServiceError(Exception):
    """Base exception for all component-specific errors."""
    pass


# --- Configuration Errors ---

class ConfigurationError(GeoServiceError):
    """Raised for errors related to application configuration."""
    pass


# --- Refresh Errors ---

class RefreshError(GeoServiceError):
    """Base class for failures inside a fetch/install cycle."""
    pass


class FetchError(RefreshError):
    """Raised when the database archive cannot be downloaded."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        reason: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.reason = reason


class InstallError(RefreshError):
    """Raised when a downloaded archive cannot be promoted to the active file."""
    pass


class ArchiveContentNotFoundError(InstallError):
    """Raised when the archive lacks the expected database directory or file."""
    pass


class ChecksumMismatchError(InstallError):
    """Raised when the archive does not match its published checksum."""
    pass


# --- Database Errors ---

class OpenError(GeoServiceError):
    """Base class for errors opening or reading a database file."""
    pass


class DatabaseNotFoundError(OpenError):
    """Raised when the database file does not exist."""
    pass


class DatabaseCorruptError(OpenError):
    """Raised when the database file cannot be parsed."""
    pass


# --- Query Errors ---

class QueryError(GeoServiceError):
    """Base class for errors caused by lookup input."""
    pass


class InvalidAddressError(QueryError):
    """Raised when a lookup receives a string that is not an IP address."""
    pass


class ServiceUnavailableError(GeoServiceError):
    """Raised for lookups made before any database was loaded."""
    pass
