"""
This module defines the core domain models for the application.

These classes represent the pure, technology-agnostic entities and data
structures that the application's business logic operates on, together with
the ports (interfaces) the infrastructure layer implements.
"""

import dataclasses
import enum
import ipaddress
from pathlib import Path

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Union

from .exceptions import InvalidAddressError

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


# --- Domain Models ---

@dataclasses.dataclass(frozen=True)
class LocationRecord:
    """
    The result of a successful lookup.

    Every field except the queried address is optional; a field the
    database has no data for is None ("unknown"), never an error.
    """

    ip: str
    country: Optional[str] = None
    country_code: Optional[str] = None
    region: Optional[str] = None
    city: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    timezone: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)


@dataclasses.dataclass(frozen=True)
class DownloadedArchive:
    """
    A domain model representing a completely downloaded archive on disk,
    with the checksum published for it when one was requested.
    """

    path: Path
    checksum: Optional[str] = None


@dataclasses.dataclass(frozen=True)
class InstalledDatabase:
    """Domain model for a database file promoted to the active path."""

    path: Path
    size_bytes: int


class CoordinatorState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    EMPTY = "empty"
    READY = "ready"
    REFRESHING = "refreshing"


class RefreshOutcome(enum.Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


def parse_address(ip: str) -> IPAddress:
    """
    Parse a textual IPv4 or IPv6 address.

    Raises:
        InvalidAddressError: If the string is not a valid address.
    """
    try:
        return ipaddress.ip_address(ip.strip())
    except (AttributeError, ValueError) as e:
        raise InvalidAddressError(
            f"{ip!r} is not a valid IPv4 or IPv6 address"
        ) from e


# --- Ports (Interfaces) ---

class Fetcher(ABC):
    """A port for any source of database archives."""

    @abstractmethod
    async def fetch(self, destination: Path) -> DownloadedArchive:
        """Downloads the current archive to a destination path."""
        pass


class Hasher(ABC):
    """A port for verifying archive contents."""

    @abstractmethod
    async def verify(self, archive: DownloadedArchive):
        """
        Verifies the integrity of an archive.
        Raises ChecksumMismatchError on mismatch.
        """
        pass


class Extractor(ABC):
    """A port for unpacking a downloaded archive."""

    @abstractmethod
    async def extract(self, archive: Path, destination: Path):
        """Unpacks an archive into an existing, empty directory."""
        pass


class Installer(ABC):
    """A port for promoting an archive's database to the active path."""

    @abstractmethod
    async def install(self, archive: DownloadedArchive) -> InstalledDatabase:
        """Installs the database contained in an archive."""
        pass


class DatabaseHandle(ABC):
    """An opened, read-only snapshot of a geolocation database."""

    @abstractmethod
    def query(self, ip: str) -> Optional[LocationRecord]:
        """
        Looks up an address. Returns None if the snapshot has no entry.
        Raises InvalidAddressError for malformed input.
        """
        pass


class DatabaseOpener(ABC):
    """A port for opening database files as handles."""

    @abstractmethod
    def open(self, path: Path) -> DatabaseHandle:
        """
        Opens a database file.
        Raises DatabaseNotFoundError or DatabaseCorruptError.
        """
        pass
