"""maxminddb implementation of the DatabaseOpener and DatabaseHandle ports."""

import logging
from pathlib import Path
from typing import Optional

import maxminddb
from pydantic import ValidationError

from ..application.domain import (
    DatabaseHandle,
    DatabaseOpener,
    LocationRecord,
    parse_address,
)
from ..application.exceptions import DatabaseCorruptError, DatabaseNotFoundError

from .record_models import GeoRecord


class MaxMindDatabase(DatabaseHandle):
    """
    A read-only handle on one opened .mmdb snapshot.

    The underlying reader is safe for concurrent lookups from several
    threads. The handle is never closed explicitly: it is released when the
    last reference to it goes away.
    """

    def __init__(self, reader, path: Path):
        self.logger = logging.getLogger(self.__class__.__name__)
        self._reader = reader
        self.path = path
        metadata = reader.metadata()
        self.database_type: str = metadata.database_type
        self.build_epoch: int = metadata.build_epoch

    def _map_to_domain(self, ip: str, dto: GeoRecord) -> LocationRecord:
        """Maps a validated raw record to a domain model."""
        country = dto.country
        region = dto.subdivisions[0] if dto.subdivisions else None
        location = dto.location
        return LocationRecord(
            ip=ip,
            country=country.names.en if country else None,
            country_code=country.iso_code if country else None,
            region=region.names.en if region else None,
            city=dto.city.names.en if dto.city else None,
            latitude=location.latitude if location else None,
            longitude=location.longitude if location else None,
            timezone=location.time_zone if location else None,
        )

    def query(self, ip: str) -> Optional[LocationRecord]:
        address = parse_address(ip)

        try:
            raw = self._reader.get(str(address))
        except ValueError:
            # IPv6 address against an IPv4-only database: no entry.
            return None
        except maxminddb.InvalidDatabaseError as e:
            raise DatabaseCorruptError(
                f"Corrupt data in {self.path.name} for {address}: {e}"
            ) from e

        if raw is None:
            return None

        try:
            dto = GeoRecord.model_validate(raw)
        except ValidationError as e:
            raise DatabaseCorruptError(
                f"Unexpected record layout in {self.path.name} for {address}"
            ) from e

        return self._map_to_domain(str(address), dto)


class MaxMindOpener(DatabaseOpener):
    """Opens .mmdb files with maxminddb."""

    def __init__(self, mode: int = maxminddb.MODE_AUTO):
        self.logger = logging.getLogger(self.__class__.__name__)
        self.mode = mode

    def open(self, path: Path) -> MaxMindDatabase:
        """
        Open a database file as a handle.

        Raises:
            DatabaseNotFoundError: If `path` does not exist.
            DatabaseCorruptError: If the file is not a valid MaxMind database.
        """

        path = Path(path)
        if not path.is_file():
            raise DatabaseNotFoundError(f"Database file {path} does not exist")

        try:
            reader = maxminddb.open_database(str(path), self.mode)
        except FileNotFoundError as e:
            raise DatabaseNotFoundError(
                f"Database file {path} does not exist"
            ) from e
        except (maxminddb.InvalidDatabaseError, ValueError, OSError) as e:
            raise DatabaseCorruptError(
                f"{path.name} is not a valid MaxMind database: {e}"
            ) from e

        handle = MaxMindDatabase(reader, path)
        self.logger.info(
            f"Opened {path.name} ({handle.database_type}, "
            f"built at epoch {handle.build_epoch})"
        )
        return handle
