"""The public query surface: IP address to location lookups."""

import asyncio
import logging
from typing import Optional

from .domain import LocationRecord, parse_address
from .service import RefreshCoordinator


class LookupService:
    """Answers lookups from whichever handle the coordinator serves."""

    def __init__(self, coordinator: RefreshCoordinator):
        self.logger = logging.getLogger(self.__class__.__name__)
        self.coordinator = coordinator

    async def get_location(self, ip: str) -> Optional[LocationRecord]:
        """
        Resolve an IP address to a location.

        The handle is read once, so a refresh completing mid-call does not
        affect this lookup. Lookups never wait for a refresh.

        Args:
            ip: A textual IPv4 or IPv6 address.

        Returns:
            The location record, or None if the database has no entry.

        Raises:
            InvalidAddressError: If `ip` is not a valid address.
            ServiceUnavailableError: If no database has been loaded yet.
        """

        address = str(parse_address(ip))
        handle = self.coordinator.current_handle
        record = await asyncio.to_thread(handle.query, address)
        if record is None:
            self.logger.debug(f"No location entry for {address}")
        return record
