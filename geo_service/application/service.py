"""
The core application service and pipeline, containing pure business logic.

This module defines the refresh pipeline (RefreshPipeline) that downloads and
installs one database snapshot, and the orchestrator (RefreshCoordinator) that
owns the currently active database handle and swaps it when a new snapshot
has been installed.
"""

import asyncio
import datetime
import logging
from pathlib import Path
from typing import Optional

from .domain import *
from .exceptions import GeoServiceError, ServiceUnavailableError

logger = logging.getLogger(__name__)


class RefreshPipeline:
    """Encapsulates the fetch and install steps for a single snapshot."""

    def __init__(
        self,
        fetcher: Fetcher,
        installer: Installer,
        download_dir: Path,
        edition_id: str,
        archive_suffix: str,
    ):
        """Initializes the pipeline with necessary dependencies (ports)."""
        self.logger = logging.getLogger(self.__class__.__name__)
        self.fetcher = fetcher
        self.installer = installer
        self.archive_path = Path(download_dir) / f"{edition_id}.{archive_suffix}"

    async def run(self) -> InstalledDatabase:
        """Executes the sequential steps for refreshing the database file.

        Returns:
            The database now present at the active path.

        Raises:
            FetchError: If the archive cannot be downloaded.
            InstallError: If the archive cannot be installed.
        """

        self.logger.info(f"Starting refresh into {self.archive_path.name}...")

        # Step 1: Download (-> DownloadedArchive)
        archive = await self.fetcher.fetch(self.archive_path)

        # Step 2: Verify, extract and promote (DownloadedArchive -> InstalledDatabase)
        installed = await self.installer.install(archive)

        self.logger.info(
            f"Installed {installed.path.name} ({installed.size_bytes} bytes)"
        )
        return installed


class RefreshCoordinator:
    """
    Owns the active database handle and the refresh cycle that replaces it.

    Only one refresh runs at a time; a trigger arriving while one is in
    flight returns immediately instead of queueing. Readers take the handle
    through `current_handle` and keep using the reference they got, so a swap
    never changes a lookup already in progress.

    Without a pipeline the coordinator only serves the database already on
    disk, and every trigger is skipped.
    """

    def __init__(
        self,
        pipeline: Optional[RefreshPipeline],
        opener: DatabaseOpener,
        database_path: Path,
    ):
        """Initializes the coordinator in the UNINITIALIZED state."""
        self.logger = logging.getLogger(self.__class__.__name__)
        self.pipeline = pipeline
        self.opener = opener
        self.database_path = Path(database_path)
        self._handle: Optional[DatabaseHandle] = None
        self._initialized = False
        self._refresh_lock = asyncio.Lock()
        self.last_refreshed_at: Optional[datetime.datetime] = None
        self.last_error: Optional[Exception] = None

    @property
    def state(self) -> CoordinatorState:
        if self._refresh_lock.locked():
            return CoordinatorState.REFRESHING
        if self._handle is not None:
            return CoordinatorState.READY
        if not self._initialized:
            return CoordinatorState.UNINITIALIZED
        return CoordinatorState.EMPTY

    @property
    def current_handle(self) -> DatabaseHandle:
        """
        The handle serving lookups at the time of the call.

        Raises:
            ServiceUnavailableError: If no database has been loaded.
        """
        handle = self._handle
        if handle is None:
            raise ServiceUnavailableError(
                f"No geolocation database loaded from {self.database_path}"
            )
        return handle

    def _swap(self, handle: DatabaseHandle):
        # Single reference assignment; readers holding the old handle keep it.
        self._handle = handle

    async def initialize(self) -> CoordinatorState:
        """
        Loads the database already present at the active path, if any.

        A missing or unreadable file is not fatal: the coordinator enters
        the EMPTY state and lookups fail until the first successful refresh.
        """

        try:
            handle = await asyncio.to_thread(self.opener.open, self.database_path)
        except GeoServiceError as e:
            self.logger.warning(
                f"No usable database at {self.database_path}: {e}"
            )
        else:
            self._swap(handle)
            self.logger.info(f"Loaded database from {self.database_path}")
        finally:
            self._initialized = True

        return self.state

    async def trigger_refresh(self) -> RefreshOutcome:
        """
        Runs one fetch/install/reopen/swap cycle unless one is in flight.

        Failures at any step are logged and contained; the previously active
        handle stays in place and the next trigger tries again.

        Returns:
            COMPLETED if a new handle was swapped in, FAILED if the cycle
            failed, SKIPPED if another cycle was already running or there is
            no pipeline to run.
        """

        if self.pipeline is None:
            self.logger.warning("No refresh pipeline configured. Skipping trigger.")
            return RefreshOutcome.SKIPPED

        if self._refresh_lock.locked():
            self.logger.info("Refresh already in progress. Skipping trigger.")
            return RefreshOutcome.SKIPPED

        async with self._refresh_lock:
            try:
                installed = await self.pipeline.run()
                handle = await asyncio.to_thread(self.opener.open, installed.path)
            except GeoServiceError as e:
                self.last_error = e
                self.logger.error(
                    f"Database refresh failed with {type(e).__name__}: {e}. "
                    f"Keeping the current database."
                )
                return RefreshOutcome.FAILED
            except Exception as e:
                self.last_error = e
                self.logger.exception(
                    f"Unexpected error during database refresh: {e}. "
                    f"Keeping the current database."
                )
                return RefreshOutcome.FAILED

            self._swap(handle)
            self._initialized = True
            self.last_error = None
            self.last_refreshed_at = datetime.datetime.now(datetime.timezone.utc)

        self.logger.info("Database refresh completed; new snapshot is active.")
        return RefreshOutcome.COMPLETED
