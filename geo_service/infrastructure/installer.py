"""
Infrastructure adapter that promotes a downloaded archive's database file to
the active path.

The active file is never written in place: the database is staged next to it
and moved over it with a single os.replace, so readers and later opens only
ever see the previous file or the complete new one.
"""

import asyncio
import contextlib
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Generator

from ..application.domain import (
    DatabaseOpener,
    DownloadedArchive,
    Extractor,
    Hasher,
    InstalledDatabase,
    Installer,
)
from ..application.exceptions import (
    ArchiveContentNotFoundError,
    InstallError,
    OpenError,
)

_DATABASE_EXTENSION = ".mmdb"


class ArchiveInstaller(Installer):
    """An adapter that implements the Installer port for MaxMind archives."""

    def __init__(
        self,
        extractor: Extractor,
        hasher: Hasher,
        opener: DatabaseOpener,
        database_path: Path,
        edition_id: str,
        work_dir: Path,
    ):
        """Initializes the installer."""
        self.logger = logging.getLogger(self.__class__.__name__)
        self.extractor = extractor
        self.hasher = hasher
        self.opener = opener
        self.database_path = Path(database_path)
        self.edition_id = edition_id
        self.database_filename = edition_id + _DATABASE_EXTENSION
        self.work_dir = Path(work_dir)

    def _discard(self, path: Path):
        """Remove a temporary file or directory; failures are only logged."""
        try:
            if path.is_dir():
                shutil.rmtree(path)
            else:
                path.unlink(missing_ok=True)
        except OSError as e:
            self.logger.warning(f"Failed to clean up {path}: {e}")

    @contextlib.contextmanager
    def _scoped_archive(self, path: Path) -> Generator[Path, None, None]:
        """Ensures the downloaded archive is removed on every exit path."""
        try:
            yield path
        finally:
            self._discard(path)

    @contextlib.contextmanager
    def _scoped_extraction_dir(self) -> Generator[Path, None, None]:
        """Provides a fresh extraction directory and ensures its removal."""
        try:
            self.work_dir.mkdir(parents=True, exist_ok=True)
            path = Path(
                tempfile.mkdtemp(prefix=f"{self.edition_id}-", dir=self.work_dir)
            )
        except OSError as e:
            raise InstallError(f"Cannot create extraction directory: {e}") from e
        try:
            yield path
        finally:
            self._discard(path)

    def _locate_database(self, extract_dir: Path) -> Path:
        """
        Find the database file inside the extracted tree.

        The archive holds one top-level directory named after the edition and
        its release date, e.g. 'GeoLite2-City_20240102/GeoLite2-City.mmdb'.
        """

        folders = [
            entry
            for entry in sorted(extract_dir.iterdir())
            if entry.is_dir() and entry.name.startswith(self.edition_id)
        ]
        if not folders:
            raise ArchiveContentNotFoundError(
                f"No directory starting with '{self.edition_id}' in archive"
            )

        candidates = [
            folder / self.database_filename
            for folder in folders
            if (folder / self.database_filename).is_file()
        ]
        if not candidates:
            raise ArchiveContentNotFoundError(
                f"{self.database_filename} not found in "
                f"{', '.join(folder.name for folder in folders)}"
            )
        if len(candidates) > 1:
            raise InstallError(
                f"Archive contains {len(candidates)} copies of "
                f"{self.database_filename}; refusing to pick one"
            )

        return candidates[0]

    def _validate(self, staged: Path):
        """Proves the staged file parses before it replaces the active one."""
        try:
            self.opener.open(staged)
        except OpenError as e:
            raise InstallError(
                f"{self.database_filename} from archive is not a valid "
                f"database: {e}"
            ) from e

    def _blocking_promote(self, candidate: Path) -> InstalledDatabase:
        """Stage, validate and atomically replace the active database file."""
        staged = self.database_path.with_name(self.database_path.name + ".part")
        try:
            self.database_path.parent.mkdir(parents=True, exist_ok=True)
            with open(candidate, "rb") as src, open(staged, "wb") as dst:
                shutil.copyfileobj(src, dst)
                dst.flush()
                os.fsync(dst.fileno())

            self._validate(staged)

            os.replace(staged, self.database_path)
            return InstalledDatabase(
                path=self.database_path,
                size_bytes=self.database_path.stat().st_size,
            )
        except OSError as e:
            raise InstallError(
                f"Failed to install {self.database_filename} at "
                f"{self.database_path}: {e}"
            ) from e
        finally:
            self._discard(staged)

    async def install(self, archive: DownloadedArchive) -> InstalledDatabase:
        """
        Install the database contained in a downloaded archive.

        This public method fulfills the Installer port contract. The archive
        and the extraction directory are removed whether or not the install
        succeeds; on failure the active database file is left untouched.

        Args:
            archive: The completely downloaded archive.

        Returns:
            An InstalledDatabase describing the new active file.

        Raises:
            InstallError: If verification, extraction, lookup of the database
                          file, validation or the final replace fails.
        """

        with self._scoped_archive(archive.path):
            await self.hasher.verify(archive)

            with self._scoped_extraction_dir() as extract_dir:
                await self.extractor.extract(archive.path, extract_dir)
                candidate = self._locate_database(extract_dir)
                installed = await asyncio.to_thread(
                    self._blocking_promote, candidate
                )

        self.logger.info(
            f"{self.database_filename} installed at {installed.path}"
        )
        return installed
