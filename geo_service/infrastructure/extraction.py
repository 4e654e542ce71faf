"""Infrastructure adapter that unpacks tar and zip archives."""

import asyncio
import logging
import tarfile
import zipfile
import zlib
from pathlib import Path

from ..application.domain import Extractor
from ..application.exceptions import InstallError


class ArchiveExtractor(Extractor):
    """An adapter that implements the Extractor port with tarfile/zipfile."""

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    def _blocking_extract(self, archive: Path, destination: Path):
        if tarfile.is_tarfile(archive):
            # "r:*" handles gzip, bzip2 and xz transparently.
            with tarfile.open(archive, "r:*") as tar:
                tar.extractall(destination, filter="data")
        elif zipfile.is_zipfile(archive):
            with zipfile.ZipFile(archive) as zf:
                zf.extractall(destination)
        else:
            raise InstallError(
                f"{archive.name} is neither a tar nor a zip archive"
            )

    async def extract(self, archive: Path, destination: Path):
        """
        Unpack an archive into a directory.

        Raises:
            InstallError: If the archive is malformed or cannot be written out.
        """

        self.logger.info(f"Extracting {archive.name} into {destination}...")
        try:
            await asyncio.to_thread(self._blocking_extract, archive, destination)
        # Truncated or corrupt compressed streams surface as EOFError or zlib.error.
        except (
            tarfile.TarError, zipfile.BadZipFile, EOFError, zlib.error, OSError
        ) as e:
            raise InstallError(f"Failed to extract {archive.name}: {e}") from e
        self.logger.info(f"Extraction of {archive.name} complete.")
