"""Checks a downloaded archive against the SHA-256 digest MaxMind publishes."""

import asyncio
import hashlib
import logging
from pathlib import Path

from ..application.domain import DownloadedArchive, Hasher
from ..application.exceptions import ChecksumMismatchError, InstallError


class Sha256Hasher(Hasher):
    """Hasher port backed by hashlib; digests are read in fixed-size chunks."""

    def __init__(self, chunk_size: int = 65536):
        self.logger = logging.getLogger(self.__class__.__name__)
        self.chunk_size = chunk_size

    def _digest(self, path: Path) -> str:
        digest = hashlib.sha256()
        with open(path, "rb") as archive_file:
            for block in iter(lambda: archive_file.read(self.chunk_size), b""):
                digest.update(block)
        return digest.hexdigest()

    async def verify(self, archive: DownloadedArchive):
        """
        Compare the archive's digest with the one fetched next to it.

        A missing digest (verification disabled, or none published) is not an
        error. The installer still opens the candidate before promoting it.

        Raises:
            ChecksumMismatchError: If the digests differ.
            InstallError: If the archive cannot be read.
        """

        expected = archive.checksum
        if expected is None:
            self.logger.debug(f"{archive.path.name} has no published digest")
            return

        try:
            actual = await asyncio.to_thread(self._digest, archive.path)
        except OSError as e:
            raise InstallError(f"Cannot read {archive.path.name}: {e}") from e

        if actual != expected.strip().lower():
            raise ChecksumMismatchError(
                f"{archive.path.name} has SHA-256 {actual}, "
                f"but {expected} was published"
            )
        self.logger.info(f"SHA-256 of {archive.path.name} matches")
