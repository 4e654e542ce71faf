"""HTTP implementation of the Fetcher port."""

import asyncio
import contextlib
from pathlib import Path
from typing import Dict, Generator, AsyncGenerator, Optional

import httpx
from tqdm import tqdm

from ..application.domain import DownloadedArchive, Fetcher
from ..application.exceptions import FetchError

from .base_client import BaseClient
from .retrying import network_retrying

_CHECKSUM_SUFFIX = ".sha256"
_SHA256_HEX_LENGTH = 64


class HttpFetcher(BaseClient, Fetcher):
    """A fetcher that downloads database archives via HTTP atomically."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        account_id: str,
        license_key: str,
        base_url: str,
        edition_id: str,
        archive_suffix: str,
        timeout: int,
        chunk_size: int,
        retry_attempts: int = 1,
        verify_checksum: bool = False,
        show_progress: bool = False,
    ):
        """Initializes the fetcher adapter."""
        super().__init__(client, account_id, license_key)
        self.base_url = base_url
        self.edition_id = edition_id
        self.archive_suffix = archive_suffix
        self.timeout = timeout
        self.chunk_size = chunk_size
        self.retry_attempts = retry_attempts
        self.verify_checksum = verify_checksum
        self.show_progress = show_progress

    def _params(self, suffix: str) -> Dict[str, str]:
        return {
            "edition_id": self.edition_id,
            "license_key": self.license_key,
            "account_id": self.account_id,
            "suffix": suffix,
        }

    @contextlib.contextmanager
    def _atomic_target(self, destination: Path) -> Generator[Path, None, None]:
        """Provides a temporary '.part' path and ensures cleanup."""
        part_path = destination.with_suffix(destination.suffix + ".part")
        destination.parent.mkdir(parents=True, exist_ok=True)
        try:
            yield part_path
        finally:
            part_path.unlink(missing_ok=True)

    async def _stream_chunks(
        self, response: httpx.Response, target_file: Path,
    ):
        """Produce byte chunks from a response and write them to a file."""
        with open(target_file, "wb") as f:
            async for chunk in response.aiter_bytes(self.chunk_size):
                await asyncio.to_thread(f.write, chunk)
                yield len(chunk)

    async def _consume_stream_with_progress(
        self,
        stream: AsyncGenerator[int, None],
        total_size: int,
        desc: str,
    ):
        """Consume the byte stream to update a TQDM progress bar."""

        with tqdm(
            total=total_size or None,
            unit="B",
            unit_scale=True,
            desc=desc,
            disable=not self.show_progress,
        ) as progress_bar:
            received = 0
            async for progress in stream:
                received += progress
                progress_bar.update(progress)

        if total_size != 0 and received != total_size:
            raise FetchError(
                f"Partial download of {desc}: "
                f"received {received} of {total_size} bytes"
            )

    @staticmethod
    def _expected_size(response: httpx.Response) -> int:
        # Content-Length describes the encoded body; skip the check if decoded.
        if response.headers.get("Content-Encoding"):
            return 0
        return int(response.headers.get("Content-Length", 0))

    async def _stream_from_network(self, target_file: Path):
        """Manage the network request and the streaming process."""
        async with self.client.stream(
            "GET",
            self.base_url,
            params=self._params(self.archive_suffix),
            timeout=self.timeout,
        ) as response:
            response.raise_for_status()
            stream = self._stream_chunks(response, target_file)
            await self._consume_stream_with_progress(
                stream, self._expected_size(response), target_file.name
            )

    async def _execute_atomic_download(self, destination: Path):
        """Orchestrate the entire atomic download operation."""
        self.logger.info(f"Downloading {destination.name}...")
        async for attempt in network_retrying(self.retry_attempts):
            with attempt:
                with self._atomic_target(destination) as part_path:
                    await self._stream_from_network(part_path)
                    part_path.replace(destination)
        self.logger.info(f"Finished downloading {destination.name}")

    def _to_fetch_error(self, error: Exception) -> FetchError:
        """Translate a transport or filesystem failure into a FetchError."""
        if isinstance(error, httpx.HTTPStatusError):
            # The exception text embeds the request URL and thus the license key.
            status = error.response.status_code
            reason = error.response.reason_phrase
            return FetchError(
                f"Failed to download {self.edition_id}: {status} {reason}",
                status_code=status,
                reason=reason,
            )
        if isinstance(error, httpx.TimeoutException):
            return FetchError(
                f"Timed out downloading {self.edition_id} "
                f"after {self.timeout}s"
            )
        return FetchError(
            f"Download of {self.edition_id} interrupted: "
            f"{type(error).__name__}: {error}"
        )

    async def _fetch_checksum(self) -> str:
        """Fetch the SHA256 digest the provider publishes for the archive."""
        try:
            response = await self.client.get(
                self.base_url,
                params=self._params(self.archive_suffix + _CHECKSUM_SUFFIX),
                timeout=self.timeout,
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise self._to_fetch_error(e) from e

        # Format: "<hex digest>  <archive file name>"
        fields = response.text.split()
        checksum = fields[0].lower() if fields else ""
        if len(checksum) != _SHA256_HEX_LENGTH:
            raise FetchError(
                f"Malformed checksum response for {self.edition_id}: "
                f"{response.text[:100]!r}"
            )
        return checksum

    async def fetch(self, destination: Path) -> DownloadedArchive:
        """
        Download the current archive of the configured edition.

        This is the public method that fulfills the Fetcher port contract.
        The body is streamed to a '.part' file that is renamed to
        `destination` only once the transfer has completed, so a file at
        `destination` is always a complete download.

        Args:
            destination: The final desired path for the archive.

        Returns:
            A DownloadedArchive object representing the file on disk.

        Raises:
            FetchError: If the request fails, times out, returns a
                        non-success status or ends prematurely.
        """

        try:
            await self._execute_atomic_download(destination)
        except (httpx.HTTPError, OSError) as e:
            raise self._to_fetch_error(e) from e

        checksum: Optional[str] = None
        if self.verify_checksum:
            try:
                checksum = await self._fetch_checksum()
            except FetchError:
                destination.unlink(missing_ok=True)
                raise

        return DownloadedArchive(path=destination, checksum=checksum)
