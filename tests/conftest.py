import asyncio
import io
import json
import tarfile
import zipfile
from pathlib import Path
from typing import Dict, Optional

import pytest
from dynaconf import Dynaconf

from geo_service.application.domain import (
    DatabaseHandle,
    DatabaseOpener,
    DownloadedArchive,
    Fetcher,
    LocationRecord,
    parse_address,
)
from geo_service.application.exceptions import (
    DatabaseCorruptError,
    DatabaseNotFoundError,
)
from geo_service.application.service import RefreshCoordinator, RefreshPipeline
from geo_service.infrastructure.extraction import ArchiveExtractor
from geo_service.infrastructure.installer import ArchiveInstaller
from geo_service.infrastructure.verification import Sha256Hasher
from geo_service.settings import PROJECT_ROOT

EDITION = "GeoLite2-City"

GOOGLE_DNS = {
    "country": "United States",
    "country_code": "US",
    "latitude": 37.751,
    "longitude": -97.822,
    "timezone": "America/Chicago",
}

DHAKA_HOST = {
    "country": "Bangladesh",
    "country_code": "BD",
    "region": "Dhaka Division",
    "city": "Dhaka",
    "latitude": 23.7018,
    "longitude": 90.3742,
    "timezone": "Asia/Dhaka",
}


# --- Fake database format: a JSON object mapping addresses to fields ---

class FakeHandle(DatabaseHandle):
    def __init__(self, records: Dict[str, dict], label: str = ""):
        self.records = records
        self.label = label

    def query(self, ip: str) -> Optional[LocationRecord]:
        address = str(parse_address(ip))
        fields = self.records.get(address)
        if fields is None:
            return None
        return LocationRecord(ip=address, **fields)


class FakeOpener(DatabaseOpener):
    def __init__(self):
        self.opened = []

    def open(self, path: Path) -> FakeHandle:
        path = Path(path)
        if not path.is_file():
            raise DatabaseNotFoundError(f"{path} does not exist")
        try:
            payload = json.loads(path.read_text())
        except (ValueError, UnicodeDecodeError) as e:
            raise DatabaseCorruptError(f"{path.name} is corrupt") from e
        self.opened.append(path)
        return FakeHandle(payload["records"], payload.get("label", ""))


def database_bytes(records: Dict[str, dict], label: str = "") -> bytes:
    return json.dumps({"label": label, "records": records}).encode()


def write_database(path: Path, records: Dict[str, dict], label: str = ""):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(database_bytes(records, label))


def build_tar_archive(files: Dict[str, bytes]) -> bytes:
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        for name, content in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(content)
            tar.addfile(info, io.BytesIO(content))
    return buffer.getvalue()


def build_zip_archive(files: Dict[str, bytes]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, content in files.items():
            zf.writestr(name, content)
    return buffer.getvalue()


def snapshot_archive(records: Dict[str, dict], label: str = "") -> bytes:
    """A tar.gz laid out like a MaxMind download."""
    return build_tar_archive({
        f"{EDITION}_20240102/COPYRIGHT.txt": b"Database and Contents Copyright (c) MaxMind",
        f"{EDITION}_20240102/{EDITION}.mmdb": database_bytes(records, label),
    })


class FakeFetcher(Fetcher):
    """Serves a prepared archive; can be paused to hold a refresh in flight."""

    def __init__(self, payload: bytes = b"", error: Optional[Exception] = None):
        self.payload = payload
        self.error = error
        self.calls = 0
        self.started = asyncio.Event()
        self.gate: Optional[asyncio.Event] = None

    async def fetch(self, destination: Path) -> DownloadedArchive:
        self.calls += 1
        self.started.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_bytes(self.payload)
        return DownloadedArchive(path=destination)


# --- Fixtures ---

@pytest.fixture
def database_path(tmp_path) -> Path:
    return tmp_path / "data" / f"{EDITION}.mmdb"


@pytest.fixture
def download_dir(tmp_path) -> Path:
    return tmp_path / "data" / "downloads"


@pytest.fixture
def opener() -> FakeOpener:
    return FakeOpener()


@pytest.fixture
def installer(opener, database_path, download_dir) -> ArchiveInstaller:
    return ArchiveInstaller(
        extractor=ArchiveExtractor(),
        hasher=Sha256Hasher(),
        opener=opener,
        database_path=database_path,
        edition_id=EDITION,
        work_dir=download_dir,
    )


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher(payload=snapshot_archive({"8.8.8.8": GOOGLE_DNS}, "v2"))


@pytest.fixture
def coordinator(fetcher, installer, opener, database_path, download_dir) -> RefreshCoordinator:
    pipeline = RefreshPipeline(
        fetcher=fetcher,
        installer=installer,
        download_dir=download_dir,
        edition_id=EDITION,
        archive_suffix="tar.gz",
    )
    return RefreshCoordinator(
        pipeline=pipeline, opener=opener, database_path=database_path
    )


@pytest.fixture
def test_settings(tmp_path) -> Dynaconf:
    config = Dynaconf(
        settings_files=[str(PROJECT_ROOT / "config" / "settings.toml")],
    )
    config.set("geoip.account_id", "123456")
    config.set("geoip.license_key", "abcdef0123456789")
    config.set("paths.database_path", str(tmp_path / "data" / f"{EDITION}.mmdb"))
    config.set("paths.download_dir", str(tmp_path / "data" / "downloads"))
    return config
