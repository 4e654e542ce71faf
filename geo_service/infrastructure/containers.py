"""
Dependency Injection container for the geo_service component.

This container uses the `dependency-injector` library to wire together all
the components of the application, such as services and infrastructure adapters,
based on the application's configuration. The coordinator is a singleton and
is the only owner of the active database handle.
"""

from dependency_injector import containers, providers
import httpx

from ..application.domain import *
from ..application.lookup import LookupService
from ..application.service import RefreshCoordinator, RefreshPipeline
from ..settings import load_settings

from .downloader import HttpFetcher
from .extraction import ArchiveExtractor
from .installer import ArchiveInstaller
from .maxmind_reader import MaxMindOpener
from .scheduler import RefreshScheduler
from .verification import Sha256Hasher


class Container(containers.DeclarativeContainer):
    """DI container for wiring the application components."""

    cli_args = providers.Configuration()

    config = providers.Singleton(load_settings)

    http_client = providers.Singleton(httpx.AsyncClient, follow_redirects=True)

    opener = providers.Singleton(MaxMindOpener)

    fetcher: providers.Factory[Fetcher] = providers.Factory(
        HttpFetcher,
        client=http_client,
        account_id=config.provided.geoip.account_id,
        license_key=config.provided.geoip.license_key,
        base_url=config.provided.geoip.base_url,
        edition_id=config.provided.geoip.edition_id,
        archive_suffix=config.provided.geoip.archive_suffix,
        timeout=config.provided.geoip.timeout,
        chunk_size=config.provided.geoip.chunk_size,
        retry_attempts=config.provided.geoip.retry_attempts,
        verify_checksum=config.provided.geoip.verify_checksum,
        show_progress=cli_args.show_progress,
    )

    hasher: providers.Factory[Hasher] = providers.Factory(
        Sha256Hasher,
        chunk_size=config.provided.hasher.chunk_size,
    )

    extractor: providers.Factory[Extractor] = providers.Factory(ArchiveExtractor)

    installer: providers.Factory[Installer] = providers.Factory(
        ArchiveInstaller,
        extractor=extractor,
        hasher=hasher,
        opener=opener,
        database_path=config.provided.paths.database_path,
        edition_id=config.provided.geoip.edition_id,
        work_dir=config.provided.paths.download_dir,
    )

    pipeline = providers.Factory(
        RefreshPipeline,
        fetcher=fetcher,
        installer=installer,
        download_dir=config.provided.paths.download_dir,
        edition_id=config.provided.geoip.edition_id,
        archive_suffix=config.provided.geoip.archive_suffix,
    )

    coordinator = providers.Singleton(
        RefreshCoordinator,
        pipeline=pipeline,
        opener=opener,
        database_path=config.provided.paths.database_path,
    )

    # Serves the installed file only; lookups need no download credentials.
    offline_coordinator = providers.Singleton(
        RefreshCoordinator,
        pipeline=None,
        opener=opener,
        database_path=config.provided.paths.database_path,
    )

    lookup_service = providers.Singleton(LookupService, coordinator=coordinator)

    scheduler = providers.Singleton(
        RefreshScheduler,
        coordinator=coordinator,
        crontab=config.provided.schedule.crontab,
        timezone=config.provided.schedule.timezone,
    )
