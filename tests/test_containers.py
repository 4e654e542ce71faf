from pathlib import Path

import pytest
from dependency_injector import providers

from geo_service.application.exceptions import ConfigurationError
from geo_service.infrastructure.containers import Container
from geo_service.infrastructure.downloader import HttpFetcher
from geo_service.infrastructure.maxmind_reader import MaxMindOpener
from geo_service.settings import validate_settings


@pytest.fixture
def container(test_settings):
    container = Container()
    container.config.override(providers.Object(test_settings))
    return container


def test_settings_file_defaults_validate(test_settings):
    assert validate_settings(test_settings) is test_settings
    assert test_settings.geoip.edition_id == "GeoLite2-City"
    assert test_settings.schedule.crontab == "0 3 * * tue"


def test_missing_license_key_fails_when_the_fetcher_is_built(container, test_settings):
    test_settings.set("geoip.license_key", "")
    validate_settings(test_settings)

    with pytest.raises(ConfigurationError, match="license_key"):
        container.fetcher()


def test_offline_coordinator_has_no_pipeline(container, test_settings):
    test_settings.set("geoip.account_id", "")
    coordinator = container.offline_coordinator()

    assert coordinator.pipeline is None
    assert coordinator.database_path == Path(test_settings.paths.database_path)


def test_invalid_timeout_is_a_configuration_error(test_settings):
    test_settings.set("geoip.timeout", 0)

    with pytest.raises(ConfigurationError):
        validate_settings(test_settings)


def test_container_wires_a_single_coordinator(container, test_settings):
    coordinator = container.coordinator()
    lookup_service = container.lookup_service()

    assert lookup_service.coordinator is coordinator
    assert container.scheduler().coordinator is coordinator
    assert coordinator.database_path == Path(test_settings.paths.database_path)
    assert isinstance(coordinator.opener, MaxMindOpener)


def test_container_builds_fetcher_from_settings(container):
    fetcher = container.fetcher()

    assert isinstance(fetcher, HttpFetcher)
    assert fetcher.edition_id == "GeoLite2-City"
    assert fetcher.archive_suffix == "tar.gz"
    assert fetcher.verify_checksum is True
    assert not fetcher.show_progress


def test_container_rejects_placeholder_credentials(container, test_settings):
    test_settings.set("geoip.license_key", "YOUR_LICENSE_KEY")

    with pytest.raises(ConfigurationError):
        container.fetcher()
