from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from geo_service.application.exceptions import (
    DatabaseCorruptError,
    DatabaseNotFoundError,
    InvalidAddressError,
)
from geo_service.infrastructure.maxmind_reader import MaxMindDatabase, MaxMindOpener

CITY_RECORD = {
    "city": {"geoname_id": 1185241, "names": {"en": "Dhaka", "de": "Dhaka"}},
    "continent": {"code": "AS", "names": {"en": "Asia"}},
    "country": {"iso_code": "BD", "names": {"en": "Bangladesh", "fr": "Bangladesh"}},
    "location": {
        "accuracy_radius": 20,
        "latitude": 23.7018,
        "longitude": 90.3742,
        "time_zone": "Asia/Dhaka",
    },
    "subdivisions": [{"iso_code": "C", "names": {"en": "Dhaka Division"}}],
}

COUNTRY_RECORD = {
    "continent": {"code": "NA", "names": {"en": "North America"}},
    "country": {"iso_code": "US", "names": {"en": "United States"}},
}


def make_reader(records):
    reader = MagicMock()
    reader.metadata.return_value = SimpleNamespace(
        database_type="GeoLite2-City", build_epoch=1704153600
    )
    reader.get.side_effect = lambda ip: records.get(ip)
    return reader


@pytest.fixture
def database_file(tmp_path):
    path = tmp_path / "GeoLite2-City.mmdb"
    path.write_bytes(b"placeholder")
    return path


def test_open_maps_full_city_record(database_file):
    reader = make_reader({"103.218.26.249": CITY_RECORD})
    with patch(
        "geo_service.infrastructure.maxmind_reader.maxminddb.open_database",
        return_value=reader,
    ) as open_database:
        handle = MaxMindOpener().open(database_file)

    open_database.assert_called_once()
    assert handle.database_type == "GeoLite2-City"

    location = handle.query("103.218.26.249")

    assert location.ip == "103.218.26.249"
    assert location.country == "Bangladesh"
    assert location.country_code == "BD"
    assert location.region == "Dhaka Division"
    assert location.city == "Dhaka"
    assert location.latitude == pytest.approx(23.7018)
    assert location.longitude == pytest.approx(90.3742)
    assert location.timezone == "Asia/Dhaka"


def test_missing_sections_are_none(database_file):
    handle = MaxMindDatabase(make_reader({"8.8.8.8": COUNTRY_RECORD}), database_file)

    location = handle.query("8.8.8.8")

    assert location.country_code == "US"
    assert location.region is None
    assert location.city is None
    assert location.latitude is None
    assert location.timezone is None


def test_address_without_entry_returns_none(database_file):
    handle = MaxMindDatabase(make_reader({}), database_file)

    assert handle.query("10.0.0.1") is None


def test_ipv6_against_ipv4_database_returns_none(database_file):
    reader = make_reader({})
    reader.get.side_effect = ValueError(
        "Error looking up 2001:db8::1. You attempted to look up an IPv6 "
        "address in an IPv4-only database."
    )
    handle = MaxMindDatabase(reader, database_file)

    assert handle.query("2001:db8::1") is None


def test_malformed_address_never_reaches_reader(database_file):
    reader = make_reader({})
    handle = MaxMindDatabase(reader, database_file)

    with pytest.raises(InvalidAddressError):
        handle.query("999.1.1.1")

    reader.get.assert_not_called()


def test_unexpected_record_layout_is_corrupt(database_file):
    broken = {"location": {"latitude": "north", "longitude": 1.0}}
    handle = MaxMindDatabase(make_reader({"8.8.8.8": broken}), database_file)

    with pytest.raises(DatabaseCorruptError):
        handle.query("8.8.8.8")


def test_open_missing_file_is_not_found(tmp_path):
    with pytest.raises(DatabaseNotFoundError):
        MaxMindOpener().open(tmp_path / "absent.mmdb")


def test_open_garbage_file_is_corrupt(database_file):
    database_file.write_bytes(b"\x00" * 4096)

    with pytest.raises(DatabaseCorruptError):
        MaxMindOpener().open(database_file)
