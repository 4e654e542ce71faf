"""
Initializes the Dynaconf settings object for the geo_service component.
This module is the single source of truth for all configuration.

Values come from config/settings.toml, config/.secrets.toml, a .env file and
environment variables such as GEO_SERVICE_GEOIP__LICENSE_KEY.
"""

from pathlib import Path
from dynaconf import Dynaconf, ValidationError, Validator

from .application.exceptions import ConfigurationError

PROJECT_ROOT = Path(__file__).parent.parent

VALIDATORS = [
    # Checked when the fetcher is built; lookups run without them.
    Validator("geoip.account_id", "geoip.license_key", default=""),
    Validator(
        "geoip.edition_id",
        "geoip.archive_suffix",
        "geoip.base_url",
        must_exist=True,
        is_type_of=str,
    ),
    Validator(
        "geoip.timeout",
        "geoip.chunk_size",
        "geoip.retry_attempts",
        "hasher.chunk_size",
        must_exist=True,
        is_type_of=int,
        gte=1,
    ),
    Validator("geoip.verify_checksum", "schedule.refresh_if_missing", is_type_of=bool),
    Validator("schedule.crontab", "schedule.timezone", must_exist=True, is_type_of=str),
    Validator("paths.database_path", "paths.download_dir", must_exist=True),
    Validator(
        "logging.level",
        must_exist=True,
        is_in=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
    ),
]

settings = Dynaconf(
    root_path=PROJECT_ROOT,
    settings_files=["config/settings.toml"],
    secrets=["config/.secrets.toml"],
    merge_enabled=True,
    envvar_prefix="GEO_SERVICE",
    load_dotenv=True,
)


def validate_settings(config: Dynaconf) -> Dynaconf:
    """
    Check a settings object against the recognized options.

    Raises:
        ConfigurationError: If a required option is missing or invalid.
    """
    try:
        for validator in VALIDATORS:
            validator.validate(config)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
    return config


def load_settings() -> Dynaconf:
    """Returns the validated module-level settings."""
    return validate_settings(settings)
