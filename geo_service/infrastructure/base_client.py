"""Base class for async HTTP clients."""

import logging
import httpx

from ..application.exceptions import ConfigurationError


class BaseClient:
    """A base client that handles an async client and credential configuration."""

    def __init__(self, client: httpx.AsyncClient, account_id: str, license_key: str):
        """
        Initializes the base client.

        Args:
            client: An instance of httpx.AsyncClient.
            account_id: The provider account identifier.
            license_key: The provider license key.

        Raises:
            ConfigurationError: If a credential is missing or appears to be
                                a placeholder.
        """

        for name, value in (("account_id", account_id), ("license_key", license_key)):
            if not value or "YOUR_" in str(value).upper():
                raise ConfigurationError(
                    f"Credential '{name}' for {self.__class__.__name__} is missing "
                    f"or is a placeholder. Please check your config files."
                )

        self.client = client
        self.account_id = str(account_id)
        self.license_key = str(license_key)
        self.logger = logging.getLogger(self.__class__.__name__)
