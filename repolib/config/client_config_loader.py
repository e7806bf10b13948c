"""
Repository Client Configuration Loader

This module provides functionality to load and validate repository client configuration
from YAML files: server location, transport settings, HTTP header names and the schema.
"""

import copy
import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional, Tuple
import logging

from ..utils.client_utils import ConfigurationError

logger = logging.getLogger(__name__)


DEFAULT_HEADERS = {
    'metadataReadMode': 'X-METADATA-READ-MODE',
    'metadataParentProperty': 'X-PARENT-PROPERTY',
    'metadataWriteMode': 'X-METADATA-WRITE-MODE',
    'transactionId': 'X-TRANSACTION-ID',
}

DEFAULT_SCHEMA = {
    'id': 'https://example.org/repo/schema#hasIdentifier',
    'label': 'https://example.org/repo/schema#hasTitle',
    'parent': 'https://example.org/repo/schema#isPartOf',
    'delete': 'https://example.org/repo/schema#delete',
    'binarySize': 'https://example.org/repo/schema#hasBinarySize',
    'searchCount': 'https://example.org/repo/schema#searchCount',
    'searchMatch': 'https://example.org/repo/schema#searchMatch',
    'searchOrder': 'https://example.org/repo/schema#searchOrder',
    'searchFts': 'https://example.org/repo/schema#searchFts',
}

# predicates the resource handle can't work without
REQUIRED_SCHEMA_PROPERTIES = ('id', 'parent', 'delete', 'binarySize', 'searchCount', 'searchMatch')


class ClientConfigurationError(ConfigurationError):
    """Raised when there are client configuration loading or validation errors."""
    pass


class RepoClientConfig:
    """
    Repository client configuration loader and manager.

    Loads configuration from YAML files and provides access to configuration
    sections for connecting to a repository REST API.
    """

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize the client configuration loader.

        Args:
            config_path: Path to configuration file. If None, uses default locations or built-in defaults.
        """
        self.config_data: Dict[str, Any] = {}
        self.config_path: Optional[str] = None

        if config_path is not None:
            self.load_config(config_path)
        else:
            self._load_default_config()

    def load_config(self, config_path: str) -> None:
        """
        Load configuration from a specific file path.

        Args:
            config_path: Path to the YAML configuration file

        Raises:
            ClientConfigurationError: If the file cannot be loaded or parsed
        """
        config_file = Path(config_path)

        if not config_file.exists():
            raise ClientConfigurationError(f"Configuration file not found: {config_path}")

        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                self.config_data = yaml.safe_load(f) or {}

            self.config_path = str(config_file.absolute())
            logger.info(f"Loaded client configuration from: {self.config_path}")

        except yaml.YAMLError as e:
            raise ClientConfigurationError(f"Error parsing YAML configuration: {e}") from e
        except OSError as e:
            raise ClientConfigurationError(f"Error loading configuration file: {e}") from e

        if not isinstance(self.config_data, dict):
            raise ClientConfigurationError(f"Configuration file must contain a mapping: {config_path}")

    def _load_default_config(self) -> None:
        """
        Load default configuration by searching standard locations or using built-in defaults.
        """
        default_paths = [
            "repoclient-config.yaml",
            "repoclient_config/repoclient-config.yaml",
            os.path.expanduser("~/.repolib/repoclient-config.yaml"),
            "/etc/repolib/repoclient-config.yaml"
        ]

        for path in default_paths:
            if os.path.exists(path):
                try:
                    self.load_config(path)
                    logger.info(f"Found and loaded default config from: {path}")
                    return
                except ClientConfigurationError:
                    continue

        self.config_data = {
            'server': {
                'url': 'http://localhost/api/'
            },
            'auth': {
                'username': None,
                'password': None
            },
            'client': {
                'timeout': 30,
                'max_retries': 3,
                'use_mock_client': False
            },
            'rest': {
                'headers': dict(DEFAULT_HEADERS)
            },
            'schema': dict(DEFAULT_SCHEMA)
        }
        self.config_path = "<built-in defaults>"
        logger.info("Using built-in default configuration")

    def get_server_config(self) -> Dict[str, Any]:
        return self.config_data.get('server') or {}

    def get_auth_config(self) -> Dict[str, Any]:
        return self.config_data.get('auth') or {}

    def get_client_config(self) -> Dict[str, Any]:
        return self.config_data.get('client') or {}

    def get_server_url(self) -> str:
        """
        Get the repository REST API base URL.

        Returns:
            Base URL, always ending with a slash
        """
        url = self.get_server_config().get('url', 'http://localhost/api/')
        if isinstance(url, str) and not url.endswith('/'):
            url += '/'
        return url

    def get_credentials(self) -> Tuple[Optional[str], Optional[str]]:
        """
        Get username and password for authentication.

        The REPOLIB_CLIENT_USERNAME and REPOLIB_CLIENT_PASSWORD environment
        variables take precedence over the configuration file.

        Returns:
            Tuple of (username, password), either may be None
        """
        auth_config = self.get_auth_config()
        username = os.environ.get('REPOLIB_CLIENT_USERNAME', auth_config.get('username'))
        password = os.environ.get('REPOLIB_CLIENT_PASSWORD', auth_config.get('password'))
        return username, password

    def get_timeout(self) -> int:
        return self.get_client_config().get('timeout', 30)

    def get_max_retries(self) -> int:
        return self.get_client_config().get('max_retries', 3)

    def use_mock_client(self) -> bool:
        """
        Check whether the in-memory mock repository should be used.

        Returns:
            True if the mock repository is enabled
        """
        return bool(self.get_client_config().get('use_mock_client', False))

    def get_headers(self) -> Dict[str, str]:
        """
        Get the mapping of logical header names to repository HTTP header names.

        Returns:
            Header name mapping, defaults completed with configured values
        """
        headers = dict(DEFAULT_HEADERS)
        rest_config = self.config_data.get('rest') or {}
        headers.update(rest_config.get('headers') or {})
        return headers

    def get_schema_config(self) -> Dict[str, Any]:
        """
        Get the schema section.

        Returns:
            Copy of the mapping of logical property names to predicate URIs
        """
        return copy.deepcopy(self.config_data.get('schema') or {})

    def validate_config(self) -> None:
        """
        Validate the loaded configuration.

        Raises:
            ClientConfigurationError: If configuration is invalid
        """
        server_url = self.get_server_url()
        if not server_url or not isinstance(server_url, str):
            raise ClientConfigurationError("Server URL must be a non-empty string")

        if not server_url.startswith(('http://', 'https://')):
            raise ClientConfigurationError("Server URL must start with http:// or https://")

        timeout = self.get_timeout()
        if not isinstance(timeout, int) or timeout <= 0:
            raise ClientConfigurationError("Timeout must be a positive integer")

        schema = self.get_schema_config()
        missing = [name for name in REQUIRED_SCHEMA_PROPERTIES if not schema.get(name)]
        if missing:
            raise ClientConfigurationError(f"Schema is missing required properties: {', '.join(missing)}")

        logger.info("Client configuration validation passed")

    def __str__(self) -> str:
        """String representation of the configuration."""
        return f"RepoClientConfig(path={self.config_path}, server_url={self.get_server_url()})"


# Global client configuration instance
_client_config_instance: Optional[RepoClientConfig] = None


def get_client_config(config_path: Optional[str] = None) -> RepoClientConfig:
    """
    Get the global client configuration instance.

    Args:
        config_path: Optional path to configuration file. Only used on first call.

    Returns:
        RepoClientConfig instance
    """
    global _client_config_instance

    if _client_config_instance is None:
        _client_config_instance = RepoClientConfig(config_path)
        _client_config_instance.validate_config()

    return _client_config_instance


def reload_client_config(config_path: Optional[str] = None) -> RepoClientConfig:
    """
    Reload the global client configuration instance.

    Args:
        config_path: Optional path to configuration file

    Returns:
        New RepoClientConfig instance
    """
    global _client_config_instance

    _client_config_instance = RepoClientConfig(config_path)
    _client_config_instance.validate_config()

    return _client_config_instance
