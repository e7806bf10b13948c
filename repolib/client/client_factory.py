"""Repository Client Factory

Factory function to create the appropriate repository connection
based on configuration settings.
"""

import logging
from typing import Optional

from ..config.client_config_loader import RepoClientConfig, ClientConfigurationError
from ..mock.mock_repo import MockRepo
from .repo import Repo

logger = logging.getLogger(__name__)


def create_repo(config_path: Optional[str] = None, *, config: Optional[RepoClientConfig] = None) -> Repo:
    """
    Create a repository connection based on configuration settings.

    Returns either a real Repo or an in-memory MockRepo depending on the
    'client.use_mock_client' setting.

    Args:
        config_path: Path to the client configuration YAML file (optional if config provided)
        config: Pre-configured RepoClientConfig object (takes precedence over config_path)

    Returns:
        Repo or MockRepo, not yet opened

    Raises:
        ClientConfigurationError: If configuration is invalid
    """
    if config is not None:
        client_config = config
        logger.info("Using provided config object for repository creation")
    else:
        client_config = RepoClientConfig(config_path)
        logger.info(f"Loaded config from {client_config.config_path} for repository creation")

    try:
        client_config.validate_config()
    except ClientConfigurationError as e:
        logger.error(f"Configuration error while creating repository connection: {e}")
        raise

    if client_config.use_mock_client():
        logger.info("Creating MockRepo based on configuration setting")
        return MockRepo.from_config(client_config)

    logger.info("Creating Repo based on configuration setting")
    return Repo.from_config(client_config)
