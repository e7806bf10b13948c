"""
Tests for the client configuration loader and the repository factory.
"""

import pytest
import yaml

from repolib.client.client_factory import create_repo
from repolib.client.repo import Repo
from repolib.config.client_config_loader import (
    DEFAULT_HEADERS, DEFAULT_SCHEMA, ClientConfigurationError, RepoClientConfig
)
from repolib.mock.mock_repo import MockRepo
from repolib.utils.client_utils import ConfigurationError


def write_config(tmp_path, **sections):
    data = {
        'server': {'url': 'https://repo.example.org/api'},
        'client': {'timeout': 10, 'max_retries': 1, 'use_mock_client': False},
        'schema': dict(DEFAULT_SCHEMA),
    }
    data.update(sections)
    path = tmp_path / 'repoclient-config.yaml'
    path.write_text(yaml.safe_dump(data), encoding='utf-8')
    return str(path)


@pytest.fixture(autouse=True)
def no_credentials_env(monkeypatch):
    monkeypatch.delenv('REPOLIB_CLIENT_USERNAME', raising=False)
    monkeypatch.delenv('REPOLIB_CLIENT_PASSWORD', raising=False)


class TestRepoClientConfig:

    def test_load(self, tmp_path):
        config = RepoClientConfig(write_config(tmp_path))

        assert config.get_server_url() == 'https://repo.example.org/api/'
        assert config.get_timeout() == 10
        assert config.get_max_retries() == 1
        assert not config.use_mock_client()
        assert config.get_headers() == DEFAULT_HEADERS
        assert config.get_schema_config() == DEFAULT_SCHEMA
        config.validate_config()

    def test_header_overrides(self, tmp_path):
        path = write_config(tmp_path, rest={'headers': {'transactionId': 'X-TX'}})
        headers = RepoClientConfig(path).get_headers()

        assert headers['transactionId'] == 'X-TX'
        assert headers['metadataReadMode'] == 'X-METADATA-READ-MODE'

    def test_credentials_from_environment(self, tmp_path, monkeypatch):
        path = write_config(tmp_path, auth={'username': 'file-user', 'password': 'file-pass'})
        config = RepoClientConfig(path)
        assert config.get_credentials() == ('file-user', 'file-pass')

        monkeypatch.setenv('REPOLIB_CLIENT_USERNAME', 'env-user')
        monkeypatch.setenv('REPOLIB_CLIENT_PASSWORD', 'env-pass')
        assert config.get_credentials() == ('env-user', 'env-pass')

    def test_missing_file(self, tmp_path):
        with pytest.raises(ClientConfigurationError):
            RepoClientConfig(str(tmp_path / 'missing.yaml'))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / 'broken.yaml'
        path.write_text('server: [unclosed', encoding='utf-8')
        with pytest.raises(ClientConfigurationError):
            RepoClientConfig(str(path))

    def test_invalid_url(self, tmp_path):
        config = RepoClientConfig(write_config(tmp_path, server={'url': 'ftp://repo.example.org'}))
        with pytest.raises(ClientConfigurationError):
            config.validate_config()

    def test_invalid_timeout(self, tmp_path):
        path = write_config(tmp_path, client={'timeout': -1})
        with pytest.raises(ClientConfigurationError):
            RepoClientConfig(path).validate_config()

    def test_incomplete_schema(self, tmp_path):
        schema = dict(DEFAULT_SCHEMA)
        del schema['delete']
        config = RepoClientConfig(write_config(tmp_path, schema=schema))

        with pytest.raises(ConfigurationError, match='delete'):
            config.validate_config()

    def test_schema_config_is_a_copy(self, tmp_path):
        config = RepoClientConfig(write_config(tmp_path))
        config.get_schema_config()['id'] = 'changed'
        assert config.get_schema_config()['id'] == DEFAULT_SCHEMA['id']


class TestCreateRepo:

    def test_real_repo(self, tmp_path):
        path = write_config(tmp_path, auth={'username': 'user', 'password': 'secret'})
        repo = create_repo(path)

        assert type(repo) is Repo
        assert repo.get_base_url() == 'https://repo.example.org/api/'
        assert repo.auth == ('user', 'secret')
        assert repo.timeout == 10
        assert repo.get_schema().id == DEFAULT_SCHEMA['id']
        assert not repo.is_connected()

    def test_mock_repo(self, tmp_path):
        path = write_config(tmp_path, client={'use_mock_client': True})
        repo = create_repo(config=RepoClientConfig(path))

        assert isinstance(repo, MockRepo)
        assert repo.get_base_url() == 'https://repo.example.org/api/'
        assert repo.auth is None

    def test_invalid_config_is_rejected(self, tmp_path):
        path = write_config(tmp_path, schema={})
        with pytest.raises(ClientConfigurationError):
            create_repo(path)
