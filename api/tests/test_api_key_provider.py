"""
Unit tests for FMCSA web key resolution.
"""

import pytest
from unittest.mock import Mock

from services.api_key_provider import ApiKeyProvider


class TestApiKeyProvider:
    """Cache first, stored record second, nothing third."""

    @pytest.fixture
    def repository(self):
        repository = Mock()
        repository.get_active_key.return_value = "db_key_456"
        return repository

    def test_cached_key_wins(self, repository):
        provider = ApiKeyProvider(repository=repository, key_id=6, use_db_key=True, cached_key="cached_123")

        assert provider.refresh_api_key() == "cached_123"
        repository.get_active_key.assert_not_called()

    def test_falls_back_to_stored_key_and_caches_it(self, repository):
        provider = ApiKeyProvider(repository=repository, key_id=6, use_db_key=True, cached_key="")

        assert provider.refresh_api_key() == "db_key_456"
        assert provider.api_key == "db_key_456"
        repository.get_active_key.assert_called_once_with(6)

        # second call is served from the cache
        provider.refresh_api_key()
        assert repository.get_active_key.call_count == 1

    def test_no_stored_key(self, repository):
        repository.get_active_key.return_value = None
        provider = ApiKeyProvider(repository=repository, key_id=6, use_db_key=True, cached_key="")

        assert provider.refresh_api_key() is None

    def test_database_source_disabled(self, repository):
        provider = ApiKeyProvider(repository=repository, key_id=6, use_db_key=False, cached_key="")

        assert provider.refresh_api_key() is None
        repository.get_active_key.assert_not_called()

    def test_store_error_resolves_to_none(self, repository):
        repository.get_active_key.side_effect = Exception("ServiceUnavailable")
        provider = ApiKeyProvider(repository=repository, key_id=6, use_db_key=True, cached_key="")

        assert provider.refresh_api_key() is None

    def test_save_api_key(self, repository):
        provider = ApiKeyProvider(repository=repository, key_id=6, use_db_key=True, cached_key="")

        assert provider.save_api_key("  new_key_789  ") is True
        assert provider.api_key == "new_key_789"
        repository.upsert.assert_called_once_with(6, "new_key_789", True)

    def test_save_blank_key_rejected(self, repository):
        provider = ApiKeyProvider(repository=repository, key_id=6, use_db_key=True, cached_key="")

        assert provider.save_api_key("   ") is False
        repository.upsert.assert_not_called()

    def test_save_store_failure(self, repository):
        repository.upsert.side_effect = Exception("write failed")
        provider = ApiKeyProvider(repository=repository, key_id=6, use_db_key=True, cached_key="")

        assert provider.save_api_key("new_key_789") is False

    def test_remove_api_key(self, repository):
        provider = ApiKeyProvider(repository=repository, key_id=6, use_db_key=True, cached_key="cached_123")

        assert provider.remove_api_key() is True
        assert provider.api_key is None
        repository.upsert.assert_called_once_with(6, None, False)

    def test_get_client_without_key(self, repository):
        repository.get_active_key.return_value = None
        provider = ApiKeyProvider(repository=repository, key_id=6, use_db_key=True, cached_key="")

        assert provider.get_client(refresh=True) is None

    def test_get_client_reused_until_key_changes(self, repository):
        provider = ApiKeyProvider(repository=repository, key_id=6, use_db_key=True, cached_key="cached_123")

        client = provider.get_client()
        assert client.api_key == "cached_123"
        assert provider.get_client() is client

        provider.save_api_key("other_key")
        assert provider.get_client().api_key == "other_key"
