"""
Resolution of the FMCSA web key.

Precedence: the cached key, then the active stored key record (when the
database source is enabled), then nothing. Callers that need a key degrade
when None comes back; nothing here raises.
"""

import logging
from typing import Optional

from config import settings
from repositories.api_key_repository import ApiKeyRepository
from services.fmcsa_client import FMCSAClient, mask_key

logger = logging.getLogger(__name__)


class ApiKeyProvider:
    """Caches the FMCSA web key and falls back to the stored key record."""

    def __init__(self, repository: Optional[ApiKeyRepository] = None,
                 key_id: Optional[int] = None, use_db_key: Optional[bool] = None,
                 cached_key: Optional[str] = None):
        self.repository = repository or ApiKeyRepository()
        self.key_id = key_id if key_id is not None else settings.fmcsa_api_key_record_id
        self.use_db_key = settings.use_db_api_key if use_db_key is None else use_db_key
        self._cached_key = cached_key if cached_key is not None else settings.fmcsa_api_key
        self._client: Optional[FMCSAClient] = None

    @property
    def api_key(self) -> Optional[str]:
        """Currently cached key, without consulting the store"""
        return self._cached_key

    def refresh_api_key(self) -> Optional[str]:
        """Resolve the key: cache, then stored record, then None."""
        if self._cached_key:
            logger.debug("Using cached FMCSA API key")
            return self._cached_key

        if not self.use_db_key:
            logger.info("Not using database key and no cached key available")
            return None

        logger.info("Fetching FMCSA API key from database")
        try:
            stored_key = self.repository.get_active_key(self.key_id)
        except Exception as e:
            logger.error(f"Error fetching API key from database: {e}")
            return None

        if not stored_key:
            logger.info(f"No active API key found in database with ID {self.key_id}")
            return None

        logger.info(f"Retrieved API key {mask_key(stored_key)} from database")
        self._cached_key = stored_key
        return stored_key

    def save_api_key(self, api_key: str) -> bool:
        """Cache a new key and, when the database source is enabled, store it as active."""
        cleaned_key = (api_key or "").strip()
        if not cleaned_key:
            return False

        self._cached_key = cleaned_key
        if not self.use_db_key:
            return True

        try:
            self.repository.upsert(self.key_id, cleaned_key, True)
        except Exception as e:
            logger.error(f"Failed to update API key in database: {e}")
            return False
        logger.info(f"Stored FMCSA API key {mask_key(cleaned_key)}")
        return True

    def remove_api_key(self) -> bool:
        """Forget the cached key and deactivate the stored record."""
        self._cached_key = None
        if not self.use_db_key:
            return True

        try:
            self.repository.upsert(self.key_id, None, False)
        except Exception as e:
            logger.error(f"Failed to remove API key from database: {e}")
            return False
        logger.info("Removed FMCSA API key")
        return True

    def get_client(self, refresh: bool = False) -> Optional[FMCSAClient]:
        """Registry client for the current key, or None when no key is available.

        Args:
            refresh: Resolve the key through the store when nothing is cached
        """
        api_key = self.refresh_api_key() if refresh else self._cached_key
        if not api_key:
            return None
        if self._client is None or self._client.api_key != api_key:
            self._client = FMCSAClient(api_key=api_key)
        return self._client
