from typing import Dict, Optional
from datetime import datetime, timezone

from database import BaseRepository


class ApiKeyRepository(BaseRepository):
    """Repository for stored third-party API keys"""

    def get_active_key(self, key_id: int) -> Optional[str]:
        """Get the key value of an active record, or None"""
        query = """
        MATCH (k:ApiKey {key_id: $key_id})
        WHERE k.is_active = true
        RETURN k.api_key as api_key
        LIMIT 1
        """
        result = self.execute_query(query, {"key_id": key_id})
        return result[0]['api_key'] if result else None

    def upsert(self, key_id: int, api_key: Optional[str], is_active: bool) -> Optional[Dict]:
        """Create or replace the key record with the given id"""
        query = """
        MERGE (k:ApiKey {key_id: $key_id})
        SET k.api_key = $api_key,
            k.is_active = $is_active,
            k.updated_at = $updated_at
        RETURN k
        """
        params = {
            "key_id": key_id,
            "api_key": api_key,
            "is_active": is_active,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        result = self.execute_query(query, params)
        return result[0]['k'] if result else None
