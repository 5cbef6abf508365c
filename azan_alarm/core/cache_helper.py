import os
import json
from datetime import date, datetime
import logging
from typing import Optional
import hashlib

logger = logging.getLogger(__name__)


class CacheHelper:
    DEFAULT_CACHE_DIR = "~/.azan_alarm/cache"

    def __init__(self, cache_dir: Optional[str] = None, namespace: str = ""):
        """Initialize cache helper with specific cache directory
        Args:
            cache_dir: Base cache directory from config, if None uses DEFAULT_CACHE_DIR
            namespace: Subdirectory for one kind of cached content
        """
        base_dir = os.path.expanduser(cache_dir or self.DEFAULT_CACHE_DIR)
        self.cache_dir = os.path.join(base_dir, namespace) if namespace else base_dir
        os.makedirs(self.cache_dir, exist_ok=True)

    def _get_cache_file(self, key: str) -> str:
        key_hash = hashlib.md5(key.encode()).hexdigest()
        return os.path.join(self.cache_dir, f"{key_hash}.json")

    def get_cached_content(self, key: str, valid_for: Optional[date] = None) -> Optional[str]:
        """Get cached content if it exists and was saved on valid_for (default today)"""
        valid_for = valid_for or datetime.now().date()
        try:
            cache_file = self._get_cache_file(key)
            if not os.path.exists(cache_file):
                return None

            with open(cache_file, 'r') as f:
                cached = json.load(f)

            cache_date = datetime.strptime(cached['date'], '%Y-%m-%d').date()
            if cache_date == valid_for:
                return cached['content']
            return None

        except Exception as e:
            logger.error(f"Error reading cache: {e}")
            return None

    def save_to_cache(self, key: str, content: str) -> None:
        """Save content to cache stamped with today's date"""
        try:
            cache_data = {
                'date': datetime.now().strftime('%Y-%m-%d'),
                'key': key,
                'content': content,
            }
            with open(self._get_cache_file(key), 'w') as f:
                json.dump(cache_data, f)

        except Exception as e:
            logger.error(f"Error saving to cache: {e}")
