"""Local persistence for the cached reading."""
from .prefs import KEY_LAST_CBBI_VALUE, PREFS_NAMESPACE, JsonPreferences, KeyValueStore, cache_key, get_store

__all__ = ["KEY_LAST_CBBI_VALUE", "PREFS_NAMESPACE", "JsonPreferences", "KeyValueStore", "cache_key", "get_store"]
