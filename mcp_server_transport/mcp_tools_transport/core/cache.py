from __future__ import annotations

import hashlib
import json
import logging
import os
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class FileCache:
    """Simple file-based JSON cache with per-entry TTL.

    Values must be JSON-serializable (dicts, lists, scalars). Upstream clients
    cache raw provider payloads here; DataMall, OneMap and data.gov.sg all
    rate-limit, and real-time data (bus arrivals, taxis) is only fresh for seconds.
    """
    cache_dir: str
    ttl_seconds: int = 300
    hits: int = field(default=0, init=False)
    misses: int = field(default=0, init=False)

    def __post_init__(self) -> None:
        os.makedirs(self.cache_dir, exist_ok=True)

    def _path_for_key(self, key: str) -> str:
        h = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return os.path.join(self.cache_dir, f"{h}.json")

    def get(self, key: str) -> Optional[Any]:
        payload = self._read(key)
        if payload is None:
            self.misses += 1
            return None
        self.hits += 1
        return payload["value"]

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        payload = {"key": key, "expires_at": time.time() + ttl, "value": value}
        with open(self._path_for_key(key), "w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False)

    def get_or_set(self, key: str, fetch: Callable[[], Any], ttl_seconds: Optional[int] = None) -> Any:
        payload = self._read(key)
        if payload is not None:
            self.hits += 1
            logger.debug("Cache hit: %s", key)
            return payload["value"]

        self.misses += 1
        logger.debug("Cache miss: %s", key)
        value = fetch()
        # None means "no data"; don't pin it for the whole TTL.
        if value is not None:
            self.set(key, value, ttl_seconds)
        return value

    def delete(self, key: str) -> None:
        path = self._path_for_key(key)
        if os.path.exists(path):
            os.remove(path)

    def clear(self) -> None:
        for name in os.listdir(self.cache_dir):
            if name.endswith(".json"):
                os.remove(os.path.join(self.cache_dir, name))
        logger.info("Cache cleared: %s", self.cache_dir)

    def stats(self) -> Dict[str, float]:
        total = self.hits + self.misses
        return {
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": (self.hits / total) if total else 0.0,
        }

    def _read(self, key: str) -> Optional[Dict[str, Any]]:
        path = self._path_for_key(key)
        if not os.path.exists(path):
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                payload = json.load(f)
        except (OSError, ValueError):
            logger.warning("Discarding unreadable cache entry for %s", key)
            return None
        if not isinstance(payload, dict) or "value" not in payload:
            return None
        if time.time() > float(payload.get("expires_at", 0)):
            return None
        return payload
