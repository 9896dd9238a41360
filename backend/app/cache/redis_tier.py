"""Redis-backed fast tier."""

from __future__ import annotations

import json
import logging
from typing import Any

import redis

from app.cache.tiers import TierError

logger = logging.getLogger(__name__)


class RedisTier:
    """JSON documents in Redis with per-key expiry."""

    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisTier":
        client = redis.Redis.from_url(
            url,
            socket_timeout=2.0,
            socket_connect_timeout=2.0,
            retry_on_timeout=True,
        )
        logger.info("cache.redis_client_created")
        return cls(client)

    def get_json(self, key: str) -> Any | None:
        try:
            raw = self._client.get(key)
        except redis.RedisError as exc:
            raise TierError(f"redis get failed for {key}") from exc
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError) as exc:
            raise TierError(f"redis value for {key} is not valid JSON") from exc

    def set_json(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        payload = json.dumps(value, ensure_ascii=False, default=str)
        try:
            if ttl_seconds:
                self._client.setex(key, ttl_seconds, payload)
            else:
                self._client.set(key, payload)
        except redis.RedisError as exc:
            raise TierError(f"redis set failed for {key}") from exc

    def close(self) -> None:
        self._client.close()
