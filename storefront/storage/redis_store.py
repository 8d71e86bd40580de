from typing import Optional
import redis
import logging

log = logging.getLogger(__name__)


class RedisStorage:
    """Persistencia clave-valor en Redis con TTL renovable en cada escritura."""

    def __init__(self, url="redis://localhost:6379/0", ttl_seconds=30 * 24 * 3600, namespace="storefront", client=None):
        self.client = client or redis.Redis.from_url(url, decode_responses=True)
        self.ttl = ttl_seconds
        self.namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    def get(self, key: str) -> Optional[str]:
        raw = self.client.get(self._key(key))
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return raw

    def set(self, key: str, value: str) -> None:
        full_key = self._key(key)
        with self.client.pipeline() as pipe:
            pipe.set(full_key, value)
            pipe.expire(full_key, self.ttl)
            pipe.execute()
        log.debug(f"Clave {full_key} actualizada en Redis (ttl={self.ttl}s).")

    def remove(self, key: str) -> None:
        self.client.delete(self._key(key))
        log.debug(f"Clave {self._key(key)} eliminada en Redis.")

    def scoped(self, namespace: str) -> "RedisStorage":
        """Devuelve una vista sobre el mismo cliente con otro prefijo (una por sesión)."""
        return RedisStorage(ttl_seconds=self.ttl, namespace=f"{self.namespace}:{namespace}", client=self.client)
