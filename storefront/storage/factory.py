import logging

from .memory import MemoryStorage

log = logging.getLogger(__name__)


def open_storage(url: str = "memory://", redis_ttl_seconds: int = 30 * 24 * 3600, client=None):
    """
    Abre el backend de almacenamiento según el esquema de la URL.
    Si Redis o la base SQL no responden, se usa memoria (para dev/local).
    """
    if not url or url.startswith("memory://"):
        log.info("Almacenamiento en memoria.")
        return MemoryStorage()

    if url.startswith(("redis://", "rediss://", "unix://")):
        try:
            from .redis_store import RedisStorage

            store = RedisStorage(url=url, ttl_seconds=redis_ttl_seconds, client=client)
            store.client.ping()
            log.info("Almacenamiento usando Redis.")
            return store
        except Exception as err:
            log.warning(f"No se pudo conectar a Redis ({err}). Usando almacenamiento en memoria.")
            return MemoryStorage()

    try:
        from .sql_store import SqlStorage

        store = SqlStorage(url=url)
        log.info("Almacenamiento usando SQL.")
        return store
    except Exception as err:
        log.warning(f"No se pudo abrir la base {url} ({err}). Usando almacenamiento en memoria.")
        return MemoryStorage()
