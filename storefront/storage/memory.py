from typing import Dict, Optional
import logging

log = logging.getLogger(__name__)


class MemoryStorage:
    """Almacenamiento clave-valor en memoria para desarrollo, tests o fallback cuando Redis no está disponible."""

    def __init__(self, initial: Optional[Dict[str, str]] = None, namespace: str = "", _store=None):
        self._store: Dict[str, str] = _store if _store is not None else {}
        self.namespace = namespace
        for key, value in (initial or {}).items():
            self.set(key, value)

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}" if self.namespace else key

    def get(self, key: str) -> Optional[str]:
        return self._store.get(self._key(key))

    def set(self, key: str, value: str) -> None:
        self._store[self._key(key)] = value
        log.debug(f"Clave {self._key(key)} actualizada en memoria.")

    def remove(self, key: str) -> None:
        self._store.pop(self._key(key), None)
        log.debug(f"Clave {self._key(key)} eliminada en memoria.")

    def scoped(self, namespace: str) -> "MemoryStorage":
        prefix = f"{self.namespace}:{namespace}" if self.namespace else namespace
        return MemoryStorage(namespace=prefix, _store=self._store)
