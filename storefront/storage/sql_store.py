from typing import Optional
import logging

from sqlalchemy.engine import Engine

from .db import make_engine, make_session_factory, session_scope
from .models import StoredEntry

log = logging.getLogger(__name__)


class SqlStorage:
    """Persistencia clave-valor en una tabla relacional (SQLite/PostgreSQL)."""

    def __init__(self, url: str = "sqlite:///storefront.db", namespace: str = "", engine: Optional[Engine] = None):
        self.engine = engine or make_engine(url)
        self.namespace = namespace
        self._sessions = make_session_factory(self.engine)

    def _find(self, db, key: str) -> Optional[StoredEntry]:
        return (
            db.query(StoredEntry)
            .filter(StoredEntry.namespace == self.namespace, StoredEntry.key == key)
            .first()
        )

    def get(self, key: str) -> Optional[str]:
        with session_scope(self._sessions) as db:
            entry = self._find(db, key)
            return entry.value if entry else None

    def set(self, key: str, value: str) -> None:
        with session_scope(self._sessions) as db:
            entry = self._find(db, key)
            if entry:
                entry.value = value
            else:
                db.add(StoredEntry(namespace=self.namespace, key=key, value=value))
        log.debug(f"Clave {key} ({self.namespace or '-'}) guardada en SQL.")

    def remove(self, key: str) -> None:
        with session_scope(self._sessions) as db:
            db.query(StoredEntry).filter(
                StoredEntry.namespace == self.namespace, StoredEntry.key == key
            ).delete()
        log.debug(f"Clave {key} ({self.namespace or '-'}) eliminada en SQL.")

    def scoped(self, namespace: str) -> "SqlStorage":
        prefix = f"{self.namespace}:{namespace}" if self.namespace else namespace
        return SqlStorage(namespace=prefix, engine=self.engine)
