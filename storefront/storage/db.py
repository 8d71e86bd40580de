# storefront/storage/db.py
from __future__ import annotations
from contextlib import contextmanager
from typing import Generator
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase, Session


# === BASE ORM ===
class Base(DeclarativeBase):
    """Clase base para los modelos ORM."""
    pass


# === ENGINE ===
def make_engine(url: str, **kwargs) -> Engine:
    """Crea el engine y las tablas del almacenamiento si no existen."""
    from . import models  # noqa: F401  # Mantener import para registrar modelos

    kwargs.setdefault("pool_pre_ping", True)  # Verifica conexiones antes de usarlas
    engine = create_engine(url, echo=False, future=True, **kwargs)
    Base.metadata.create_all(bind=engine)
    return engine


# === SESIÓN ===
def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


@contextmanager
def session_scope(factory: sessionmaker) -> Generator[Session, None, None]:
    """Contexto transaccional: commit al salir, rollback si algo falla."""
    db = factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
