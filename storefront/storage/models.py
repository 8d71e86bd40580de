# storefront/storage/models.py
from sqlalchemy import Column, Integer, String, Text, DateTime, UniqueConstraint
from sqlalchemy.sql import func

from .db import Base


class StoredEntry(Base):
    """
    Una entrada del almacenamiento durable del cliente (carrito, código promo, token).
    `namespace` separa las sesiones; `key` es la clave lógica.
    """
    __tablename__ = "storefront_entries"
    __table_args__ = (UniqueConstraint("namespace", "key", name="uq_storefront_entries_ns_key"),)

    id = Column(Integer, primary_key=True, index=True)
    namespace = Column(String(128), nullable=False, default="", index=True)
    key = Column(String(128), nullable=False)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<StoredEntry ns={self.namespace} key={self.key}>"
