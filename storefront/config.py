# storefront/config.py
from __future__ import annotations
import os
from dataclasses import dataclass

# === CONFIGURACIÓN: API remota y almacenamiento ===
API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8000")
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "15"))

# memory:// | redis://host:6379/0 | sqlite:///storefront.db | postgresql+psycopg://...
STORAGE_URL = os.getenv("STORAGE_URL", "memory://")
REDIS_TTL_SECONDS = int(os.getenv("REDIS_TTL_SECONDS", str(30 * 24 * 3600)))

# === CLAVES DE ALMACENAMIENTO DURABLE ===
CART_STORAGE_KEY = os.getenv("CART_STORAGE_KEY", "savage-rise-cart")
PROMO_STORAGE_KEY = os.getenv("PROMO_STORAGE_KEY", "savage_rise_promo_code")
TOKEN_STORAGE_KEY = os.getenv("TOKEN_STORAGE_KEY", "savage_rise_token")

# === ENVÍO ===
SHIPPING_THRESHOLD = float(os.getenv("SHIPPING_THRESHOLD", "300"))
SHIPPING_COST = float(os.getenv("SHIPPING_COST", "7"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


@dataclass(frozen=True)
class Settings:
    api_base_url: str = API_BASE_URL
    request_timeout: float = REQUEST_TIMEOUT
    storage_url: str = STORAGE_URL
    redis_ttl_seconds: int = REDIS_TTL_SECONDS
    cart_key: str = CART_STORAGE_KEY
    promo_key: str = PROMO_STORAGE_KEY
    token_key: str = TOKEN_STORAGE_KEY
    shipping_threshold: float = SHIPPING_THRESHOLD
    shipping_cost: float = SHIPPING_COST
    log_level: str = LOG_LEVEL

    @classmethod
    def from_env(cls) -> "Settings":
        """Relee las variables de entorno (los defaults de clase se fijan al importar)."""
        return cls(
            api_base_url=os.getenv("API_BASE_URL", "http://localhost:8000"),
            request_timeout=float(os.getenv("REQUEST_TIMEOUT", "15")),
            storage_url=os.getenv("STORAGE_URL", "memory://"),
            redis_ttl_seconds=int(os.getenv("REDIS_TTL_SECONDS", str(30 * 24 * 3600))),
            cart_key=os.getenv("CART_STORAGE_KEY", "savage-rise-cart"),
            promo_key=os.getenv("PROMO_STORAGE_KEY", "savage_rise_promo_code"),
            token_key=os.getenv("TOKEN_STORAGE_KEY", "savage_rise_token"),
            shipping_threshold=float(os.getenv("SHIPPING_THRESHOLD", "300")),
            shipping_cost=float(os.getenv("SHIPPING_COST", "7")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )
