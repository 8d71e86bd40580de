from typing import Dict, Optional
import logging

from storefront.config import Settings
from storefront.core.auth import AuthSession
from storefront.core.carts.service import CartStore
from storefront.core.checkout import CheckoutService
from storefront.core.pricing import OrderTotals, compute_totals
from storefront.core.promos.reconciler import PromoReconciler

log = logging.getLogger(__name__)


class StorefrontSession:
    """Contexto de un cliente: carrito, código promo y autenticación sobre un mismo almacenamiento."""

    def __init__(self, storage, api, settings: Optional[Settings] = None):
        self.settings = settings or Settings()
        self.storage = storage
        self.api = api
        self.cart = CartStore(storage, key=self.settings.cart_key)
        self.auth = AuthSession(api, storage, key=self.settings.token_key)
        self.promo = PromoReconciler(
            self.cart,
            api,
            storage,
            key=self.settings.promo_key,
            token_provider=lambda: self.auth.token,
        )
        self.checkout = CheckoutService(self.cart, self.promo, self.auth, api)
        self._unsubscribe = [
            self.cart.subscribe(self.promo.on_cart_changed),
            self.auth.subscribe(self.promo.on_auth_changed),
        ]
        self.started = False

    async def start(self) -> "StorefrontSession":
        self.cart.hydrate()
        await self.auth.restore()
        # restore() de auth puede haber programado una revalidación
        await self.promo.settle()
        if self.promo.code is None:
            await self.promo.restore()
        self.started = True
        return self

    def close(self) -> None:
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe = []

    def totals(self) -> OrderTotals:
        return compute_totals(
            self.cart.subtotal,
            self.promo.discount,
            self.settings.shipping_threshold,
            self.settings.shipping_cost,
        )

    def summary(self) -> dict:
        return {
            "cart": self.cart.to_summary(),
            "promo": self.promo.to_summary(),
            "totals": self.totals().to_dict(),
            "authenticated": self.auth.is_authenticated,
        }


class SessionRegistry:
    """Una StorefrontSession por session_id, cada una con su espacio en el almacenamiento."""

    def __init__(self, storage, api, settings: Optional[Settings] = None):
        self.storage = storage
        self.api = api
        self.settings = settings or Settings()
        self._sessions: Dict[str, StorefrontSession] = {}

    def _session_id(self, session_id: Optional[str]) -> str:
        return session_id or "anon-session"

    async def get(self, session_id: Optional[str]) -> StorefrontSession:
        session_id = self._session_id(session_id)
        session = self._sessions.get(session_id)
        if session:
            return session
        storage = self.storage.scoped(session_id) if hasattr(self.storage, "scoped") else self.storage
        session = StorefrontSession(storage, self.api, self.settings)
        self._sessions[session_id] = session
        await session.start()
        log.info(f"Sesión {session_id} iniciada.")
        return session

    def drop(self, session_id: str) -> None:
        session = self._sessions.pop(self._session_id(session_id), None)
        if session:
            session.close()

    def close(self) -> None:
        for session_id in list(self._sessions):
            self.drop(session_id)
