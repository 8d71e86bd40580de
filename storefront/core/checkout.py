from typing import List, Optional
import logging

from pydantic import BaseModel

from storefront.client.api import ApiError, StorefrontError
from storefront.core.auth import AuthSession
from storefront.core.carts.service import CartStore
from storefront.core.promos.reconciler import PromoReconciler

log = logging.getLogger(__name__)

REQUIRED_SHIPPING_FIELDS = ("full_name", "email", "phone", "address_line1", "postal_code", "city", "country")


class ShippingInfo(BaseModel):
    full_name: str = ""
    email: str = ""
    phone: str = ""
    address_line1: str = ""
    address_line2: Optional[str] = None
    postal_code: str = ""
    city: str = ""
    country: str = ""

    def missing_fields(self) -> List[str]:
        return [f for f in REQUIRED_SHIPPING_FIELDS if not str(getattr(self, f) or "").strip()]


class CheckoutError(Exception):
    def __init__(
        self,
        message: str,
        login_required: bool = False,
        verification_required: bool = False,
        retryable: bool = False,
        missing_fields: Optional[List[str]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.login_required = login_required
        self.verification_required = verification_required
        self.retryable = retryable
        self.missing_fields = missing_fields or []


class CheckoutService:
    """Envía el pedido a la API remota y limpia carrito y código promo si sale bien."""

    def __init__(self, cart: CartStore, promo: PromoReconciler, auth: AuthSession, api):
        self.cart = cart
        self.promo = promo
        self.auth = auth
        self.api = api

    def prefill_shipping(self, shipping: Optional[ShippingInfo] = None) -> ShippingInfo:
        shipping = shipping or ShippingInfo()
        user = self.auth.user or {}
        updates = {}
        if user.get("email") and not shipping.email:
            updates["email"] = user["email"]
        if user.get("full_name") and not shipping.full_name:
            updates["full_name"] = user["full_name"]
        return shipping.model_copy(update=updates) if updates else shipping

    async def place_order(self, shipping: ShippingInfo) -> dict:
        if self.cart.state.is_empty:
            raise CheckoutError("El carrito está vacío")
        if not self.auth.is_authenticated:
            raise CheckoutError("Debes iniciar sesión para finalizar la compra", login_required=True)
        if not self.auth.is_active:
            raise CheckoutError("Verifica tu correo antes de finalizar la compra", verification_required=True)

        missing = shipping.missing_fields()
        if missing:
            raise CheckoutError("Completa todos los campos obligatorios", missing_fields=missing)

        try:
            order = await self.api.create_order(
                self.cart.order_items(),
                shipping.model_dump(),
                promo_code=self.promo.applied_code,
                token=self.auth.token,
            )
        except ApiError as err:
            log.error(f"Creación del pedido rechazada ({err.status}): {err.message}")
            raise CheckoutError(err.message or "Error al crear el pedido", retryable=err.status >= 500) from err
        except StorefrontError as err:
            log.error(f"Creación del pedido falló: {err}")
            raise CheckoutError("Error al crear el pedido. Inténtalo de nuevo.", retryable=True) from err

        # El promo se quita antes de vaciar el carrito para no disparar otra validación
        self.promo.remove()
        self.cart.clear()
        log.info(f"Pedido {(order or {}).get('id')} creado; carrito vaciado.")
        return order
