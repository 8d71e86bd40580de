import asyncio
from typing import Callable, Optional, Set, Tuple
import logging

from storefront.client.api import StorefrontError
from storefront.core.carts.models import CartState
from storefront.core.carts.service import CartStore
from storefront.core.promos.models import PromoApplication, PromoReason, PromoStatus, normalize_code

log = logging.getLogger(__name__)

RETRY_MESSAGE = "No se pudo validar el código promocional. Inténtalo de nuevo."

REASON_MESSAGES = {
    PromoReason.LOGIN_REQUIRED: "Inicia sesión para usar este código.",
    PromoReason.PER_USER_LIMIT_REACHED: "Ya usaste este código.",
    PromoReason.MAX_USES_REACHED: "Este código alcanzó su límite de usos.",
    PromoReason.INVALID: "Código inválido.",
}


class PromoReconciler:
    """
    Mantiene el código promo aplicado coherente con el contenido del carrito y la sesión.

    Estados: idle -> validating -> applied | rejected (error si falla el transporte).
    Cada validación guarda la firma del carrito al momento de la llamada; si al
    llegar la respuesta la firma cambió (u otra validación/remove ocurrió), el
    resultado se descarta.
    """

    def __init__(
        self,
        cart: CartStore,
        api,
        storage,
        key: str = "savage_rise_promo_code",
        token_provider: Callable[[], Optional[str]] = lambda: None,
    ):
        self.cart = cart
        self.api = api
        self.storage = storage
        self.key = key
        self.token_provider = token_provider

        self.status = PromoStatus.IDLE
        self.code: Optional[str] = None
        self.result: Optional[PromoApplication] = None
        self.error: Optional[str] = None
        self.login_prompt = False

        self._validated_signature: Optional[str] = None
        self._applied_for: Optional[str] = None
        self._settled: Tuple[PromoStatus, Optional[PromoApplication], Optional[str], Optional[str]] = (
            self.status, None, None, None
        )
        self._generation = 0
        self._tasks: Set[asyncio.Task] = set()

    # --- Lectura ---
    def _holds_discount(self) -> bool:
        # Mientras se revalida o si falla el transporte se conserva el último descuento del mismo código
        return (
            self.status in (PromoStatus.APPLIED, PromoStatus.VALIDATING, PromoStatus.ERROR)
            and self.result is not None
            and self.result.valid
            and self._applied_for == self.code
        )

    @property
    def discount(self) -> float:
        return self.result.discount_value if self._holds_discount() else 0.0

    @property
    def applied_code(self) -> Optional[str]:
        return self.code if self._holds_discount() else None

    @property
    def message(self) -> Optional[str]:
        if self.status == PromoStatus.ERROR:
            return self.error
        if self.status == PromoStatus.REJECTED and self.result:
            return REASON_MESSAGES.get(self.result.reason_kind, REASON_MESSAGES[PromoReason.INVALID])
        return None

    def to_summary(self) -> dict:
        return {
            "status": self.status.value,
            "code": self.code,
            "valid": self.status == PromoStatus.APPLIED,
            "discount": self.discount,
            "reason": self.result.reason if self.result and not self.result.valid else None,
            "login_prompt": self.login_prompt,
            "message": self.message,
        }

    # --- Almacenamiento ---
    def _stored_code(self) -> Optional[str]:
        try:
            return normalize_code(self.storage.get(self.key)) or None
        except Exception as err:
            log.warning(f"No se pudo leer el código promo guardado ({err}).")
            return None

    def _store_code(self, code: str) -> None:
        try:
            self.storage.set(self.key, code)
        except Exception as err:
            log.warning(f"No se pudo guardar el código promo ({err}).")

    def _forget_code(self) -> None:
        try:
            self.storage.remove(self.key)
        except Exception as err:
            log.warning(f"No se pudo borrar el código promo guardado ({err}).")

    # --- Operaciones ---
    async def apply(self, code: str) -> Optional[PromoApplication]:
        normalized = normalize_code(code)
        if not normalized:
            return None
        return await self._validate(normalized)

    async def revalidate(self, code: Optional[str] = None) -> Optional[PromoApplication]:
        normalized = normalize_code(code) or self.code or self._stored_code()
        if not normalized:
            return None
        return await self._validate(normalized)

    async def restore(self) -> Optional[PromoApplication]:
        """Recarga el código guardado y lo revalida si el carrito tiene líneas."""
        stored = self._stored_code()
        if not stored:
            return None
        return await self._validate(stored)

    def remove(self) -> None:
        self._generation += 1
        self.status = PromoStatus.IDLE
        self.code = None
        self.result = None
        self.error = None
        self.login_prompt = False
        self._validated_signature = None
        self._applied_for = None
        self._forget_code()
        log.info("Código promo eliminado.")

    def _discard(self, code: str, generation: int) -> None:
        """Respuesta obsoleta: vuelve al último estado resuelto si nadie más tomó el control."""
        if generation != self._generation:
            return
        status, result, error, settled_code = self._settled
        if settled_code == code:
            self.status, self.result, self.error = status, result, error
        else:
            # Código nuevo sin validar: queda pendiente hasta el próximo cambio
            self.status, self.result, self.error = PromoStatus.IDLE, None, None
            self._validated_signature = None

    async def _validate(self, code: str) -> Optional[PromoApplication]:
        if self.status != PromoStatus.VALIDATING:
            self._settled = (self.status, self.result, self.error, self.code)
        self.code = code
        if self.cart.state.is_empty:
            # Sin líneas no se consulta al validador; el código queda pendiente
            log.debug(f"Carrito vacío; validación de {code} pospuesta.")
            return None

        self._generation += 1
        generation = self._generation
        signature = self.cart.signature
        self.status = PromoStatus.VALIDATING
        self.error = None

        try:
            data = await self.api.apply_promo(code, self.cart.order_items(), token=self.token_provider())
        except StorefrontError as err:
            if generation != self._generation or signature != self.cart.signature:
                log.info(f"Fallo de validación obsoleto para {code}; se ignora.")
                self._discard(code, generation)
                return None
            self.status = PromoStatus.ERROR
            if self.result is not None and not self.result.valid:
                self.result = None
            self.error = RETRY_MESSAGE
            log.warning(f"Validación de {code} falló: {err}")
            return None

        result = PromoApplication.from_response(code, data, signature=signature)
        if generation != self._generation or signature != self.cart.signature:
            result.stale = True
            log.info(f"Respuesta obsoleta para {code} (firma {signature!r}); se descarta.")
            self._discard(code, generation)
            return result

        self.result = result
        self._validated_signature = signature
        if result.valid:
            self.status = PromoStatus.APPLIED
            self.login_prompt = False
            self._applied_for = code
            self._store_code(code)
            log.info(f"Código {code} aplicado: -{result.discount_value}")
        else:
            self.status = PromoStatus.REJECTED
            self._applied_for = None
            self._forget_code()
            self.login_prompt = result.reason_kind == PromoReason.LOGIN_REQUIRED
            log.info(f"Código {code} rechazado ({result.reason}).")
        return result

    # --- Reacción a eventos ---
    async def handle_cart_change(self, state: CartState) -> Optional[PromoApplication]:
        if state.is_empty:
            if self.code or self.status != PromoStatus.IDLE:
                self.remove()
            return None
        if not self.code or state.signature == self._validated_signature:
            return None
        return await self.revalidate()

    async def handle_auth_change(self, authenticated: bool) -> Optional[PromoApplication]:
        if not authenticated:
            return None
        self.login_prompt = False
        if not (self.code or self._stored_code()):
            return None
        return await self.revalidate()

    def on_cart_changed(self, state: CartState) -> None:
        # El vaciado se aplica de inmediato; la revalidación corre en segundo plano
        if state.is_empty:
            if self.code or self.status != PromoStatus.IDLE:
                self.remove()
            return
        if self.code and state.signature != self._validated_signature:
            self._schedule(self.handle_cart_change(state))

    def on_auth_changed(self, authenticated: bool) -> None:
        self._schedule(self.handle_auth_change(authenticated))

    def _schedule(self, coro) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            log.debug("Sin event loop activo; la revalidación queda para la próxima llamada.")
            return
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def settle(self) -> None:
        """Espera las revalidaciones programadas (útil antes de leer el estado)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
