import json
from time import time
from typing import Callable, List, Optional
import logging

from storefront.core.carts.models import CartLine, CartState, ProductSnapshot, Variant
from storefront.core.carts.reducer import AddLine, ClearCart, LoadCart, RemoveLine, UpdateQuantity, reduce

log = logging.getLogger(__name__)

CartListener = Callable[[CartState], None]


def _as_product(product) -> ProductSnapshot:
    if isinstance(product, ProductSnapshot):
        return product
    return ProductSnapshot.from_dict(product)


def _as_variant(variant) -> Variant:
    if isinstance(variant, Variant):
        return variant
    return Variant.from_dict(variant)


class CartStore:
    """Carrito local persistente: mutaciones atómicas, totales derivados y notificación a suscriptores.

    Ninguna operación lanza excepciones al llamador: las entradas inválidas se
    ignoran (con log) y los fallos de almacenamiento degradan a carrito en memoria.
    """

    def __init__(self, storage, key: str = "savage-rise-cart"):
        self.storage = storage
        self.key = key
        self.state = CartState()
        self.degraded = False
        self.last_action: Optional[dict] = None
        self._listeners: List[CartListener] = []

    # --- Lectura ---
    @property
    def lines(self):
        return self.state.lines

    @property
    def subtotal(self) -> float:
        return self.state.subtotal

    @property
    def item_count(self) -> int:
        return self.state.item_count

    @property
    def signature(self) -> str:
        return self.state.signature

    def order_items(self) -> List[dict]:
        return self.state.order_items()

    def to_summary(self) -> dict:
        summary = self.state.to_summary()
        summary["last_action"] = self.last_action
        summary["degraded"] = self.degraded
        return summary

    # --- Suscripciones ---
    def subscribe(self, listener: CartListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self.state)
            except Exception as err:
                log.error(f"Suscriptor del carrito falló: {err}")

    # --- Persistencia ---
    def _persist(self) -> None:
        if self.degraded:
            return
        try:
            self.storage.set(self.key, json.dumps(self.state.to_summary()))
        except Exception as err:
            self.degraded = True
            log.warning(f"No se pudo guardar el carrito ({err}). Se sigue en memoria para esta sesión.")

    def _dispatch(self, action, last_action: dict) -> dict:
        new_state = reduce(self.state, action)
        if new_state is self.state:
            return self.to_summary()
        self.state = new_state
        self.last_action = {**last_action, "timestamp": time()}
        self._persist()
        self._notify()
        return self.to_summary()

    # --- Mutaciones ---
    def add_line(self, product, variant, size: str, quantity: int = 1) -> dict:
        if not product or not variant or not size:
            log.warning("Producto, variante o talla faltante; no se agrega nada al carrito.")
            return self.to_summary()
        try:
            snapshot = _as_product(product)
            selected = _as_variant(variant)
            if not selected.offers(size):
                raise ValueError(f"La talla {size} no existe para el color {selected.color}")
            line = CartLine(product=snapshot, variant=selected, size=size, quantity=quantity)
        except (ValueError, TypeError, OverflowError) as err:
            log.warning(f"Línea de carrito rechazada: {err}")
            return self.to_summary()

        summary = self._dispatch(
            AddLine(line),
            {"action": "add", "product_id": snapshot.id, "name": snapshot.name,
             "color": selected.color, "size": size, "qty": quantity},
        )
        log.info(f"Producto {snapshot.id} ({selected.color}/{size}) x{quantity} agregado al carrito.")
        return summary

    def remove_line(self, product_id: str, color: str, size: str) -> dict:
        key = (product_id, color, size)
        line = self.state.find(key)
        if line is None:
            log.debug(f"Línea {key} no está en el carrito; nada que quitar.")
            return self.to_summary()
        return self._dispatch(
            RemoveLine(key),
            {"action": "remove", "product_id": product_id, "name": line.product.name,
             "color": color, "size": size, "qty": line.quantity},
        )

    def update_quantity(self, product_id: str, color: str, size: str, new_quantity: int) -> dict:
        try:
            new_quantity = int(new_quantity)
        except (TypeError, ValueError, OverflowError):
            log.warning(f"Cantidad inválida: {new_quantity!r}")
            return self.to_summary()
        if new_quantity <= 0:
            return self.remove_line(product_id, color, size)
        return self._dispatch(
            UpdateQuantity((product_id, color, size), new_quantity),
            {"action": "update", "product_id": product_id, "color": color, "size": size, "qty": new_quantity},
        )

    def clear(self) -> dict:
        return self._dispatch(ClearCart(), {"action": "clear", "qty": 0})

    def hydrate(self) -> dict:
        """Carga el carrito guardado descartando entradas mal formadas una por una."""
        try:
            raw = self.storage.get(self.key)
        except Exception as err:
            self.degraded = True
            log.warning(f"No se pudo leer el carrito guardado ({err}). Carrito en memoria.")
            return self.to_summary()
        if not raw:
            return self.to_summary()

        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as err:
            log.warning(f"Carrito guardado corrupto ({err}); se descarta.")
            return self.to_summary()

        entries = data.get("items") if isinstance(data, dict) else None
        if not isinstance(entries, list):
            log.warning("Carrito guardado sin lista de items; se descarta.")
            return self.to_summary()

        lines = []
        for idx, entry in enumerate(entries):
            try:
                lines.append(CartLine.from_dict(entry))
            except (ValueError, TypeError, OverflowError) as err:
                log.warning(f"Entrada {idx} del carrito descartada: {err}")

        # No se persiste ni se notifica: la carga no es una mutación del usuario
        self.state = reduce(CartState(), LoadCart(tuple(lines)))
        log.info(f"Carrito hidratado con {len(self.state.lines)} línea(s).")
        return self.to_summary()
