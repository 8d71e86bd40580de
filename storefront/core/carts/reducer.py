"""
Transiciones puras del carrito: reduce(estado, acción) -> nuevo estado.

Ninguna función de este módulo toca almacenamiento ni red; CartStore
(service.py) se encarga de persistir y notificar.
"""
from dataclasses import dataclass, replace
from typing import Callable, Dict, Tuple

from storefront.core.carts.models import CartLine, CartState, LineKey


@dataclass(frozen=True)
class AddLine:
    line: CartLine


@dataclass(frozen=True)
class RemoveLine:
    key: LineKey


@dataclass(frozen=True)
class UpdateQuantity:
    key: LineKey
    quantity: int


@dataclass(frozen=True)
class ClearCart:
    pass


@dataclass(frozen=True)
class LoadCart:
    lines: Tuple[CartLine, ...]


def _add(state: CartState, action: AddLine) -> CartState:
    new = action.line
    if state.find(new.key) is None:
        return CartState(lines=state.lines + (new,))
    # Misma clave (producto, color, talla): se suma la cantidad, nunca se duplica la línea
    return CartState(
        lines=tuple(
            replace(line, quantity=line.quantity + new.quantity) if line.key == new.key else line
            for line in state.lines
        )
    )


def _remove(state: CartState, action: RemoveLine) -> CartState:
    if state.find(action.key) is None:
        return state
    return CartState(lines=tuple(line for line in state.lines if line.key != action.key))


def _update(state: CartState, action: UpdateQuantity) -> CartState:
    if action.quantity <= 0:
        return _remove(state, RemoveLine(action.key))
    current = state.find(action.key)
    if current is None or current.quantity == action.quantity:
        return state
    return CartState(
        lines=tuple(
            replace(line, quantity=action.quantity) if line.key == action.key else line
            for line in state.lines
        )
    )


def _clear(state: CartState, action: ClearCart) -> CartState:
    return state if state.is_empty else CartState()


def _load(state: CartState, action: LoadCart) -> CartState:
    loaded = CartState()
    for line in action.lines:
        loaded = _add(loaded, AddLine(line))
    return loaded


TRANSITIONS: Dict[type, Callable[[CartState, object], CartState]] = {
    AddLine: _add,
    RemoveLine: _remove,
    UpdateQuantity: _update,
    ClearCart: _clear,
    LoadCart: _load,
}


def reduce(state: CartState, action) -> CartState:
    handler = TRANSITIONS.get(type(action))
    if handler is None:
        return state
    return handler(state, action)
