# storefront/routers/cart.py
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from storefront.core.session import StorefrontSession
from storefront.routers.deps import get_session

router = APIRouter(prefix="/cart", tags=["Cart"])


class LineIn(BaseModel):
    product: dict
    variant: dict
    size: str
    quantity: int = 1


class LineKeyIn(BaseModel):
    product_id: str
    color: str
    size: str


class QuantityIn(LineKeyIn):
    quantity: int


async def _summary(session: StorefrontSession) -> dict:
    await session.promo.settle()
    return session.summary()


@router.get("/{session_id}")
async def show_cart(session: StorefrontSession = Depends(get_session)):
    return session.summary()


@router.post("/{session_id}/lines")
async def add_line(data: LineIn, session: StorefrontSession = Depends(get_session)):
    before = session.cart.signature
    session.cart.add_line(data.product, data.variant, data.size, data.quantity)
    if session.cart.signature == before:
        raise HTTPException(status_code=400, detail="Producto, variante o talla inválidos.")
    return await _summary(session)


@router.patch("/{session_id}/lines")
async def update_line(data: QuantityIn, session: StorefrontSession = Depends(get_session)):
    session.cart.update_quantity(data.product_id, data.color, data.size, data.quantity)
    return await _summary(session)


@router.delete("/{session_id}/lines")
async def remove_line(data: LineKeyIn, session: StorefrontSession = Depends(get_session)):
    session.cart.remove_line(data.product_id, data.color, data.size)
    return await _summary(session)


@router.delete("/{session_id}")
async def clear_cart(session: StorefrontSession = Depends(get_session)):
    session.cart.clear()
    return await _summary(session)


@router.get("/{session_id}/totals")
async def totals(session: StorefrontSession = Depends(get_session)):
    return session.totals().to_dict()
