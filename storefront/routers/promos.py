from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from storefront.core.promos.models import PromoStatus
from storefront.core.session import StorefrontSession
from storefront.routers.deps import get_session

router = APIRouter(prefix="/cart", tags=["Promo codes"])


class PromoIn(BaseModel):
    code: str


@router.post("/{session_id}/promo")
async def apply_promo(data: PromoIn, session: StorefrontSession = Depends(get_session)):
    if not data.code.strip():
        raise HTTPException(status_code=400, detail="Debes enviar un código.")
    await session.promo.apply(data.code)
    # Un transporte caído no es un rechazo: se informa como reintentable
    if session.promo.status == PromoStatus.ERROR:
        raise HTTPException(status_code=503, detail=session.promo.error)
    return session.summary()


@router.delete("/{session_id}/promo")
async def remove_promo(session: StorefrontSession = Depends(get_session)):
    session.promo.remove()
    return session.summary()
