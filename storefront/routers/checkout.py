from fastapi import APIRouter, Depends, HTTPException

from storefront.core.checkout import CheckoutError, ShippingInfo
from storefront.core.session import StorefrontSession
from storefront.routers.deps import get_session

router = APIRouter(prefix="/checkout", tags=["Checkout"])


def _status_for(err: CheckoutError) -> int:
    if err.login_required:
        return 401
    if err.verification_required:
        return 403
    if err.retryable:
        return 503
    return 400


@router.get("/{session_id}/shipping")
async def shipping_prefill(session: StorefrontSession = Depends(get_session)):
    return session.checkout.prefill_shipping().model_dump()


@router.post("/{session_id}")
async def place_order(shipping: ShippingInfo, session: StorefrontSession = Depends(get_session)):
    """
    Crea el pedido en la API remota con las líneas del carrito y el código aplicado.
    Si sale bien, el carrito y el código quedan vacíos.
    """
    totals = session.totals().to_dict()
    try:
        order = await session.checkout.place_order(shipping)
    except CheckoutError as err:
        raise HTTPException(
            status_code=_status_for(err),
            detail={"message": err.message, "missing_fields": err.missing_fields},
        )
    return {"message": "Pedido creado correctamente", "order": order, "estimated_totals": totals}
