from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from storefront.client.api import ApiError, StorefrontError
from storefront.core.session import StorefrontSession
from storefront.routers.deps import get_session

router = APIRouter(prefix="/auth", tags=["Auth"])


class LoginIn(BaseModel):
    email: str
    password: str


@router.post("/{session_id}/login")
async def login(data: LoginIn, session: StorefrontSession = Depends(get_session)):
    try:
        user = await session.auth.login(data.email, data.password)
    except ApiError as err:
        raise HTTPException(status_code=401 if err.status in (400, 401) else 502, detail=err.message)
    except StorefrontError as err:
        raise HTTPException(status_code=503, detail=str(err))
    # El login dispara la revalidación del código pendiente
    await session.promo.settle()
    return {"user": user, **session.summary()}


@router.post("/{session_id}/logout")
async def logout(session: StorefrontSession = Depends(get_session)):
    session.auth.logout()
    return session.summary()
