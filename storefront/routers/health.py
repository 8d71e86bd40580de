from fastapi import APIRouter, Request

from storefront.client.api import StorefrontError

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health(request: Request):
    try:
        await request.app.state.api.check_health()
        remote = "online"
    except StorefrontError:
        remote = "offline"
    return {"status": "ok", "api": remote}
