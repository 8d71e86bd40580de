from fastapi import Request

from storefront.core.session import StorefrontSession


async def get_session(session_id: str, request: Request) -> StorefrontSession:
    """Resuelve la sesión del path y espera las revalidaciones pendientes."""
    session = await request.app.state.registry.get(session_id)
    await session.promo.settle()
    return session
