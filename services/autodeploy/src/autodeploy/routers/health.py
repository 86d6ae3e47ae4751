"""Health and configuration endpoints."""

from fastapi import APIRouter, Depends

from ..container import Container
from ..dependencies import get_container
from ..schemas import ProvidersRead

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


@router.get("/api/config/providers", response_model=ProvidersRead)
async def providers(container: Container = Depends(get_container)) -> ProvidersRead:
    """Which deploy providers and AI service have credentials configured."""
    settings = container.settings
    order = []
    if settings.vercel_token:
        order.append("vercel")
    else:
        if settings.render_api_token:
            order.append("render")
        order.append("local")
    return ProvidersRead(
        vercel=bool(settings.vercel_token),
        render=bool(settings.render_api_token),
        railway=bool(settings.railway_token),
        llm=settings.llm_configured,
        deploy_order=order,
    )
