"""Health check and settings endpoints."""

from fastapi import APIRouter, Request

from storyweave.config import get_config, public_config, update_config

from .models import UpdateSettings

router = APIRouter()


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.get("/settings")
async def get_settings(request: Request):
    """Get generation settings (API key masked)."""
    return public_config(get_config(request.app.state.data_dir))


@router.patch("/settings")
async def update_settings(request: Request, body: UpdateSettings):
    """Update generation settings (partial merge)."""
    fields = body.model_dump(exclude_none=True)
    return public_config(update_config(request.app.state.data_dir, fields))
