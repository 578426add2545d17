"""Health check and settings endpoints."""

from fastapi import APIRouter, Depends

from soup_sleuth.storage import Storage

from .deps import get_storage
from .models import UpdateSettings

router = APIRouter()


def _redact(config: dict) -> dict:
    judge = dict(config["judge"])
    if judge.get("api_key"):
        judge["api_key"] = "********"
    return {**config, "judge": judge}


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.get("/settings")
async def get_settings(storage: Storage = Depends(get_storage)):
    """Get app settings (judge connection, default puzzle). The API key is redacted."""
    return _redact(storage.get_config())


@router.patch("/settings")
async def update_settings(body: UpdateSettings, storage: Storage = Depends(get_storage)):
    """Update app settings (partial merge)."""
    fields = body.model_dump(exclude_none=True)
    return _redact(storage.update_config(fields))
