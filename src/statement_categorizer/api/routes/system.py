import asyncio
from typing import Any

from fastapi import APIRouter, HTTPException, Request

from statement_categorizer.core import configuration

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, bool]:
    return {"ok": True}


@router.get("/config")
async def get_config() -> dict[str, Any]:
    return await asyncio.to_thread(configuration.build_config_context)


@router.post("/config")
async def save_config(request: Request, payload: dict[str, str]) -> dict[str, Any]:
    errors, updates = await asyncio.to_thread(configuration.apply_config_updates, payload)
    if errors:
        raise HTTPException(status_code=400, detail=errors)
    configuration.apply_runtime_updates(request.app, updates)
    return {"status": "saved", "updated": sorted(updates)}
