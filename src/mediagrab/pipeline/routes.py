"""API routes for the parser control surface."""

from __future__ import annotations

import uuid
from typing import Any

from fastapi import APIRouter, HTTPException, Request

from mediagrab.pipeline.control import ParserController
from mediagrab.shared.exceptions import MediagrabError

router = APIRouter()


def _parse_uuid(media_id: str) -> uuid.UUID:
    try:
        return uuid.UUID(media_id)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="invalid media_id: must be UUID") from exc


def _get_controller(request: Request) -> ParserController:
    controller = getattr(request.app.state, "controller", None)
    if controller is None:
        raise HTTPException(status_code=503, detail="parser unavailable")
    return controller


@router.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint.

    Returns:
        Status dictionary
    """
    return {"status": "ok"}


@router.get("/parser/status")
async def parser_status(request: Request) -> dict[str, Any]:
    """Persisted run status, live running flag and recent run history."""
    return await _get_controller(request).status()


@router.post("/parser/start", status_code=202)
async def start_parser(request: Request) -> dict[str, str]:
    if not _get_controller(request).start():
        raise HTTPException(status_code=409, detail="parser is already running")
    return {"status": "started"}


@router.post("/parser/stop")
async def stop_parser(request: Request) -> dict[str, str]:
    if not _get_controller(request).stop():
        raise HTTPException(status_code=409, detail="parser is not running")
    return {"status": "stopping"}


@router.post("/parser/process/{media_id}")
async def process_media(media_id: str, request: Request) -> dict[str, str]:
    """Run the acquisition state machine for a single title."""
    parsed_media_id = _parse_uuid(media_id)
    controller = _get_controller(request)
    try:
        result = await controller.process_one(parsed_media_id)
    except RuntimeError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except MediagrabError as exc:
        raise HTTPException(status_code=502, detail=str(exc)[:200]) from exc
    if result is None:
        raise HTTPException(status_code=404, detail="media not found")
    return {"media_id": media_id, "status": result.value}
