"""Session control endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from ...controller import LiveCaptionController
from ..deps import get_controller
from ..schemas import ActivityResponse, HealthResponse, SessionResponse, StartRequest

router = APIRouter(tags=["session"])


@router.get("/healthz", response_model=HealthResponse)
async def healthz(controller: LiveCaptionController = Depends(get_controller)):
    return HealthResponse(
        ok=True,
        version=controller.settings.version,
        state=controller.snapshot()["state"],
        provider=controller.settings.provider,
    )


@router.get("/v1/session", response_model=SessionResponse)
async def get_session(controller: LiveCaptionController = Depends(get_controller)):
    return SessionResponse(**controller.snapshot())


@router.post("/v1/session/start", response_model=SessionResponse)
async def start_session(
    payload: StartRequest | None = None,
    controller: LiveCaptionController = Depends(get_controller),
):
    payload = payload or StartRequest()
    controller.start(
        payload.mode,
        speaker_id=payload.speaker_id,
        language=payload.language,
        target_language=payload.target_language,
        chunk_seconds=payload.chunk_seconds,
    )
    return SessionResponse(**controller.snapshot())


@router.post("/v1/session/pause", response_model=SessionResponse)
async def pause_session(controller: LiveCaptionController = Depends(get_controller)):
    controller.pause()
    return SessionResponse(**controller.snapshot())


@router.post("/v1/session/resume", response_model=SessionResponse)
async def resume_session(controller: LiveCaptionController = Depends(get_controller)):
    controller.resume()
    return SessionResponse(**controller.snapshot())


@router.post("/v1/session/stop", response_model=SessionResponse)
async def stop_session(controller: LiveCaptionController = Depends(get_controller)):
    await controller.stop()
    return SessionResponse(**controller.snapshot())


@router.get("/v1/activity", response_model=ActivityResponse)
async def activity(controller: LiveCaptionController = Depends(get_controller)):
    return ActivityResponse(lines=controller.logger.get())
