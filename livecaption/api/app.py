"""FastAPI application exposing the live caption controller."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..controller import LiveCaptionController
from ..errors import (
    CaptureError,
    DeviceBusy,
    DeviceUnavailable,
    InvalidTransition,
    PermissionDenied,
    SpeakerRequired,
    UnknownSpeaker,
)
from ..services.metrics import instrument_app, router as metrics_router
from .routers import session, speakers, transcript

_CAPTURE_STATUS = (
    (PermissionDenied, 403),
    (DeviceBusy, 409),
    (DeviceUnavailable, 503),
)


def _error(status_code: int, kind: str, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": kind, "detail": str(exc)})


def create_app(controller: LiveCaptionController | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await app.state.controller.close()

    controller = controller or LiveCaptionController()
    app = FastAPI(title=controller.settings.app_name, version=controller.settings.version, lifespan=lifespan)
    app.state.controller = controller

    @app.exception_handler(CaptureError)
    async def capture_error_handler(request: Request, exc: CaptureError):
        for kind, status_code in _CAPTURE_STATUS:
            if isinstance(exc, kind):
                return _error(status_code, kind.__name__, exc)
        return _error(503, type(exc).__name__, exc)

    @app.exception_handler(InvalidTransition)
    async def transition_handler(request: Request, exc: InvalidTransition):
        return _error(409, "InvalidTransition", exc)

    @app.exception_handler(UnknownSpeaker)
    async def unknown_speaker_handler(request: Request, exc: UnknownSpeaker):
        return _error(404, "UnknownSpeaker", exc)

    @app.exception_handler(SpeakerRequired)
    async def speaker_required_handler(request: Request, exc: SpeakerRequired):
        return _error(400, "SpeakerRequired", exc)

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return _error(422, "InvalidValue", exc)

    instrument_app(app)
    app.include_router(session.router)
    app.include_router(speakers.router)
    app.include_router(transcript.router)
    app.include_router(metrics_router)
    return app


__all__ = ["create_app"]
