"""Transcript, export and caption endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import PlainTextResponse

from ...controller import LiveCaptionController
from ..deps import get_controller
from ..schemas import CaptionPayload, CaptionsResponse, SegmentPayload, TranscriptResponse

router = APIRouter(prefix="/v1", tags=["transcript"])

_MEDIA_TYPES = {"text": "text/plain", "srt": "application/x-subrip"}


@router.get("/transcript", response_model=TranscriptResponse)
async def get_transcript(controller: LiveCaptionController = Depends(get_controller)):
    segments = controller.transcript.segments
    return TranscriptResponse(
        count=len(segments),
        segments=[SegmentPayload(**segment.to_dict()) for segment in segments],
    )


@router.get("/transcript/export")
async def export_transcript(
    format: str = Query("text", pattern="^(text|srt)$"),
    controller: LiveCaptionController = Depends(get_controller),
):
    body = controller.export_transcript(format)
    filename = "transcript.srt" if format == "srt" else "transcript.txt"
    return PlainTextResponse(
        body,
        media_type=_MEDIA_TYPES[format],
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.delete("/transcript", response_model=TranscriptResponse)
async def clear_transcript(controller: LiveCaptionController = Depends(get_controller)):
    controller.clear_transcript()
    return TranscriptResponse(count=0, segments=[])


@router.get("/captions", response_model=CaptionsResponse)
async def captions(controller: LiveCaptionController = Depends(get_controller)):
    lines = controller.captions()
    return CaptionsResponse(
        count=len(lines),
        captions=[CaptionPayload(**line.to_dict()) for line in lines],
    )
