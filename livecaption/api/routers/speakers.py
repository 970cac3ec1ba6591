"""Speaker registry endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ...controller import LiveCaptionController
from ..deps import get_controller
from ..schemas import SpeakerCreate, SpeakerList, SpeakerPayload, SpeakerRename

router = APIRouter(prefix="/v1/speakers", tags=["speakers"])


def _listing(controller: LiveCaptionController) -> SpeakerList:
    active = controller.registry.active
    return SpeakerList(
        active_id=active.id if active else None,
        speakers=[SpeakerPayload(**speaker.to_dict()) for speaker in controller.registry.speakers],
    )


@router.get("", response_model=SpeakerList)
async def list_speakers(controller: LiveCaptionController = Depends(get_controller)):
    return _listing(controller)


@router.post("", response_model=SpeakerPayload, status_code=status.HTTP_201_CREATED)
async def add_speaker(
    payload: SpeakerCreate | None = None,
    controller: LiveCaptionController = Depends(get_controller),
):
    speaker = controller.add_speaker(payload.label if payload else None)
    return SpeakerPayload(**speaker.to_dict())


@router.post("/next", response_model=SpeakerList)
async def next_speaker(controller: LiveCaptionController = Depends(get_controller)):
    controller.next_speaker()
    return _listing(controller)


@router.patch("/{speaker_id}", response_model=SpeakerPayload)
async def rename_speaker(
    speaker_id: str,
    payload: SpeakerRename,
    controller: LiveCaptionController = Depends(get_controller),
):
    speaker = controller.rename_speaker(speaker_id, payload.label)
    return SpeakerPayload(**speaker.to_dict())


@router.post("/{speaker_id}/activate", response_model=SpeakerList)
async def activate_speaker(speaker_id: str, controller: LiveCaptionController = Depends(get_controller)):
    controller.switch_speaker(speaker_id)
    return _listing(controller)
