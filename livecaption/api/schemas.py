"""Pydantic schemas for API contracts."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from ..session import RecordingMode


class StartRequest(BaseModel):
    mode: RecordingMode = RecordingMode.CAPTIONS
    speaker_id: Optional[str] = None
    language: Optional[str] = None
    target_language: Optional[str] = None
    chunk_seconds: Optional[float] = Field(default=None, gt=0)


class SpeakerPayload(BaseModel):
    id: str
    label: str
    color: str
    created_at: str


class SpeakerCreate(BaseModel):
    label: Optional[str] = None


class SpeakerRename(BaseModel):
    label: str


class SpeakerList(BaseModel):
    active_id: Optional[str] = None
    speakers: List[SpeakerPayload]


class SessionResponse(BaseModel):
    state: str
    status: str
    mode: Optional[str] = None
    language: Optional[str] = None
    target_language: Optional[str] = None
    started_at: Optional[str] = None
    duration: float = 0.0
    chunks: int = 0
    pending_jobs: int = 0
    segments: int = 0
    active_speaker: Optional[SpeakerPayload] = None


class SegmentPayload(BaseModel):
    id: str
    sequence: int
    speaker_id: Optional[str] = None
    speaker_label: str
    speaker_color: Optional[str] = None
    text: str
    language: str
    translated_text: Optional[str] = None
    target_language: Optional[str] = None
    translation_status: str
    timestamp: str
    ended_at: str


class TranscriptResponse(BaseModel):
    count: int
    segments: List[SegmentPayload]


class CaptionPayload(BaseModel):
    id: str
    sequence: int
    speaker_label: str
    text: str
    translated_text: Optional[str] = None
    opacity: float


class CaptionsResponse(BaseModel):
    count: int
    captions: List[CaptionPayload]


class ActivityResponse(BaseModel):
    lines: List[str]


class HealthResponse(BaseModel):
    ok: bool
    version: str
    state: str
    provider: str
