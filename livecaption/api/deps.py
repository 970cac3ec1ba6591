"""Request dependencies."""

from __future__ import annotations

from fastapi import Request

from ..controller import LiveCaptionController


def get_controller(request: Request) -> LiveCaptionController:
    return request.app.state.controller
