"""FastAPI dependencies."""

from __future__ import annotations

from fastapi import Request

from ..container import OfflineServices


def get_services(request: Request) -> OfflineServices:
    return request.app.state.services
