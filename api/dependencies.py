"""
FastAPI dependencies (shared across routes).
"""

from __future__ import annotations

from fastapi import Request

from core.services import Services


def get_services(request: Request) -> Services:
    """The ``Services`` container built by ``main.create_app``."""
    return request.app.state.services
