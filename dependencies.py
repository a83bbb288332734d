"""
FastAPI dependency providers.

All injectable dependencies are defined here as plain functions used with
FastAPI's Depends() system. Everything they hand out is built once in the
app lifespan and parked on app.state.
"""

from __future__ import annotations

from fastapi import Request

from config import AppSettings
from services.recovery_workflow import RecoveryWorkflow
from shared.ip_utils import get_client_ip


def get_settings(request: Request) -> AppSettings:
    """Return the AppSettings instance stored on app.state."""
    return request.app.state.settings


def get_workflow(request: Request) -> RecoveryWorkflow:
    return request.app.state.workflow


def get_actor(request: Request) -> str:
    """Throttle actor for code verification: the caller's IP address."""
    settings: AppSettings = request.app.state.settings
    return get_client_ip(request, trust_proxy_headers=settings.trust_proxy_headers)
