"""
FastAPI dependency providers for host applications.

The host builds the service once at startup (build_verification_service)
and stores it on app.state.
"""

from __future__ import annotations

from fastapi import Request

from config import AppSettings
from services.verification_service import VerificationService


def get_settings(request: Request) -> AppSettings:
    """Return the AppSettings instance stored on app.state."""
    return request.app.state.settings


def get_verification_service(request: Request) -> VerificationService:
    """Return the VerificationService stored on app.state."""
    return request.app.state.verification_service
