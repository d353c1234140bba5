from __future__ import annotations

import os
from fastapi import APIRouter
from ..config import get_settings


router = APIRouter()


@router.get("/health")
def health():
    s = get_settings()
    return {
        "status": "ok",
        "service": s.app_name,
        "env": s.environment,
        "pid": os.getpid(),
        "krogerConfigured": bool(s.kroger_client_id and s.kroger_client_secret),
        "syncAuthConfigured": bool(s.sync_api_secret),
    }
