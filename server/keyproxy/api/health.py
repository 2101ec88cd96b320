from datetime import datetime, timezone
from typing import Dict

from fastapi import APIRouter

router = APIRouter()


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@router.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok", "timestamp": utcnow_iso()}
