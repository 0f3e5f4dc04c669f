"""
Print snapshots: the wizard freezes a resume payload so the print view can render it
without re-reading the store. Snapshots live in process memory only.
"""

import json
import uuid

from fastapi import APIRouter, HTTPException, Request, Response

from .schemas import PrintRequest
from ..core.config import PRINT_SNAPSHOT_MAX_AGE, cookie_secure
from ..core.memory_store import get_memory_store, utc_now_iso

router = APIRouter(prefix="/api/prints")


@router.post("")
async def create_print(payload: PrintRequest, request: Request, response: Response):
    print_id = str(uuid.uuid4())
    snapshot = {
        "id": print_id,
        "resumeId": payload.resumeId,
        "template": payload.template,
        "createdAt": utc_now_iso(),
        "payload": await request.json(),
    }
    get_memory_store().save_print(snapshot)

    response.set_cookie(
        key=f"print_snapshot_{print_id}",
        value=json.dumps(snapshot, separators=(",", ":")),
        max_age=PRINT_SNAPSHOT_MAX_AGE,
        path="/",
        httponly=True,
        samesite="lax",
        secure=cookie_secure(),
    )
    return {"ok": True, "id": print_id}


@router.get("/{print_id}")
def get_print(print_id: str):
    snapshot = get_memory_store().get_print(print_id)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="Not found")
    return {"ok": True, "snapshot": snapshot}
