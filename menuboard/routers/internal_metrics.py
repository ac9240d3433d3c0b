from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status

from menuboard.core.metrics import request_metrics
from menuboard.deps import get_optional_owner
from menuboard.models.user import User

router = APIRouter(prefix="/internal/metrics", tags=["internal-metrics"])


def _require_owner(owner: Optional[User] = Depends(get_optional_owner)) -> User:
    if owner is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return owner


@router.get("")
def endpoint_metrics(_owner: User = Depends(_require_owner)):
    return {"endpoints": request_metrics.snapshot()}


@router.get("/shops")
def shop_metrics(_owner: User = Depends(_require_owner)):
    return {"shops": request_metrics.snapshot_per_shop()}
