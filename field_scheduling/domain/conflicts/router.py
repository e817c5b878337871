"""Conflict router - FastAPI endpoints for conflict checks and overrides"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_elevated_user
from ...database import get_db
from ...models import User
from ...schemas import ActionResult, ok
from .schemas import ConflictCheckRequest, ConflictOverrideRequest, ConflictResponse
from .service import ConflictService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/conflicts", tags=["Conflicts"])


def get_conflict_service(db: Session = Depends(get_db)) -> ConflictService:
    """Dependency injection for ConflictService"""
    return ConflictService(db)


@router.post("/check", response_model=ActionResult)
async def check_conflicts(
    data: ConflictCheckRequest,
    current_user: User = Depends(get_current_user),
    service: ConflictService = Depends(get_conflict_service),
):
    """Days on which the engineer is already booked inside the range"""
    entries = service.check_conflicts(
        data.engineer_id, data.start_date, data.end_date, data.exclude_assignment_id
    )
    return ok(entries)


@router.get("", response_model=ActionResult)
async def get_unresolved_conflicts(
    engineer_id: Optional[int] = Query(None),
    current_user: User = Depends(get_current_user),
    service: ConflictService = Depends(get_conflict_service),
):
    """Unresolved conflicts, globally or for one engineer"""
    return ok(service.get_unresolved_conflicts(engineer_id))


@router.post("/{conflict_id}/override", response_model=ActionResult)
async def override_conflict(
    conflict_id: int,
    data: ConflictOverrideRequest,
    current_user: User = Depends(require_elevated_user),
    service: ConflictService = Depends(get_conflict_service),
):
    conflict = service.override_conflict(conflict_id, data.reason, current_user)
    return ok(ConflictResponse.model_validate(conflict))
