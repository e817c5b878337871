"""Confirmation router - Operator endpoints and the public token surface"""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ...auth import require_elevated_user
from ...database import get_db
from ...email_service import get_notifier
from ...models import User
from ...rate_limiter import get_client_ip, get_rate_limit_store
from ...schemas import ActionResult, ok
from .schemas import ConfirmationCreate, ConfirmationResponseRequest
from .service import ConfirmationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/confirmations", tags=["Confirmations"])
public_router = APIRouter(prefix="/public/confirm", tags=["Public Confirmations"])


def get_confirmation_service(
    db: Session = Depends(get_db),
    notifier=Depends(get_notifier),
    rate_limiter=Depends(get_rate_limit_store),
) -> ConfirmationService:
    """Dependency injection for ConfirmationService"""
    return ConfirmationService(db, notifier, rate_limiter)


# ============================================================================
# OPERATOR ENDPOINTS
# ============================================================================


@router.post("", response_model=ActionResult)
async def create_confirmation_request(
    data: ConfirmationCreate,
    current_user: User = Depends(require_elevated_user),
    service: ConfirmationService = Depends(get_confirmation_service),
):
    """Send tentative assignments to the customer for confirmation"""
    return ok(await service.create_confirmation_request(data, current_user))


@router.get("/pending", response_model=ActionResult)
async def list_pending_confirmations(
    current_user: User = Depends(require_elevated_user),
    service: ConfirmationService = Depends(get_confirmation_service),
):
    return ok(service.list_pending_confirmations())


@router.post("/expire", response_model=ActionResult)
async def expire_pending_confirmation_requests(
    current_user: User = Depends(require_elevated_user),
    service: ConfirmationService = Depends(get_confirmation_service),
):
    return ok(service.expire_pending_confirmation_requests())


@router.post("/{request_id}/resend", response_model=ActionResult)
async def resend_confirmation_email(
    request_id: int,
    current_user: User = Depends(require_elevated_user),
    service: ConfirmationService = Depends(get_confirmation_service),
):
    return ok(await service.resend_confirmation_email(request_id, current_user))


@router.delete("/{request_id}", response_model=ActionResult)
async def cancel_confirmation_request(
    request_id: int,
    current_user: User = Depends(require_elevated_user),
    service: ConfirmationService = Depends(get_confirmation_service),
):
    return ok(service.cancel_confirmation_request(request_id, current_user))


# ============================================================================
# PUBLIC ENDPOINTS (token only, rate limited)
# ============================================================================


@public_router.get("/{token}", response_model=ActionResult)
async def get_confirmation(
    token: str,
    request: Request,
    service: ConfirmationService = Depends(get_confirmation_service),
):
    return ok(service.get_confirmation_by_token(token, get_client_ip(request)))


@public_router.post("/{token}", response_model=ActionResult)
async def respond_to_confirmation(
    token: str,
    data: ConfirmationResponseRequest,
    request: Request,
    service: ConfirmationService = Depends(get_confirmation_service),
):
    """Customer confirms or declines the proposed schedule"""
    return ok(
        await service.handle_confirmation_response(
            token, data.action, data.decline_reason, get_client_ip(request)
        )
    )
