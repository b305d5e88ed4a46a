import logging
import secrets
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, Request, Response
from fastapi.responses import JSONResponse

from cartcommit.dependencies import (
    SESSION_COOKIE,
    get_checkout_client,
    get_current_user_id,
    get_orchestrator,
    get_security_manager,
    require_csrf,
)
from cartcommit.domain.cart.models import CartOutcome
from cartcommit.domain.cart.orchestrator import CartCommitOrchestrator
from cartcommit.domain.interfaces import CheckoutClient
from cartcommit.domain.security.manager import SecurityManager
from cartcommit.settings import settings

router = APIRouter()
logger = logging.getLogger(__name__)

OUTCOME_STATUS_CODES = {
    "VALIDATION_ERROR": 400,
    "DESIGN_NOT_FOUND": 404,
    "REQUEST_NOT_FOUND": 404,
    "PRICE_MISMATCH": 409,
    "ALREADY_IN_CART": 409,
    "MISSING_ORIGINAL_DATA": 409,
    "INTEGRITY_ERROR": 409,
    "INTERNAL_ERROR": 500,
}


def outcome_status_code(outcome: CartOutcome) -> int:
    if outcome.success:
        return 200
    if outcome.fallback:
        return 503
    return OUTCOME_STATUS_CODES.get(outcome.error_code, 500)


def outcome_response(outcome: CartOutcome) -> JSONResponse:
    return JSONResponse(status_code=outcome_status_code(outcome), content=outcome.to_response())


@router.post("/cart/add", dependencies=[Depends(require_csrf)])
async def add_to_cart(
    payload: Dict[str, Any] = Body(...),
    user_id: str = Depends(get_current_user_id),
    orchestrator: CartCommitOrchestrator = Depends(get_orchestrator),
):
    """Commit a priced design to the external shopping mall cart."""
    outcome = await orchestrator.add_to_cart(payload, user_id)
    return outcome_response(outcome)


@router.post("/cart/retry/{audit_id}", dependencies=[Depends(require_csrf)])
async def retry_cart(
    audit_id: str,
    user_id: str = Depends(get_current_user_id),
    orchestrator: CartCommitOrchestrator = Depends(get_orchestrator),
):
    """Replay the stored outbound request of a failed commit."""
    outcome = await orchestrator.retry_verbatim(audit_id, user_id)
    return outcome_response(outcome)


@router.get("/csrf")
async def issue_csrf_token(
    request: Request,
    response: Response,
    security: SecurityManager = Depends(get_security_manager),
):
    session_id = request.cookies.get(SESSION_COOKIE)
    if not session_id:
        session_id = secrets.token_urlsafe(32)
        response.set_cookie(
            SESSION_COOKIE,
            session_id,
            httponly=True,
            samesite="strict",
            secure=settings.is_production,
        )
    return {"csrfToken": security.issue_csrf_token(session_id)}


@router.get("/status")
async def service_status(checkout: CheckoutClient = Depends(get_checkout_client)):
    external_ok = await checkout.health_check()
    return {
        "status": "ok" if external_ok else "degraded",
        "mode": settings.MODE,
        "checks": {
            "external_api": "ok" if external_ok else "failed",
            "mock_api": settings.USE_MOCK_API,
        },
    }
