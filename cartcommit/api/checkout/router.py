import logging

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse

from cartcommit.dependencies import get_audit_store, get_current_user_id, get_security_manager
from cartcommit.domain.interfaces import PurchaseAuditStore
from cartcommit.domain.security.manager import SecurityManager
from cartcommit.errors import raise_cart_error

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/checkout/redirect")
async def checkout_redirect(
    token: str = Query(...),
    user_id: str = Depends(get_current_user_id),
    security: SecurityManager = Depends(get_security_manager),
    audit_store: PurchaseAuditStore = Depends(get_audit_store),
):
    """Resolve a checkout token to the external shop's cart page."""
    claims = security.verify_auth_token(token)
    if not claims.is_valid:
        if claims.is_expired:
            raise_cart_error("CHECKOUT_SESSION_EXPIRED", 410, "Checkout session has expired")
        raise_cart_error("INVALID_CHECKOUT_TOKEN", 400, "Invalid checkout token")

    if claims.user_id != user_id:
        logger.warning("Checkout token presented by a different user")
        raise_cart_error("FORBIDDEN", 403, "Checkout token does not belong to this user")

    cart = security.decode_cart_id(claims.cart_id)
    if not cart.is_valid:
        raise_cart_error("INVALID_CART_ID", 400, "Invalid cart reference")
    if cart.user_id != user_id:
        raise_cart_error("FORBIDDEN", 403, "Cart does not belong to this user")

    record = audit_store.find_latest_success(user_id, cart.design_id)
    if not record or not record.get("redirect_url"):
        raise_cart_error("CART_NOT_FOUND", 404, "No completed cart found for this design")

    return RedirectResponse(record["redirect_url"], status_code=303)
