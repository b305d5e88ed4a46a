"""Dependency Injection Module."""
import logging
from functools import lru_cache
from typing import Generator, Optional

from fastapi import Depends, Header, Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from cartcommit.adapters.postgres.stores import PostgresDesignStore, PostgresPurchaseAuditStore
from cartcommit.domain.cart.orchestrator import CartCommitOrchestrator, DesignLocks
from cartcommit.domain.cart.pricing import PriceReverifier
from cartcommit.domain.interfaces import CheckoutClient, DesignStore, PurchaseAuditStore
from cartcommit.domain.security.manager import SecurityManager
from cartcommit.errors import raise_cart_error
from cartcommit.settings import settings

logger = logging.getLogger(__name__)

CSRF_HEADER = "X-CSRF-Token"
SESSION_COOKIE = "session_id"
RETRY_PATH = "/api/v1/cart/retry/{audit_id}"


@lru_cache
def get_engine() -> Engine:
    engine = create_engine(settings.DATABASE_URL, pool_pre_ping=True, pool_size=10, pool_timeout=5)
    logger.info("Initialized database engine")
    return engine


@lru_cache
def get_session_factory() -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=get_engine())


def get_db() -> Generator[Session, None, None]:
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()


# --- Process-scoped components (built in main.lifespan) ---

def get_security_manager(request: Request) -> SecurityManager:
    return request.app.state.security


def get_checkout_client(request: Request) -> CheckoutClient:
    return request.app.state.checkout_client


def get_design_locks(request: Request) -> DesignLocks:
    return request.app.state.design_locks


def get_reverifier() -> PriceReverifier:
    return PriceReverifier(tolerance=settings.PRICE_VALIDATION_TOLERANCE)


# --- Request-scoped stores ---

def get_design_store(db: Session = Depends(get_db)) -> DesignStore:
    return PostgresDesignStore(db)


def get_audit_store(db: Session = Depends(get_db)) -> PurchaseAuditStore:
    return PostgresPurchaseAuditStore(db)


def get_orchestrator(
    designs: PostgresDesignStore = Depends(get_design_store),
    audit_store: PurchaseAuditStore = Depends(get_audit_store),
    security: SecurityManager = Depends(get_security_manager),
    checkout: CheckoutClient = Depends(get_checkout_client),
    locks: DesignLocks = Depends(get_design_locks),
    reverifier: PriceReverifier = Depends(get_reverifier),
) -> CartCommitOrchestrator:
    return CartCommitOrchestrator(
        checkout=checkout,
        designs=designs,
        statuses=designs,
        audit_store=audit_store,
        security=security,
        reverifier=reverifier,
        locks=locks,
        retry_path_template=RETRY_PATH,
    )


# --- Caller identity and CSRF ---

def get_current_user_id(x_user_id: Optional[str] = Header(None, alias="X-User-Id")) -> str:
    """User identity is authenticated upstream and forwarded as a header."""
    if not x_user_id or not x_user_id.strip():
        raise_cart_error("UNAUTHORIZED", 401, "Authentication required")
    return x_user_id.strip()


def require_csrf(
    request: Request,
    security: SecurityManager = Depends(get_security_manager),
) -> None:
    token = request.headers.get(CSRF_HEADER)
    session_id = request.cookies.get(SESSION_COOKIE)
    if not token or not session_id:
        raise_cart_error("CSRF_TOKEN_MISSING", 403, "CSRF token or session missing")
    if not security.verify_csrf_token(token, session_id, settings.CSRF_MAX_AGE_MS):
        logger.warning(f"CSRF verification failed for {request.url.path}")
        raise_cart_error("CSRF_TOKEN_INVALID", 403, "Invalid or expired CSRF token")
