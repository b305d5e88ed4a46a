"""Cart commit orchestration.

One commit walks ``received -> validated -> owned -> price-verified ->
dispatched -> (succeeded | failed-with-fallback)``. Local failures
(validation, ownership, price) are terminal and never touch the network.
External failures become a recoverable fallback pointing at the audit record,
which ``retry_verbatim`` later replays byte-for-byte.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Mapping, Optional, Union
from urllib.parse import quote

from opentelemetry import trace

from cartcommit.domain.cart.models import CartItemData, CartOutcome, CartStatus, PurchaseStatus
from cartcommit.domain.cart.pricing import PriceReverifier
from cartcommit.domain.cart.transformer import to_external_cart_item
from cartcommit.domain.cart.validation import parse_cart_item
from cartcommit.domain.interfaces import (
    CallResult,
    CheckoutClient,
    DesignStore,
    ItemStatusStore,
    PurchaseAuditRecord,
    PurchaseAuditStore,
)
from cartcommit.domain.redaction import redact_for_external
from cartcommit.domain.security.manager import SecurityManager
from cartcommit.errors import (
    LOCAL_FAILURES,
    ConflictError,
    IntegrityCheckError,
    InternalError,
    NotFoundError,
    PriceMismatchError,
    ValidationError,
)

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

DEFAULT_RETRY_PATH = "/cart/retry/{audit_id}"
DEFAULT_CHECKOUT_PATH = "/api/v1/checkout/redirect"


class DesignLocks:
    """Keyed asyncio locks, one per design id, shared across requests.

    An entry lives only while some task holds or awaits it.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, design_id: str) -> AsyncIterator[None]:
        lock = self._locks.get(design_id)
        if lock is None:
            lock = self._locks[design_id] = asyncio.Lock()
        self._users[design_id] = self._users.get(design_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[design_id] -= 1
            if self._users[design_id] == 0:
                del self._users[design_id]
                del self._locks[design_id]

    def __len__(self) -> int:
        return len(self._locks)


def _design_not_found() -> NotFoundError:
    return NotFoundError("Design not found or access denied", code="DESIGN_NOT_FOUND")


def _already_in_cart(design: Dict[str, Any]) -> ConflictError:
    return ConflictError(
        "Design is already in the cart",
        code="ALREADY_IN_CART",
        details={"externalCartId": design.get("external_cart_id")},
    )


class CartCommitOrchestrator:
    def __init__(
        self,
        *,
        checkout: CheckoutClient,
        designs: DesignStore,
        statuses: ItemStatusStore,
        audit_store: PurchaseAuditStore,
        security: SecurityManager,
        reverifier: Optional[PriceReverifier] = None,
        locks: Optional[DesignLocks] = None,
        retry_path_template: str = DEFAULT_RETRY_PATH,
        checkout_path: str = DEFAULT_CHECKOUT_PATH,
    ):
        self.checkout = checkout
        self.designs = designs
        self.statuses = statuses
        self.audit_store = audit_store
        self.security = security
        self.reverifier = reverifier or PriceReverifier()
        self.locks = locks if locks is not None else DesignLocks()
        self.retry_path_template = retry_path_template
        self.checkout_path = checkout_path

    # --- Public operations ---

    async def add_to_cart(self, item: Union[CartItemData, Mapping[str, Any]], user_id: str) -> CartOutcome:
        with tracer.start_as_current_span("cart.add_to_cart"):
            try:
                return await self._add_to_cart(item, user_id)
            except LOCAL_FAILURES as e:
                return CartOutcome.from_error(e)
            except Exception as e:
                logger.exception(f"Unexpected error during add_to_cart: {type(e).__name__}")
                return CartOutcome.from_error(InternalError("An internal error occurred"))

    async def retry_verbatim(self, audit_id: str, user_id: str) -> CartOutcome:
        """Re-send the stored outbound payload of ``audit_id`` unchanged.

        The item is not re-validated or re-priced; a price change since the
        original attempt is not reflected.
        """
        with tracer.start_as_current_span("cart.retry_verbatim"):
            try:
                return await self._retry_verbatim(audit_id, user_id)
            except LOCAL_FAILURES as e:
                return CartOutcome.from_error(e)
            except Exception as e:
                logger.exception(f"Unexpected error during retry of {audit_id}: {type(e).__name__}")
                return CartOutcome.from_error(InternalError("An internal error occurred"))

    retry_cart_operation = retry_verbatim

    # --- Commit path ---

    async def _add_to_cart(self, raw_item: Union[CartItemData, Mapping[str, Any]], user_id: str) -> CartOutcome:
        item, errors = parse_cart_item(raw_item)
        if item is None:
            raise ValidationError("Invalid cart item data", details=errors)

        if self.designs.find_owned_design(item.design_id, user_id) is None:
            raise _design_not_found()

        async with self.locks.hold(item.design_id):
            # Re-read under the lock; a concurrent commit may have finished
            design = self.designs.find_owned_design(item.design_id, user_id)
            if design is None:
                raise _design_not_found()
            if design.get("cart_status") == CartStatus.IN_CART.value:
                raise _already_in_cart(design)

            check = self.reverifier.reverify(item.customizations)
            if not check.is_valid:
                logger.warning(
                    f"Price mismatch for design {item.design_id}: "
                    f"client={check.client_price} server={check.server_price}"
                )
                raise PriceMismatchError(
                    "Price verification failed. Please refresh and try again.",
                    details=check.details(),
                )

            external_item = to_external_cart_item(item)
            payload = redact_for_external(external_item.model_dump(mode="json"))
            result = await self.checkout.add_to_cart(payload)

            record = self._insert_audit(user_id, item.design_id, payload, result)
            audit_id = record["id"] if record else None

            if result.success:
                self._mark_in_cart(item.design_id, result.external_cart_id)
                logger.info(f"Design {item.design_id} added to external cart after {result.attempts} attempt(s)")
                return self._success_outcome(user_id, item.design_id, result, audit_id, "Added to cart")

            return self._fallback_outcome(
                "EXTERNAL_API_FAILED",
                "The shopping mall is temporarily unavailable. Please try again shortly.",
                result,
                audit_id,
            )

    # --- Retry path ---

    async def _retry_verbatim(self, audit_id: str, user_id: str) -> CartOutcome:
        record = self.audit_store.get_audit_record(audit_id, user_id)
        if record is None:
            raise NotFoundError("Purchase request not found", code="REQUEST_NOT_FOUND")

        design_id = record["design_id"]

        if record["status"] == PurchaseStatus.SUCCESS.value:
            return self._stored_success_outcome(record)

        payload = record.get("outbound_request")
        if not payload:
            raise NotFoundError("Original request data is missing", code="MISSING_ORIGINAL_DATA")

        expected = record.get("request_digest")
        if expected and not self.security.verify_integrity(payload, expected):
            logger.error(f"Stored payload for {audit_id} failed integrity verification")
            raise IntegrityCheckError("Stored request failed integrity verification")

        async with self.locks.hold(design_id):
            design = self.designs.find_owned_design(design_id, user_id)
            if design and design.get("cart_status") == CartStatus.IN_CART.value:
                raise _already_in_cart(design)

            result = await self.checkout.add_to_cart(payload)
            self._update_audit(record, result)

            if result.success:
                self._mark_in_cart(design_id, result.external_cart_id)
                logger.info(f"Retry of {audit_id} succeeded")
                return self._success_outcome(user_id, design_id, result, audit_id, "Added to cart on retry")

            return self._fallback_outcome(
                "RETRY_FAILED",
                "Retry failed. Please try again later.",
                result,
                audit_id,
            )

    # --- Persistence side effects (logged, never fatal) ---

    def _insert_audit(
        self, user_id: str, design_id: str, payload: Dict[str, Any], result: CallResult
    ) -> Optional[PurchaseAuditRecord]:
        try:
            return self.audit_store.insert_audit_record({
                "user_id": user_id,
                "design_id": design_id,
                "outbound_request": payload,
                "outbound_response": result.raw_response,
                "request_digest": self.security.digest(payload),
                "status": self._status_of(result),
                "error_message": result.error,
                "external_cart_id": result.external_cart_id,
                "redirect_url": result.redirect_url,
                "attempts": result.attempts,
            })
        except Exception as e:
            logger.error(f"Failed to write purchase audit record for design {design_id}: {e}")
            return None

    def _update_audit(self, record: PurchaseAuditRecord, result: CallResult) -> None:
        try:
            self.audit_store.update_audit_record(record["id"], {
                "outbound_response": result.raw_response,
                "status": self._status_of(result),
                "error_message": result.error,
                "external_cart_id": result.external_cart_id,
                "redirect_url": result.redirect_url,
                "attempts": (record.get("attempts") or 0) + result.attempts,
            })
        except Exception as e:
            logger.error(f"Failed to update purchase audit record {record['id']}: {e}")

    def _mark_in_cart(self, design_id: str, external_cart_id: Optional[str]) -> None:
        try:
            self.statuses.set_cart_status(design_id, CartStatus.IN_CART, external_cart_id)
        except Exception as e:
            logger.error(f"Failed to update cart status for design {design_id}: {e}")

    @staticmethod
    def _status_of(result: CallResult) -> str:
        return (PurchaseStatus.SUCCESS if result.success else PurchaseStatus.FAILED).value

    # --- Outcomes ---

    def checkout_url_for(self, user_id: str, design_id: str) -> str:
        cart_token = self.security.encode_cart_id(user_id, design_id)
        auth_token = self.security.issue_auth_token(user_id, cart_token)
        return f"{self.checkout_path}?token={quote(auth_token, safe='')}"

    def _success_outcome(
        self, user_id: str, design_id: str, result: CallResult, audit_id: Optional[str], message: str
    ) -> CartOutcome:
        return CartOutcome(
            success=True,
            message=message,
            cart_id=result.external_cart_id,
            redirect_url=result.redirect_url,
            checkout_url=self.checkout_url_for(user_id, design_id),
            audit_id=audit_id,
        )

    def _stored_success_outcome(self, record: PurchaseAuditRecord) -> CartOutcome:
        return CartOutcome(
            success=True,
            message="Already added to cart",
            cart_id=record.get("external_cart_id"),
            redirect_url=record.get("redirect_url"),
            checkout_url=self.checkout_url_for(record["user_id"], record["design_id"]),
            audit_id=record["id"],
        )

    def _fallback_outcome(
        self, code: str, message: str, result: CallResult, audit_id: Optional[str]
    ) -> CartOutcome:
        return CartOutcome.failure(
            code,
            message,
            {"reason": result.error, "errorCode": result.error_code, "attempts": result.attempts},
            fallback=True,
            retry_url=self.retry_path_template.format(audit_id=audit_id) if audit_id else None,
            audit_id=audit_id,
        )
