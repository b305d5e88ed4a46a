"""External Shopping Mall Client - Real HTTP invocation."""
import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

import httpx
from opentelemetry import trace
from pydantic import BaseModel
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt

from cartcommit.domain.cart.transformer import parse_external_response
from cartcommit.domain.interfaces import CallResult, CheckoutClient
from cartcommit.domain.redaction import mask_sensitive_data
from cartcommit.errors import ConfigurationError, ExternalApiError, ExternalTimeoutError

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

USER_AGENT = "Configurator-CartCommit/1.0"
HEALTH_CHECK_TIMEOUT = 5.0

NON_RETRYABLE_ERROR_CODES = frozenset({
    "INVALID_PRODUCT",
    "INVALID_PRICE",
    "UNAUTHORIZED",
    "FORBIDDEN",
    "VALIDATION_ERROR",
})

# Status codes classified when the body carries no error_code
HTTP_STATUS_ERROR_CODES = {
    400: "VALIDATION_ERROR",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    422: "VALIDATION_ERROR",
}


def is_non_retryable(error_code: Optional[str]) -> bool:
    return error_code in NON_RETRYABLE_ERROR_CODES


@dataclass
class CheckoutConfig:
    base_url: str
    api_key: str
    timeout_ms: int = 10_000
    retry_count: int = 3
    base_delay_ms: int = 1_000
    max_delay_ms: int = 10_000

    @classmethod
    def from_settings(cls, settings) -> "CheckoutConfig":
        return cls(
            base_url=settings.EXTERNAL_SHOP_API_URL,
            api_key=settings.EXTERNAL_SHOP_API_KEY,
            timeout_ms=settings.EXTERNAL_SHOP_TIMEOUT_MS,
            retry_count=settings.EXTERNAL_SHOP_RETRY_COUNT,
            base_delay_ms=settings.EXTERNAL_SHOP_RETRY_BASE_DELAY_MS,
            max_delay_ms=settings.EXTERNAL_SHOP_RETRY_MAX_DELAY_MS,
        )


def _as_payload(item: Any) -> Dict[str, Any]:
    if isinstance(item, BaseModel):
        return item.model_dump(mode="json")
    return dict(item)


class ExternalCheckoutClient(CheckoutClient):
    """httpx client with bounded retries, exponential backoff and jitter."""

    def __init__(
        self,
        config: CheckoutConfig,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ):
        if not config.base_url:
            raise ConfigurationError("External API base URL is required")
        if not config.api_key:
            raise ConfigurationError("External API key is required")
        if config.retry_count < 1:
            raise ConfigurationError("retry_count must be at least 1")

        self.config = config
        self._transport = transport
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {config.api_key}",
            "User-Agent": USER_AGENT,
        }

    @property
    def timeout_seconds(self) -> float:
        return self.config.timeout_ms / 1000

    def backoff_delay(self, attempt: int) -> float:
        """Seconds to wait after ``attempt`` failed (1-based)."""
        delay = min(self.config.max_delay_ms, self.config.base_delay_ms * 2 ** (attempt - 1))
        jitter = self._rng.random() * 0.1 * delay
        return (delay + jitter) / 1000

    def _wait(self, retry_state: RetryCallState) -> float:
        return self.backoff_delay(retry_state.attempt_number)

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.config.base_url.rstrip("/"),
            timeout=timeout,
            transport=self._transport,
        )

    async def add_to_cart(self, item: Mapping[str, Any]) -> CallResult:
        payload = _as_payload(item)
        logger.debug(f"Dispatching add-to-cart: {mask_sensitive_data(payload)}")
        attempts = 0
        last_response: Optional[Dict[str, Any]] = None

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.config.retry_count),
            wait=self._wait,
            retry=retry_if_exception(lambda e: isinstance(e, ExternalApiError) and e.retryable),
            sleep=self._sleep,
            reraise=True,
        )

        with tracer.start_as_current_span("checkout.add_to_cart") as span:
            try:
                async for attempt in retrying:
                    with attempt:
                        attempts = attempt.retry_state.attempt_number
                        try:
                            body = await self._post("/cart/add", payload, attempts)
                        except ExternalApiError as e:
                            last_response = e.response
                            raise
                        last_response = body
                        parsed = parse_external_response(body)
                        if not parsed["success"]:
                            code = parsed.get("error_code")
                            raise ExternalApiError(
                                str(code or parsed["error"]),
                                retryable=not is_non_retryable(code),
                                error_code=code,
                                response=body,
                            )
            except ExternalApiError as e:
                span.set_attribute("checkout.attempts", attempts)
                span.set_attribute("checkout.success", False)
                logger.warning(
                    f"External add-to-cart failed after {attempts} attempt(s): "
                    f"{e.message} (retryable={e.retryable})"
                )
                return CallResult(
                    success=False,
                    raw_request=payload,
                    raw_response=last_response,
                    error=e.message,
                    error_code=e.error_code,
                    attempts=attempts,
                )

            span.set_attribute("checkout.attempts", attempts)
            span.set_attribute("checkout.success", True)

        return CallResult(
            success=True,
            raw_request=payload,
            raw_response=last_response,
            external_cart_id=parsed["cart_id"],
            redirect_url=parsed["redirect_url"],
            attempts=attempts,
        )

    async def _post(self, path: str, payload: Dict[str, Any], attempt: int) -> Dict[str, Any]:
        try:
            async with self._client(self.timeout_seconds) as client:
                # Hard per-attempt bound; cancels the in-flight request
                response = await asyncio.wait_for(
                    client.post(path, headers=self._headers, json=payload),
                    timeout=self.timeout_seconds,
                )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise ExternalTimeoutError(f"API call timeout after {self.config.timeout_ms}ms") from e
        except httpx.HTTPError as e:
            raise ExternalApiError(f"Network error: {type(e).__name__}") from e

        body: Optional[Dict[str, Any]]
        try:
            decoded = response.json()
            body = decoded if isinstance(decoded, dict) else None
        except ValueError:
            body = None

        logger.debug(f"External API call (attempt {attempt}): POST {path} -> {response.status_code}")

        if response.is_success:
            if body is None:
                raise ExternalApiError("Invalid JSON response from external API")
            return body

        code = (body or {}).get("error_code") or HTTP_STATUS_ERROR_CODES.get(response.status_code)
        raise ExternalApiError(
            f"HTTP {response.status_code}: {response.reason_phrase}",
            retryable=not is_non_retryable(code),
            error_code=code,
            status_code=response.status_code,
            response=body,
        )

    async def health_check(self) -> bool:
        try:
            async with self._client(HEALTH_CHECK_TIMEOUT) as client:
                response = await asyncio.wait_for(
                    client.get("/health", headers={"Authorization": self._headers["Authorization"]}),
                    timeout=HEALTH_CHECK_TIMEOUT,
                )
            return response.is_success
        except (asyncio.TimeoutError, httpx.HTTPError) as e:
            logger.error(f"External API health check failed: {e}")
            return False


def create_checkout_client(settings) -> CheckoutClient:
    """Pick the mock in dev/test setups, otherwise the live client."""
    if settings.USE_MOCK_API:
        from cartcommit.adapters.checkout.mock import MockCheckoutClient
        logger.info("Using mock external checkout client")
        return MockCheckoutClient()
    return ExternalCheckoutClient(CheckoutConfig.from_settings(settings))
