"""
Base payment client implementing shared concerns: http, retry, logging, error mapping.

Concrete providers subclass and implement provider-specific payloads.
"""
from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional

import httpx
from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential, retry_if_exception_type

from core.logging_config import get_logger
from infrastructure.external.payments.exceptions import (
    GatewayRejectedError,
    GatewayUnavailableError,
)


logger = get_logger(__name__)

# Safe to retry without an idempotency key: the request never reached the gateway
_CONNECT_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout)
# With an idempotency key the gateway deduplicates, so any transport error may be retried
_TRANSPORT_ERRORS = (httpx.TimeoutException, httpx.TransportError)


class BasePaymentClient:
    provider: str = "base"

    def __init__(
        self,
        *,
        base_url: str,
        timeouts: Optional[dict[str, float]] = None,
        retry: Optional[dict[str, Any]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeouts_cfg = timeouts or {"connect": 5.0, "default": 30.0, "payment": 45.0}
        self._retry_cfg = retry or {"max": 2, "base": 0.2}
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def timeout_for(self, kind: str = "default") -> httpx.Timeout:
        total = float(self._timeouts_cfg.get(kind, self._timeouts_cfg["default"]))
        return httpx.Timeout(total, connect=float(self._timeouts_cfg["connect"]))

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self.timeout_for("default"),
                headers=self._default_headers(),
                transport=self._transport,
            )
        return self._client

    def _default_headers(self) -> dict[str, str]:
        return {"accept": "application/json", "content-type": "application/json"}

    async def aclose(self) -> None:
        """Close underlying HTTP client if created."""
        if self._client is not None:
            try:
                await self._client.aclose()
            finally:
                self._client = None

    async def _retry(self, fn: Callable[[], Awaitable[Any]], *, idempotent: bool):
        retry_on = _TRANSPORT_ERRORS if idempotent else _CONNECT_ERRORS
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(int(self._retry_cfg["max"]) + 1),
            wait=wait_exponential(multiplier=self._retry_cfg["base"], min=0.1, max=2.0),
            retry=retry_if_exception_type(retry_on),
            reraise=True,
        ):
            with attempt:
                return await fn()

    async def _post(
        self,
        path: str,
        payload: dict[str, Any],
        *,
        timeout_kind: str = "default",
        headers: Optional[dict[str, str]] = None,
        idempotent: bool = False,
    ) -> dict[str, Any]:
        """POST JSON and return the decoded body, mapping failures to
        GatewayRejectedError / GatewayUnavailableError."""
        client = self._get_client()

        async def _send() -> httpx.Response:
            resp = await client.post(path, json=payload, headers=headers, timeout=self.timeout_for(timeout_kind))
            resp.raise_for_status()
            return resp

        try:
            resp = await self._retry(_send, idempotent=idempotent)
        except httpx.HTTPStatusError as exc:
            body = _safe_json(exc.response)
            message = (body.get("message") if isinstance(body, dict) else None) or "Payment gateway error"
            logger.warning(
                "gateway_request_rejected",
                provider=self.provider,
                path=path,
                status_code=exc.response.status_code,
                gateway_message=message,
            )
            raise GatewayRejectedError(
                message,
                provider=self.provider,
                status_code=exc.response.status_code,
                gateway_response=body,
            )
        except httpx.RequestError as exc:
            timed_out = isinstance(exc, httpx.TimeoutException)
            logger.error(
                "gateway_request_failed",
                provider=self.provider,
                path=path,
                error=str(exc) or exc.__class__.__name__,
                timeout=timed_out,
            )
            raise GatewayUnavailableError(provider=self.provider, timeout=timed_out)

        body = _safe_json(resp)
        if not isinstance(body, dict):
            raise GatewayRejectedError(
                "Invalid gateway response",
                provider=self.provider,
                status_code=502,
                gateway_response=body,
            )
        return body

    def _log(self, event: str, **kwargs) -> None:
        logger.info(
            event,
            provider=self.provider,
            **kwargs,
        )


def _safe_json(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return {"raw": resp.text[:500]}
