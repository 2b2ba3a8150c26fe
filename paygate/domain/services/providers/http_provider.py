"""
HTTP transport shared by the REST-based payment providers.

Every call is bounded by PROCESSOR_TIMEOUT_SECONDS and runs through the
processor's circuit breaker. Only 5xx / network / timeout failures count
against the breaker; a 4xx is the caller's problem, not the processor's.
"""
from __future__ import annotations

import json as jsonlib
from typing import Any

import httpx

from paygate.core.circuit_breaker import CircuitBreaker, get_processor_circuit_breaker
from paygate.core.config import settings
from paygate.core.exceptions import ProcessorAPIError
from paygate.core.logging import get_logger
from paygate.domain.services.providers.base_provider import BasePaymentProvider

logger = get_logger(__name__)


class _UpstreamServerError(Exception):
    """5xx מהספק - נספר כ-failure ב-circuit breaker"""

    def __init__(self, response: httpx.Response) -> None:
        super().__init__(f"status {response.status_code}")
        self.response = response


class HttpPaymentProvider(BasePaymentProvider):
    """Base for adapters that talk to a processor's REST API over httpx"""

    def __init__(
        self,
        base_url: str,
        circuit_breaker: CircuitBreaker | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._circuit_breaker = circuit_breaker or get_processor_circuit_breaker(self.provider_name)
        self._timeout = timeout_seconds or settings.PROCESSOR_TIMEOUT_SECONDS

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        *,
        headers: dict[str, str] | None = None,
        json: Any = None,
        data: dict[str, str] | None = None,
        auth: tuple[str, str] | None = None,
    ) -> dict[str, Any]:
        """
        Perform one processor API call and return the decoded JSON body.

        Raises ProcessorAPIError for any non-2xx status, timeout or network
        error, keeping the processor's raw error text in ``details``.
        """
        url = f"{self._base_url}{path}"

        async def _call() -> httpx.Response:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                if method == "GET":
                    response = await client.get(url, headers=headers)
                else:
                    response = await client.post(
                        url, headers=headers, json=json, data=data, auth=auth
                    )
            if response.status_code >= 500:
                raise _UpstreamServerError(response)
            return response

        try:
            response = await self._circuit_breaker.execute(_call)
        except _UpstreamServerError as exc:
            response = exc.response
        except httpx.TimeoutException:
            logger.error(
                f"{self.provider_name} {operation} timed out",
                extra_data={"provider": self.provider_name, "operation": operation},
            )
            raise ProcessorAPIError.timeout(self.provider_name, operation, self._timeout)
        except httpx.RequestError as exc:
            logger.error(
                f"{self.provider_name} {operation} network error",
                extra_data={
                    "provider": self.provider_name,
                    "operation": operation,
                    "error": str(exc),
                },
            )
            raise ProcessorAPIError.network(self.provider_name, operation, exc)

        if not 200 <= response.status_code < 300:
            error = ProcessorAPIError.from_response(self.provider_name, operation, response)
            logger.error(
                f"{self.provider_name} {operation} failed",
                extra_data={
                    "provider": self.provider_name,
                    "operation": operation,
                    "status_code": response.status_code,
                    "response_text": error.details.get("response_text"),
                },
            )
            raise error

        try:
            body = response.json()
        except ValueError:
            # 204 / גוף ריק - אין מה לפענח
            return {}
        return body if isinstance(body, dict) else {"data": body}

    def _require_id(self, body: dict[str, Any], operation: str, *, max_response_chars: int = 500) -> str:
        """מזהה האובייקט מתשובת 2xx. תשובה בלי id נחשבת תקלת ספק."""
        object_id = body.get("id")
        if object_id:
            return str(object_id)

        response_text = jsonlib.dumps(body, ensure_ascii=False)[:max_response_chars]
        logger.error(
            f"{self.provider_name} {operation} returned no id",
            extra_data={
                "provider": self.provider_name,
                "operation": operation,
                "response_text": response_text,
            },
        )
        raise ProcessorAPIError(
            self.provider_name,
            f"{operation} response has no id",
            details={"operation": operation, "response_text": response_text},
        )

    @staticmethod
    def _unwrap(body: dict[str, Any]) -> dict[str, Any]:
        """ספקים עוטפים תשובות ב-{"data": {...}} - מחזיר את האובייקט הפנימי אם קיים."""
        inner = body.get("data")
        return inner if isinstance(inner, dict) else body
