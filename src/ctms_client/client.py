import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from . import hal
from .errors import (
    ConflictError,
    CtmsClientError,
    CtmsHTTPError,
    CtmsModelValidationError,
    CtmsParseError,
    CtmsTransportError,
)
from .models import Session

T = TypeVar("T", bound=BaseModel)

HAL_JSON = "application/hal+json"


@dataclass(frozen=True)
class RetryConfig:
    max_retries: int = 0  # total extra attempts; CTMS calls are not retried by default
    backoff_base_seconds: float = 0.3  # 0.3, 0.6, 1.2...
    retry_statuses: frozenset[int] = frozenset({502, 503, 504})
    retry_on_429: bool = False


class CtmsClient:
    """
    Shared HTTP client for the CTMS HAL+JSON API.
    - Handles base URL, timeouts, optional retries
    - Carries the bearer token of its own session on every request
    - Returns raw JSON payloads or optional Pydantic-validated models
    - No business logic; operations own link-following decisions
    """

    def __init__(
        self,
        *,
        base_url: str,
        session: Optional[Session] = None,
        timeout_seconds: float = 30.0,
        retry: Optional[RetryConfig] = None,
        logger: Optional[logging.Logger] = None,
        http: Optional[httpx.AsyncClient] = None,
    ):
        base_url = (base_url or "").rstrip("/")
        if not base_url:
            raise ValueError("base_url must be provided.")

        self.base_url = base_url
        self.session = session
        self.timeout_seconds = timeout_seconds
        self.retry = retry if retry is not None else RetryConfig()
        self.log = logger or logging.getLogger("ctms_client.client")

        self._owns_http = http is None
        self.http = http or httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Accept": HAL_JSON,
                "Content-Type": "application/json",
            },
            timeout=timeout_seconds,
        )

    async def aclose(self) -> None:
        if self._owns_http:
            await self.http.aclose()

    async def __aenter__(self) -> "CtmsClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def install_session(self, session: Session) -> None:
        """Use ``session`` for the bearer token of every later request."""
        self.session = session

    def _headers(self, extra: Optional[Dict[str, str]]) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        if self.session is not None:
            # an authorized session sends HAL bodies
            headers["Authorization"] = self.session.authorization
            headers["Content-Type"] = HAL_JSON
        if extra:
            # explicit headers (e.g. Basic auth during login) take precedence
            headers.update(extra)
        return headers

    async def request(
        self,
        method: str,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        data: Optional[Dict[str, Any]] = None,
        content: Optional[bytes] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        action: Optional[str] = None,
        ref: Optional[str] = None,
        retry: Optional[RetryConfig] = None,
    ) -> Any:
        """
        Core request method.
        - Retries only when RetryConfig allows it (network/timeouts + 502/503/504)
        - Raises CtmsHTTPError (ConflictError for 409 incidents) on non-2xx
        - Raises CtmsTransportError on network/timeout errors
        - Raises CtmsParseError if the response isn't valid JSON
        - Returns the parsed JSON (object or array), {} for empty bodies
        """
        method = method.upper()
        start = time.perf_counter()
        req_headers = self._headers(headers)
        policy = retry if retry is not None else self.retry
        extra_kwargs: Dict[str, Any] = {}
        if timeout is not None:
            extra_kwargs["timeout"] = timeout

        attempt = 0

        while True:
            try:
                resp = await self.http.request(
                    method,
                    url,
                    params=params,
                    json=json,
                    data=data,
                    content=content,
                    headers=req_headers,
                    **extra_kwargs,
                )
                duration_ms = int((time.perf_counter() - start) * 1000)

                # structured-ish log without secrets
                self.log.debug(
                    "ctms.request",
                    extra={
                        "action": action,
                        "ref": ref,
                        "method": method,
                        "url": str(resp.request.url),
                        "status": resp.status_code,
                        "duration_ms": duration_ms,
                        "attempt": attempt,
                    },
                )

                if resp.status_code in policy.retry_statuses or (
                    policy.retry_on_429 and resp.status_code == 429
                ):
                    if attempt < policy.max_retries:
                        await asyncio.sleep(
                            policy.backoff_base_seconds * (2**attempt)
                        )
                        attempt += 1
                        continue

                if resp.status_code < 200 or resp.status_code >= 300:
                    raise self._to_http_error(resp, method=method)

                return self._safe_json(resp)

            except (
                httpx.ConnectError,
                httpx.ReadTimeout,
                httpx.ConnectTimeout,
                httpx.ReadError,
            ) as exc:
                if attempt < policy.max_retries:
                    await asyncio.sleep(policy.backoff_base_seconds * (2**attempt))
                    attempt += 1
                    continue
                raise CtmsTransportError(
                    f"Network/timeout error calling {method} {url}: {exc}"
                ) from exc

            except httpx.HTTPError as exc:
                # Other httpx exceptions (rare) - do not blindly retry
                raise CtmsTransportError(
                    f"HTTPX error calling {method} {url}: {exc}"
                ) from exc

    def _safe_json(self, resp: httpx.Response) -> Any:
        # Handle empty responses (204 No Content, etc.)
        if not resp.content:
            return {}

        try:
            data = resp.json()
        except Exception as exc:
            snippet = (resp.text or "")[:500]
            raise CtmsParseError(
                f"Expected JSON from {resp.request.method} "
                f"{resp.request.url}, got non-JSON body snippet: "
                f"{snippet!r}"
            ) from exc

        if not isinstance(data, (dict, list)):
            raise CtmsParseError(
                f"Expected JSON object or array from "
                f"{resp.request.method} {resp.request.url}, "
                f"got {type(data).__name__}"
            )
        return data

    def _to_http_error(self, resp: httpx.Response, *, method: str) -> CtmsHTTPError:
        url = str(resp.request.url)
        # Try JSON first; fall back to text snippet.
        response_json: Optional[Dict[str, Any]] = None
        response_text: Optional[str] = None
        message = "request failed"

        try:
            parsed = resp.json()
            if isinstance(parsed, dict):
                response_json = parsed
                # CTMS errors carry "message"; identity providers use "error"
                message = (
                    parsed.get("message")
                    or parsed.get("error_description")
                    or parsed.get("error")
                    or message
                )
        except Exception:
            response_text = (resp.text or "")[:500]

        error_cls = CtmsHTTPError
        if resp.status_code == 409 and response_json and "incident" in response_json:
            error_cls = ConflictError

        return error_cls(
            status_code=resp.status_code,
            method=method,
            url=url,
            message=str(message),
            response_json=response_json,
            response_text=response_text,
        )

    async def get(
        self,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        action: Optional[str] = None,
        ref: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        return await self.request(
            "GET", url, params=params, action=action, ref=ref, timeout=timeout
        )

    async def post(
        self,
        url: str,
        *,
        json: Any = None,
        action: Optional[str] = None,
        ref: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        return await self.request(
            "POST", url, json=json, action=action, ref=ref, timeout=timeout
        )

    async def patch(
        self,
        url: str,
        *,
        json: Any,
        action: Optional[str] = None,
        ref: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        return await self.request(
            "PATCH", url, json=json, action=action, ref=ref, timeout=timeout
        )

    async def delete(
        self,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        action: Optional[str] = None,
        ref: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        return await self.request(
            "DELETE", url, params=params, action=action, ref=ref, timeout=timeout
        )

    async def post_form(
        self,
        url: str,
        *,
        data: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
        action: Optional[str] = None,
        ref: Optional[str] = None,
    ) -> Any:
        """POST an application/x-www-form-urlencoded body."""
        form_headers = {"Content-Type": "application/x-www-form-urlencoded"}
        form_headers.update(headers or {})
        return await self.request(
            "POST", url, data=data, headers=form_headers, action=action, ref=ref
        )

    async def put_bytes(
        self,
        url: str,
        *,
        content: bytes,
        content_type: str = "application/octet-stream",
        action: Optional[str] = None,
        ref: Optional[str] = None,
    ) -> Any:
        """
        Upload raw bytes with PUT.
        Retries are NOT applied to avoid duplicate uploads.
        """
        if not content:
            raise CtmsClientError("Upload content is empty; refusing to upload.")
        return await self.request(
            "PUT",
            url,
            content=content,
            headers={"Content-Type": content_type},
            action=action,
            ref=ref,
            retry=RetryConfig(max_retries=0),
        )

    async def request_model(
        self, model: Type[T], method: str, url: str, **kwargs: Any
    ) -> T:
        payload = await self.request(method, url, **kwargs)
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            raise CtmsModelValidationError(
                f"Response did not match model {model.__name__}: {exc}"
            ) from exc

    @staticmethod
    def link_href(payload: Dict[str, Any], rel: str) -> Optional[str]:
        return hal.get_link_href(payload, rel)

    @staticmethod
    def embedded(payload: Dict[str, Any], rel: str) -> Optional[Any]:
        return hal.get_embedded(payload, rel)


__all__ = ["CtmsClient", "RetryConfig", "HAL_JSON"]
