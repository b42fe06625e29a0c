"""
Authenticated request forwarder.

Validates the caller's session and connection secret, mints a forward token
scoped to that secret and issues exactly one upstream POST through the
registry's forward endpoint. Relay policy by upstream content type:

- text/event-stream: chunks are yielded one at a time in arrival order; the
  consumer writes each chunk and awaits the write before the next read.
- application/json: parsed, re-emitted with the upstream status.
- anything else: raw text with the upstream status.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Optional
from urllib.parse import quote

import httpx

from meterline.core.errors import AuthError, InternalError, ValidationError
from meterline.core.logging import LOGGER_NAME
from meterline.core.metrics import proxy_requests_total, proxy_stream_chunks_total
from meterline.features.auth.sessions import SessionStore
from meterline.features.billing.candidates import is_valid_connection_secret
from meterline.features.proxy.forward_token import ForwardTokenIssuer

logger = logging.getLogger(LOGGER_NAME)

EVENT_STREAM = "text/event-stream"
APPLICATION_JSON = "application/json"


@dataclass
class ProxyResponse:
    status_code: int
    content_type: str
    json_body: Any = None
    text_body: Optional[str] = None
    chunks: Optional[AsyncIterator[bytes]] = None

    @property
    def is_stream(self) -> bool:
        return self.chunks is not None


class ProxyGateway:
    def __init__(
        self,
        http_client: httpx.AsyncClient,
        sessions: SessionStore,
        issuer: ForwardTokenIssuer,
        forward_endpoint: str,
    ):
        self._http = http_client
        self._sessions = sessions
        self._issuer = issuer
        self.forward_endpoint = forward_endpoint

    def upstream_url(self, target_url: str) -> str:
        return f"{self.forward_endpoint}?u={quote(target_url, safe='')}"

    async def forward(
        self,
        session_token: Optional[str],
        connection_secret: Optional[str],
        target_url: Optional[str],
        body: bytes,
    ) -> ProxyResponse:
        auth = await self._sessions.resolve(session_token)
        if auth is None:
            raise AuthError("Authentication required")
        if not target_url:
            raise ValidationError("Missing target URL parameter (?u=)")
        if not is_valid_connection_secret(connection_secret):
            raise AuthError("Missing X-Connection-Secret header")

        forward_token = self._issuer.issue(connection_secret)
        upstream_url = self.upstream_url(target_url)
        logger.info("Proxying %s request to: %s", auth.user.email, upstream_url)

        request = self._http.build_request(
            "POST",
            upstream_url,
            headers={
                "Authorization": forward_token.bearer(),
                "Content-Type": APPLICATION_JSON,
            },
            content=body,
        )
        try:
            response = await self._http.send(request, stream=True)
        except httpx.HTTPError as exc:
            raise InternalError("Proxy error", details=str(exc) or exc.__class__.__name__) from exc

        content_type = response.headers.get("content-type", "")
        if EVENT_STREAM in content_type:
            proxy_requests_total.inc(labels={"content_type": EVENT_STREAM, "status": str(response.status_code)})
            return ProxyResponse(
                status_code=response.status_code,
                content_type=EVENT_STREAM,
                chunks=self._iter_chunks(response),
            )

        try:
            raw = await response.aread()
        except httpx.HTTPError as exc:
            raise InternalError("Proxy error", details=str(exc) or exc.__class__.__name__) from exc
        finally:
            await response.aclose()

        if APPLICATION_JSON in content_type:
            proxy_requests_total.inc(labels={"content_type": APPLICATION_JSON, "status": str(response.status_code)})
            try:
                data = json.loads(raw)
            except ValueError as exc:
                raise InternalError("Proxy error", details=str(exc)) from exc
            return ProxyResponse(status_code=response.status_code, content_type=APPLICATION_JSON, json_body=data)

        proxy_requests_total.inc(labels={"content_type": "text", "status": str(response.status_code)})
        return ProxyResponse(
            status_code=response.status_code,
            content_type=content_type or "text/plain",
            text_body=raw.decode(response.encoding or "utf-8", errors="replace"),
        )

    async def _iter_chunks(self, response: httpx.Response) -> AsyncIterator[bytes]:
        try:
            async for chunk in response.aiter_bytes():
                if chunk:
                    proxy_stream_chunks_total.inc()
                    yield chunk
        except httpx.HTTPError as exc:
            logger.error("Proxy stream interrupted: %s", exc)
            raise
        finally:
            await response.aclose()
