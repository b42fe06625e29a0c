"""
Proxy API routes.

- POST /api/create-forward-token: Mint a forward token for a connection secret
- POST /api/forward?u=<url>: Relay a request upstream (JSON, SSE or text)
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse

from meterline.core.auth import get_bearer_token, require_auth
from meterline.features.proxy.gateway import EVENT_STREAM, ProxyGateway
from meterline.models.user import CamelModel

router = APIRouter()


class ForwardTokenIn(CamelModel):
    connection_secret: Optional[str] = None


@router.post("/create-forward-token", dependencies=[Depends(require_auth)])
async def create_forward_token(data: ForwardTokenIn, request: Request):
    forward_token = request.app.state.forward_tokens.issue(data.connection_secret)
    return {"forwardToken": forward_token.value}


@router.post("/forward")
async def forward(request: Request, u: Optional[str] = Query(None)):
    gateway: ProxyGateway = request.app.state.proxy
    result = await gateway.forward(
        get_bearer_token(request),
        request.headers.get("x-connection-secret"),
        u,
        await request.body(),
    )

    if result.is_stream:
        return StreamingResponse(
            result.chunks,
            status_code=result.status_code,
            media_type=EVENT_STREAM,
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
            },
        )
    if result.text_body is None:
        return JSONResponse(status_code=result.status_code, content=result.json_body)
    return Response(content=result.text_body, status_code=result.status_code, media_type=result.content_type)
