"""
proxy.py - Forwarding proxy endpoint.

ENDPOINT: ANY /proxy
PURPOSE: Forward an agent's outbound API call unless its session is blocked.

Target:  x-target-url header or ?target=
Session: x-session-id header or ?session_id=, else DEFAULT_SESSION_ID
         (unauthenticated callers deliberately share one bucket)

RESPONSE CODES:
- upstream status: Forwarded (response relayed, tagged x-loopgate-*)
- 400 Bad Request: Target missing or malformed (nothing logged)
- 429 Too Many Requests: Session BLOCKED (upstream never contacted)
- 502 Bad Gateway: Upstream unreachable
- 500 Internal Server Error: Storage failure
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from app.api.deps import get_proxy, read_body
from app.services.errors import InvalidTargetError
from app.services.proxy import (
    SESSION_HEADER,
    SESSION_PARAM,
    TARGET_HEADER,
    TARGET_PARAM,
    ForwardingProxy,
    ProxyRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter()

PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


@router.api_route("", methods=PROXY_METHODS, summary="Forward a request through the gate")
def proxy_request(
    request: Request,
    body: bytes = Depends(read_body),
    proxy: ForwardingProxy = Depends(get_proxy),
) -> Response:
    session_id = (
        request.headers.get(SESSION_HEADER)
        or request.query_params.get(SESSION_PARAM)
        or request.app.state.settings.DEFAULT_SESSION_ID
    )
    proxy_req = ProxyRequest(
        method=request.method,
        target=request.headers.get(TARGET_HEADER) or request.query_params.get(TARGET_PARAM),
        session_id=session_id,
        headers=list(request.headers.items()),
        body=body or None,
    )

    try:
        result = proxy.forward(proxy_req)
    except InvalidTargetError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    except SQLAlchemyError:
        proxy.guardrail.db.rollback()
        logger.exception("Proxy storage failure for session %s", session_id)
        raise HTTPException(status_code=500, detail="Internal server error")

    if result.payload is not None:
        return JSONResponse(result.payload, status_code=result.status_code)

    response = Response(content=result.content, status_code=result.status_code)
    for key, value in result.headers:
        response.headers.append(key, value)
    return response
