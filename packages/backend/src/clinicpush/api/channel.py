"""Gateway integration routes — where the push gateway reports channel events.

Learn: The gateway terminates the WebSockets and forwards lifecycle
events here as HTTP POSTs with an API Gateway-style body:

    {"requestContext": {"connectionId": "...", "routeKey": "$connect"},
     "queryStringParameters": {"token": "..."},
     "headers": {...},
     "body": "..."}

We answer {"statusCode", "body"} with the same HTTP status. For
$connect, anything but 200 refuses the channel.

If CLINICPUSH_GATEWAY_INTEGRATION_SECRET is set, the gateway must send it
in X-Gateway-Secret. Otherwise anyone could register or drop channels.
"""

import hmac
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from clinicpush.api.deps import get_store
from clinicpush.auth.dependencies import bearer_token
from clinicpush.config import settings
from clinicpush.realtime.connection_store import ConnectionStore
from clinicpush.realtime.handlers import (
    HandlerResponse,
    handle_connect,
    handle_default,
    handle_disconnect,
)


async def verify_gateway_secret(
    x_gateway_secret: Optional[str] = Header(None),
) -> None:
    expected = settings.gateway_integration_secret
    if not expected:
        return
    if not x_gateway_secret or not hmac.compare_digest(x_gateway_secret, expected):
        raise HTTPException(status_code=403, detail="Invalid gateway secret")


router = APIRouter(
    prefix="/realtime",
    dependencies=[Depends(verify_gateway_secret)],
)


# ─── Schemas ─────────────────────────────────────────────


class RequestContext(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    connection_id: str = Field(alias="connectionId")
    route_key: Optional[str] = Field(default=None, alias="routeKey")


class GatewayEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    request_context: RequestContext = Field(alias="requestContext")
    query_string_parameters: Optional[dict[str, Optional[str]]] = Field(
        default=None, alias="queryStringParameters"
    )
    headers: Optional[dict[str, str]] = None
    body: Optional[str] = None

    def token(self) -> Optional[str]:
        """Bearer credential: ?token= first, then the Authorization header."""
        token = (self.query_string_parameters or {}).get("token")
        if token:
            return token
        for name, value in (self.headers or {}).items():
            if name.lower() == "authorization":
                return bearer_token(value)
        return None


def _respond(resp: HandlerResponse) -> JSONResponse:
    return JSONResponse(status_code=resp.status_code, content=resp.as_dict())


# ─── Routes ──────────────────────────────────────────────


@router.post("/connect")
async def connect(
    event: GatewayEvent,
    store: ConnectionStore = Depends(get_store),
):
    resp = await handle_connect(
        store, event.request_context.connection_id, event.token()
    )
    return _respond(resp)


@router.post("/disconnect")
async def disconnect(
    event: GatewayEvent,
    store: ConnectionStore = Depends(get_store),
):
    resp = await handle_disconnect(store, event.request_context.connection_id)
    return _respond(resp)


@router.post("/default")
async def default(
    event: GatewayEvent,
    store: ConnectionStore = Depends(get_store),
):
    resp = await handle_default(
        store, event.request_context.connection_id, event.body
    )
    return _respond(resp)
