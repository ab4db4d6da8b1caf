# QueryGate - Chatbot endpoints (every question goes through the QueryGateway)
#
# POST /api/chatbot/ask   {message} -> templated answer + the records behind it
# GET  /api/chatbot/menu  the caller's allowed resources and fields
#
import uuid
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from auth import require_caller
from querygate import AuthenticatedCaller, QueryGateway
from querygate.errors import TenantRequiredError
from querygate.models import MenuEntry, UserContext

router = APIRouter(prefix="/api/chatbot", tags=["Chatbot"])


class AskRequest(BaseModel):
    message: Any = None


class AskResponse(BaseModel):
    text: str
    data: list[dict[str, Any]]
    total: int
    has_data: bool
    clarification: bool
    trace_id: str


class MenuResponse(BaseModel):
    role: str
    resources: list[MenuEntry]


def get_gateway(request: Request) -> QueryGateway:
    """Set on app.state during lifespan startup."""
    return request.app.state.gateway


async def resolve_context(gateway: QueryGateway, caller: AuthenticatedCaller) -> UserContext:
    try:
        return await gateway.resolve(caller)
    except TenantRequiredError:
        raise HTTPException(status_code=403, detail="No tenant associated with this account")


@router.post("/ask", response_model=AskResponse)
async def ask(
    body: AskRequest,
    caller: AuthenticatedCaller = Depends(require_caller),
    gateway: QueryGateway = Depends(get_gateway),
):
    if not isinstance(body.message, str) or not body.message.strip():
        raise HTTPException(status_code=400, detail="message is required and must be a non-empty string")
    context = await resolve_context(gateway, caller)
    trace_id = str(uuid.uuid4())
    response = await gateway.ask_as(body.message, context, trace_id=trace_id)
    return AskResponse(**response.model_dump(), trace_id=trace_id)


@router.get("/menu", response_model=MenuResponse)
async def menu(
    caller: AuthenticatedCaller = Depends(require_caller),
    gateway: QueryGateway = Depends(get_gateway),
):
    context = await resolve_context(gateway, caller)
    guard = gateway.guard_for(context)
    return MenuResponse(role=guard.role, resources=guard.menu())
