# QueryGate - Identity Resolver (authenticated caller -> UserContext)
from collections.abc import Iterable
from typing import Protocol

from .errors import TenantRequiredError
from .models import AuthenticatedCaller, UserContext
from .roles import DEFAULT_ROLE


class IdentityResolver(Protocol):
    async def resolve(self, caller: AuthenticatedCaller) -> UserContext:
        ...


def require_tenant_id(tenant_id: str | None) -> str:
    """Validate tenant_id; return stripped value. Raises TenantRequiredError if missing/empty."""
    if not tenant_id or not str(tenant_id).strip():
        raise TenantRequiredError("tenant_id is required and must be non-empty")
    return str(tenant_id).strip()


def build_user_context(
    caller: AuthenticatedCaller,
    role: str | None = None,
    tenant_id: str | None = None,
    scope_values: Iterable[str] | None = None,
) -> UserContext:
    """Verified claims first, stored profile values second."""
    return UserContext(
        caller_id=caller.caller_id,
        tenant_id=require_tenant_id(caller.tenant_id or tenant_id),
        role=caller.role or role or DEFAULT_ROLE,
        scope_values=tuple(str(v) for v in (caller.scope_values or scope_values or ())),
    )


class ClaimsIdentityResolver:
    """Resolves from token claims alone; tenant must be present in the claims."""

    async def resolve(self, caller: AuthenticatedCaller) -> UserContext:
        return build_user_context(caller)
