# QueryGate - policy-constrained natural-language query gateway
from .models import (
    ResourceDescriptor,
    RolePolicy,
    ScopeRules,
    AuthenticatedCaller,
    UserContext,
    FieldMatch,
    AndFilter,
    OrFilter,
    QueryIntent,
    SanitizedQuery,
    Clarification,
    ExecutionResult,
    RenderedResponse,
    PolicyDecision,
    AuditLogEntry,
)
from .resources import ResourceCatalog, load_catalog, DEFAULT_QUERY_LIMIT, MAX_QUERY_LIMIT, TENANT_FIELD
from .roles import RolePolicyTable, load_role_policies, normalize_role
from .policy import GuardResult, resolve_guard
from .sanitizer import sanitize
from .executor import QueryExecutor, ReadOnlyStore
from .renderer import render, NO_DATA_MESSAGE
from .gateway import QueryGateway

__all__ = [
    "ResourceDescriptor",
    "RolePolicy",
    "ScopeRules",
    "AuthenticatedCaller",
    "UserContext",
    "FieldMatch",
    "AndFilter",
    "OrFilter",
    "QueryIntent",
    "SanitizedQuery",
    "Clarification",
    "ExecutionResult",
    "RenderedResponse",
    "PolicyDecision",
    "AuditLogEntry",
    "ResourceCatalog",
    "load_catalog",
    "DEFAULT_QUERY_LIMIT",
    "MAX_QUERY_LIMIT",
    "TENANT_FIELD",
    "RolePolicyTable",
    "load_role_policies",
    "normalize_role",
    "GuardResult",
    "resolve_guard",
    "sanitize",
    "QueryExecutor",
    "ReadOnlyStore",
    "render",
    "NO_DATA_MESSAGE",
    "QueryGateway",
]
