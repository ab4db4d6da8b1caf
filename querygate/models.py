# QueryGate - protocol objects (catalog, policy, identity, intent, results)
import hashlib
import json
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator


def canonical_json(obj: Any) -> str:
    """Deterministic JSON serialization: compact, sorted keys."""
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), default=str)


# --- Resource Catalog entry ---
class ResourceDescriptor(BaseModel):
    """A queryable resource: backing table, allowlisted fields, scope-bearing field."""
    model_config = ConfigDict(frozen=True)

    key: str = Field(..., description="Logical resource key, e.g. purchase_orders")
    store_id: str = Field(..., description="Backing table name")
    allowed_fields: tuple[str, ...] = Field(..., description="Fields usable in filter/projection")
    description: str = ""
    scope_field: str | None = Field(default=None, description="Field restricted by site scope")
    site_scoped: bool = Field(default=True, description="False for tenant-wide reference data")


# --- Role Policy ---
class ScopeRules(BaseModel):
    model_config = ConfigDict(frozen=True)

    uses_tenant_scope: bool = True


class RolePolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: str
    allowed_resource_keys: frozenset[str] = Field(default_factory=frozenset)
    scope_rules: ScopeRules = Field(default_factory=ScopeRules)


# --- Identity ---
class AuthenticatedCaller(BaseModel):
    """Verified claims handed over by the host's auth layer; may be incomplete."""
    caller_id: str
    tenant_id: str | None = None
    role: str | None = None
    scope_values: tuple[str, ...] | None = None


class UserContext(BaseModel):
    """Who is asking: tenant, role and assigned scope values (site ids)."""
    model_config = ConfigDict(frozen=True)

    caller_id: str
    tenant_id: str
    role: str = "default"
    scope_values: tuple[str, ...] = ()

    @field_validator("tenant_id")
    @classmethod
    def _tenant_required(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("tenant_id is required and must be non-empty")
        return v.strip()


# --- Filter tree ---
ComparisonOp = Literal["eq", "ne", "gt", "gte", "lt", "lte", "in", "nin", "regex"]


class FieldMatch(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["field"] = "field"
    field: str
    op: ComparisonOp
    value: Any = None
    options: str = ""

    def to_raw(self) -> dict:
        cond: dict[str, Any] = {f"${self.op}": list(self.value) if isinstance(self.value, tuple) else self.value}
        if self.op == "regex" and self.options:
            cond["$options"] = self.options
        return {self.field: cond}

    def field_names(self) -> set[str]:
        return {self.field}


class AndFilter(BaseModel):
    """All children must match. No children matches everything."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["and"] = "and"
    children: tuple["FilterNode", ...] = ()

    def to_raw(self) -> dict:
        return {"$and": [c.to_raw() for c in self.children]}

    def field_names(self) -> set[str]:
        return set().union(*(c.field_names() for c in self.children))


class OrFilter(BaseModel):
    """Any child must match. No children matches nothing."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["or"] = "or"
    children: tuple["FilterNode", ...] = ()

    def to_raw(self) -> dict:
        return {"$or": [c.to_raw() for c in self.children]}

    def field_names(self) -> set[str]:
        return set().union(*(c.field_names() for c in self.children))


FilterNode = Annotated[Union[FieldMatch, AndFilter, OrFilter], Field(discriminator="kind")]
AndFilter.model_rebuild()
OrFilter.model_rebuild()

MATCH_ALL = AndFilter()
MATCH_NOTHING = OrFilter()


# --- Untrusted translator output ---
class QueryIntent(BaseModel):
    """Translator output. Every field is untrusted and loosely typed on purpose."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    resource_key: Any = Field(
        default=None,
        validation_alias=AliasChoices("resource", "resourceKey", "resource_key", "collectionKey"),
    )
    filter: Any = None
    projection: Any = None
    limit: Any = None
    clarification: Any = None

    @classmethod
    def from_raw(cls, raw: Any) -> "QueryIntent | None":
        """Build from a parsed reply; None when the reply is not an object."""
        if isinstance(raw, QueryIntent):
            return raw
        if not isinstance(raw, dict):
            return None
        try:
            return cls.model_validate(raw)
        except ValidationError:
            return None


class Clarification(BaseModel):
    """Terminal outcome: a message for the user and an internal reason."""
    model_config = ConfigDict(frozen=True)

    message: str
    reason: str = "translator"


class SanitizedQuery(BaseModel):
    model_config = ConfigDict(frozen=True)

    resource_key: str
    filter: Optional[FilterNode] = None
    projection: tuple[str, ...] = ()
    limit: int

    def field_names(self) -> set[str]:
        names = set(self.projection)
        if self.filter is not None:
            names |= self.filter.field_names()
        return names

    def as_intent(self) -> dict:
        """Re-express as a raw intent; sanitizing it again yields an equal query."""
        raw: dict[str, Any] = {"resource": self.resource_key, "limit": self.limit}
        if self.filter is not None:
            raw["filter"] = self.filter.to_raw()
        if self.projection:
            raw["projection"] = {f: 1 for f in self.projection}
        return raw

    def fingerprint(self) -> str:
        return hashlib.sha256(canonical_json(self.as_intent()).encode()).hexdigest()[:16]

    def cache_key(self, tenant_id: str, role: str) -> str:
        """Key for any external cache: tenant, role and the sanitized query, never the question."""
        return f"querygate:{tenant_id}:{role}:{self.fingerprint()}"


# --- Results ---
class ExecutionResult(BaseModel):
    records: list[dict[str, Any]] = Field(default_factory=list)
    total: int = 0
    error: str | None = None


class RenderedResponse(BaseModel):
    text: str
    data: list[dict[str, Any]] = Field(default_factory=list)
    total: int = 0
    has_data: bool = False
    clarification: bool = False


class MenuEntry(BaseModel):
    """One line of the resource menu shown to the translator."""
    key: str
    description: str
    fields: tuple[str, ...]


# --- Audit ---
class PolicyDecision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"
    CLARIFY = "clarify"


class AuditLogEntry(BaseModel):
    trace_id: str
    caller_id: str | None = None
    tenant_id: str | None = None
    role: str | None = None
    resource_key: str | None = None
    query_fingerprint: str | None = None
    policy_decision: PolicyDecision
    outcome: str
    error_kind: str | None = None
    total: int = 0
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    details: dict[str, Any] = Field(default_factory=dict)
