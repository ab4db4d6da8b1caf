# QueryGate - Policy Guard (Role Policy Table + UserContext -> GuardResult)
import logging
from typing import Optional

from pydantic import BaseModel, ConfigDict

from .errors import ConfigurationGap
from .models import MATCH_NOTHING, FieldMatch, FilterNode, MenuEntry, ResourceDescriptor, UserContext
from .resources import ResourceCatalog
from .roles import RolePolicyTable

logger = logging.getLogger(__name__)


class GuardResult(BaseModel):
    """What one caller may touch. Derived per request, never cached."""
    model_config = ConfigDict(frozen=True)

    role: str
    resources: dict[str, ResourceDescriptor]
    uses_scope: bool
    scope_values: tuple[str, ...] = ()

    @property
    def allowed_resource_keys(self) -> frozenset[str]:
        return frozenset(self.resources)

    @property
    def allowed_fields_by_resource(self) -> dict[str, tuple[str, ...]]:
        return {k: d.allowed_fields for k, d in self.resources.items()}

    def scope_filter(self, resource_key: str) -> Optional[FilterNode]:
        """
        Site-scope predicate for a resource; None means no restriction beyond the
        tenant predicate, which the executor always adds.
        """
        descriptor = self.resources.get(resource_key)
        if descriptor is None:
            return MATCH_NOTHING
        if not self.uses_scope or not self.scope_values or not descriptor.site_scoped:
            return None
        if descriptor.scope_field is None:
            gap = ConfigurationGap(f"resource {resource_key} has no scope field")
            logger.warning("Scope required but unavailable (%s): %s; matching nothing", gap.kind, gap)
            return MATCH_NOTHING
        return FieldMatch(field=descriptor.scope_field, op="in", value=self.scope_values)

    def menu(self) -> list[MenuEntry]:
        """Allowed resources in catalog order, for the intent translator."""
        return [
            MenuEntry(key=d.key, description=d.description, fields=d.allowed_fields)
            for d in self.resources.values()
        ]


def resolve_guard(
    role: str | None,
    user_context: UserContext,
    catalog: ResourceCatalog,
    policies: RolePolicyTable,
) -> GuardResult:
    """Pure function of its inputs; unknown roles fall back to the default policy."""
    policy = policies.policy_for(role)
    # keys retired from the catalog are dropped silently
    resources = {k: catalog[k] for k in catalog if k in policy.allowed_resource_keys}
    return GuardResult(
        role=policy.role,
        resources=resources,
        uses_scope=policy.scope_rules.uses_tenant_scope,
        scope_values=tuple(user_context.scope_values),
    )
