# QueryGate - Role Policy Table (role -> allowed resources + scope rules)
import json
import logging
import re
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .errors import CatalogError
from .models import RolePolicy
from .resources import (
    DEFAULT_RESOURCES,
    RESOURCE_CATEGORIES,
    RESOURCE_DEBIT_NOTES,
    RESOURCE_DMR_ENTRIES,
    RESOURCE_INVENTORY,
    RESOURCE_ITEMS,
    RESOURCE_ORGANISATIONS,
    RESOURCE_PURCHASE_ORDERS,
    RESOURCE_PURCHASE_REQUESTS,
    RESOURCE_SITES,
    content_version,
)

logger = logging.getLogger(__name__)

DEFAULT_ROLE = "default"

_ALL_RESOURCE_KEYS = [r["key"] for r in DEFAULT_RESOURCES]

DEFAULT_ROLE_POLICIES: dict[str, dict[str, Any]] = {
    "superadmin": {
        "allowed_resource_keys": _ALL_RESOURCE_KEYS,
        "scope_rules": {"uses_tenant_scope": False},
    },
    "project_director": {
        "allowed_resource_keys": _ALL_RESOURCE_KEYS,
        "scope_rules": {"uses_tenant_scope": True},
    },
    "project_manager": {
        "allowed_resource_keys": _ALL_RESOURCE_KEYS,
        "scope_rules": {"uses_tenant_scope": True},
    },
    "store_manager": {
        "allowed_resource_keys": [
            RESOURCE_PURCHASE_ORDERS,
            RESOURCE_PURCHASE_REQUESTS,
            RESOURCE_INVENTORY,
            RESOURCE_SITES,
            RESOURCE_ITEMS,
            RESOURCE_DMR_ENTRIES,
            RESOURCE_DEBIT_NOTES,
            RESOURCE_CATEGORIES,
            RESOURCE_ORGANISATIONS,
        ],
        "scope_rules": {"uses_tenant_scope": True},
    },
    # unknown roles: minimal read
    DEFAULT_ROLE: {
        "allowed_resource_keys": [RESOURCE_SITES],
        "scope_rules": {"uses_tenant_scope": True},
    },
}

_WHITESPACE = re.compile(r"\s+")


def normalize_role(role: str | None) -> str:
    """'Project  Director ' -> 'project_director'."""
    if not isinstance(role, str):
        return ""
    return _WHITESPACE.sub("_", role.strip().lower())


class RolePolicyTable:
    """Immutable role -> RolePolicy lookup with a mandatory default entry."""

    def __init__(self, policies: dict[str, RolePolicy], version: str):
        if DEFAULT_ROLE not in policies:
            raise CatalogError("role policy table must define a 'default' policy")
        self._policies = dict(policies)
        self.version = version

    def __contains__(self, role: str) -> bool:
        return normalize_role(role) in self._policies

    def __len__(self) -> int:
        return len(self._policies)

    @property
    def roles(self) -> list[str]:
        return sorted(self._policies)

    def policy_for(self, role: str | None) -> RolePolicy:
        """Normalized lookup; any unknown role gets the default policy."""
        return self._policies.get(normalize_role(role)) or self._policies[DEFAULT_ROLE]

    @classmethod
    def from_data(cls, data: dict[str, dict[str, Any]], known_keys: set[str] | None = None) -> "RolePolicyTable":
        if not isinstance(data, dict) or not data:
            raise CatalogError("role policy table must be a non-empty object")
        policies: dict[str, RolePolicy] = {}
        for raw_role, raw in data.items():
            role = normalize_role(raw_role)
            if role in policies:
                raise CatalogError(f"duplicate role after normalization: {raw_role!r}")
            try:
                policy = RolePolicy.model_validate({**raw, "role": role})
            except ValidationError as e:
                raise CatalogError(f"invalid policy for role {raw_role!r}: {e}") from e
            if known_keys is not None:
                unknown = policy.allowed_resource_keys - known_keys
                if unknown:
                    logger.warning("Role %s references unknown resources %s; they will be ignored", role, sorted(unknown))
            policies[role] = policy
        return cls(policies, content_version(data))


def load_role_policies(path: str | Path | None = None, known_keys: set[str] | None = None) -> RolePolicyTable:
    """Load role policies from a JSON file, or the built-in table when path is None."""
    if path is None:
        table = RolePolicyTable.from_data(DEFAULT_ROLE_POLICIES, known_keys)
    else:
        with open(path, encoding="utf-8") as f:
            table = RolePolicyTable.from_data(json.load(f), known_keys)
    logger.info("Role policy table loaded: %d roles, version %s", len(table), table.version)
    return table
