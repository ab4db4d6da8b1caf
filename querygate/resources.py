# QueryGate - Resource Catalog (queryable resources and their allowlisted fields)
import hashlib
import json
import logging
from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .errors import CatalogError
from .models import ResourceDescriptor, canonical_json

logger = logging.getLogger(__name__)

# Column carrying tenant ownership on every backing table. Never allowlisted.
TENANT_FIELD = "tenant_id"
ID_FIELD = "id"

DEFAULT_QUERY_LIMIT = 100
MAX_QUERY_LIMIT = 500

# Resource keys
RESOURCE_PROJECTS = "projects"
RESOURCE_PURCHASE_ORDERS = "purchase_orders"
RESOURCE_PURCHASE_REQUESTS = "purchase_requests"
RESOURCE_INVENTORY = "inventory"
RESOURCE_SITES = "sites"
RESOURCE_VENDORS = "vendors"
RESOURCE_ITEMS = "items"
RESOURCE_DMR_ENTRIES = "dmr_entries"
RESOURCE_DEBIT_NOTES = "debit_notes"
RESOURCE_RATE_APPROVALS = "rate_approvals"
RESOURCE_CATEGORIES = "categories"
RESOURCE_ORGANISATIONS = "organisations"

DEFAULT_RESOURCES: list[dict[str, Any]] = [
    {
        "key": RESOURCE_PROJECTS,
        "store_id": "projects",
        "description": "Projects with name, location, dates, milestones",
        "allowed_fields": [
            "id", "project_name", "project_date", "location", "image_url",
            "r0_date", "r1_date", "r2_date", "created_at", "updated_at",
        ],
        # projects carry no site reference: site-scoped roles get nothing
        "scope_field": None,
    },
    {
        "key": RESOURCE_PURCHASE_ORDERS,
        "store_id": "purchase_orders",
        "description": "Purchase orders with PO number, status, site, vendor, items",
        "allowed_fields": [
            "id", "po_number", "purchase_request_number", "pr_type", "order_type", "title",
            "site", "status", "date", "po_date", "due_date", "approved_by",
            "created_at", "updated_at",
        ],
        "scope_field": "site",
    },
    {
        "key": RESOURCE_PURCHASE_REQUESTS,
        "store_id": "purchase_requests",
        "description": "Purchase requests with PR number, status, site",
        "allowed_fields": ["id", "purchase_request_number", "site", "status", "date", "created_at", "updated_at"],
        "scope_field": "site",
    },
    {
        "key": RESOURCE_INVENTORY,
        "store_id": "site_inventory",
        "description": "Site inventory stock by item and site",
        "allowed_fields": ["id", "item_id", "site_id", "stock_quantity", "inventory_type", "date", "updated_at"],
        "scope_field": "site_id",
    },
    {
        "key": RESOURCE_SITES,
        "store_id": "sites",
        "description": "Sites with name, location, code",
        "allowed_fields": ["id", "site_name", "location", "code", "address", "created_by", "updated_by"],
        "scope_field": "id",
    },
    {
        "key": RESOURCE_VENDORS,
        "store_id": "vendors",
        "description": "Vendor master data",
        "allowed_fields": ["id", "vendor_name", "code", "email", "phone_number", "created_at", "updated_at"],
        "site_scoped": False,
    },
    {
        "key": RESOURCE_ITEMS,
        "store_id": "items",
        "description": "Item master data",
        "allowed_fields": [
            "id", "item_name", "item_number", "item_code", "category", "sub_category", "uom",
            "created_at", "updated_at",
        ],
        "site_scoped": False,
    },
    {
        "key": RESOURCE_DMR_ENTRIES,
        "store_id": "dmr_entries",
        "description": "DMR (Delivery Material Receipt) entries",
        "allowed_fields": ["id", "dmr_no", "site", "status", "dmr_date", "gate_entry_date", "created_at", "updated_at"],
        "scope_field": "site",
    },
    {
        "key": RESOURCE_DEBIT_NOTES,
        "store_id": "debit_notes",
        "description": "Debit notes raised against vendors",
        "allowed_fields": [
            "id", "debit_note_number", "debit_entry_number", "site", "status", "po_number",
            "vendor_id", "created_at", "updated_at",
        ],
        "scope_field": "site",
    },
    {
        "key": RESOURCE_RATE_APPROVALS,
        "store_id": "rate_approvals",
        "description": "Rate approval records",
        "allowed_fields": ["id", "site", "status", "date", "created_at", "updated_at"],
        "scope_field": "site",
    },
    {
        "key": RESOURCE_CATEGORIES,
        "store_id": "categories",
        "description": "Item categories",
        "allowed_fields": ["id", "name", "code", "type", "created_at", "updated_at"],
        "site_scoped": False,
    },
    {
        "key": RESOURCE_ORGANISATIONS,
        "store_id": "organisations",
        "description": "Organisations / company entities",
        "allowed_fields": [
            "id", "company_name", "code", "contact_person", "phone_number", "gst_number",
            "pan_number", "created_at", "updated_at",
        ],
        "site_scoped": False,
    },
]


def content_version(data: Any) -> str:
    return hashlib.sha256(canonical_json(data).encode()).hexdigest()[:16]


class ResourceCatalog(Mapping[str, ResourceDescriptor]):
    """Immutable registry: resource key -> ResourceDescriptor. Safe to share across requests."""

    def __init__(self, descriptors: list[ResourceDescriptor], version: str):
        self._by_key = {d.key: d for d in descriptors}
        self.version = version

    def __getitem__(self, key: str) -> ResourceDescriptor:
        return self._by_key[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._by_key)

    def __len__(self) -> int:
        return len(self._by_key)

    def by_store_id(self, store_id: str) -> ResourceDescriptor | None:
        for d in self._by_key.values():
            if d.store_id == store_id:
                return d
        return None

    @classmethod
    def from_data(cls, entries: list[dict[str, Any]]) -> "ResourceCatalog":
        if not isinstance(entries, list) or not entries:
            raise CatalogError("catalog must be a non-empty list of resources")
        descriptors: list[ResourceDescriptor] = []
        seen: set[str] = set()
        for raw in entries:
            try:
                d = ResourceDescriptor.model_validate(raw)
            except ValidationError as e:
                raise CatalogError(f"invalid resource entry: {e}") from e
            _check_descriptor(d, seen)
            seen.add(d.key)
            descriptors.append(d)
        return cls(descriptors, content_version(entries))


def _check_descriptor(d: ResourceDescriptor, seen: set[str]) -> None:
    if d.key != d.key.strip().lower() or not d.key:
        raise CatalogError(f"resource key must be lower-case and non-empty: {d.key!r}")
    if d.key in seen:
        raise CatalogError(f"duplicate resource key: {d.key}")
    if not d.allowed_fields:
        raise CatalogError(f"resource {d.key} has no allowed fields")
    if TENANT_FIELD in d.allowed_fields:
        raise CatalogError(f"resource {d.key} must not expose {TENANT_FIELD}")
    if d.scope_field is not None and d.scope_field not in d.allowed_fields:
        raise CatalogError(f"resource {d.key}: scope field {d.scope_field} is not an allowed field")


def load_catalog(path: str | Path | None = None) -> ResourceCatalog:
    """Load the catalog from a JSON file, or the built-in catalog when path is None."""
    if path is None:
        catalog = ResourceCatalog.from_data(DEFAULT_RESOURCES)
    else:
        with open(path, encoding="utf-8") as f:
            catalog = ResourceCatalog.from_data(json.load(f))
    logger.info("Resource catalog loaded: %d resources, version %s", len(catalog), catalog.version)
    return catalog
