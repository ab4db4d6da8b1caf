# QueryGate - Query Executor (read-only, tenant-isolated, time- and size-bounded fetch)
import asyncio
import logging
from typing import Any, Optional, Protocol

from .errors import ExecutionFailure, ExecutionTimeout, GatewayError, TenantRequiredError
from .identity import require_tenant_id
from .models import AndFilter, ExecutionResult, FieldMatch, FilterNode, SanitizedQuery
from .resources import ID_FIELD, MAX_QUERY_LIMIT, TENANT_FIELD, ResourceCatalog

logger = logging.getLogger(__name__)

QUERY_TIMEOUT_SECONDS = 15.0
INVALID_RESOURCE = "invalid resource"


class ReadOnlyStore(Protocol):
    """The only store capability the gateway can reach: one bounded find."""

    async def find(
        self,
        store_id: str,
        where: FilterNode,
        columns: tuple[str, ...],
        limit: int,
    ) -> list[dict[str, Any]]:
        ...


def build_predicate(query_filter: Optional[FilterNode], scope_filter: Optional[FilterNode], tenant_id: str) -> AndFilter:
    """AND of the sanitized filter, the scope predicate and the mandatory tenant predicate."""
    parts: list[FilterNode] = []
    if query_filter is not None:
        parts.append(query_filter)
    if scope_filter is not None:
        parts.append(scope_filter)
    parts.append(FieldMatch(field=TENANT_FIELD, op="eq", value=require_tenant_id(tenant_id)))
    return AndFilter(children=tuple(parts))


class QueryExecutor:
    """Runs one sanitized query against the store. Never retries, never writes."""

    def __init__(self, store: ReadOnlyStore, catalog: ResourceCatalog, timeout: float = QUERY_TIMEOUT_SECONDS):
        self._store = store
        self._catalog = catalog
        self._timeout = timeout

    async def execute(
        self,
        query: SanitizedQuery,
        scope_filter: Optional[FilterNode],
        tenant_id: str | None,
    ) -> ExecutionResult:
        descriptor = self._catalog.get(query.resource_key)
        if descriptor is None:
            logger.error("Executor received unmapped resource %r", query.resource_key)
            return ExecutionResult(records=[], total=0, error=INVALID_RESOURCE)

        try:
            where = build_predicate(query.filter, scope_filter, tenant_id)
        except TenantRequiredError as e:
            logger.error("Refusing to query %s without a tenant", query.resource_key)
            return ExecutionResult(records=[], total=0, error=e.kind)

        fields = query.projection or descriptor.allowed_fields
        columns = (ID_FIELD,) + tuple(f for f in fields if f != ID_FIELD)
        limit = max(1, min(query.limit, MAX_QUERY_LIMIT))

        try:
            records = await asyncio.wait_for(
                self._store.find(descriptor.store_id, where, columns, limit),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            err = ExecutionTimeout(f"fetch from {descriptor.store_id} exceeded {self._timeout}s")
            logger.warning("Query failed (%s): %s", err.kind, err)
            return ExecutionResult(records=[], total=0, error=err.kind)
        except GatewayError as e:
            logger.warning("Query failed (%s): %s", e.kind, e)
            return ExecutionResult(records=[], total=0, error=e.kind)
        except Exception as e:
            err = ExecutionFailure(f"{type(e).__name__} while reading {descriptor.store_id}")
            logger.warning("Query failed (%s): %s", err.kind, err, exc_info=True)
            return ExecutionResult(records=[], total=0, error=err.kind)

        records = [{k: r[k] for k in columns if k in r} for r in list(records)[:limit]]
        # total is the number of records returned, not the number of matches in the store
        return ExecutionResult(records=records, total=len(records))
