# QueryGate - read-only store over the ORM tables (filter tree -> one SELECT)
import operator
from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy import ColumnElement, MetaData, Table, and_, false, or_, select, true
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from database.models import Base, User
from querygate.errors import ExecutionFailure
from querygate.executor import INVALID_RESOURCE
from querygate.identity import build_user_context
from querygate.models import AndFilter, AuthenticatedCaller, FieldMatch, FilterNode, OrFilter, UserContext

_COMPARATORS = {
    "gt": operator.gt,
    "gte": operator.ge,
    "lt": operator.lt,
    "lte": operator.le,
}


def _coerce(column, value: Any) -> Any:
    """Bring a JSON scalar to the column's Python type (ISO-8601 strings for dates)."""
    if value is None:
        return None
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return value
    try:
        if python_type is datetime:
            if not isinstance(value, str):
                raise TypeError("datetime value must be an ISO-8601 string")
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
            if parsed.tzinfo is not None:
                parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
            return parsed
        if python_type is date:
            if not isinstance(value, str):
                raise TypeError("date value must be an ISO-8601 string")
            return date.fromisoformat(value[:10])
        if python_type in (int, float):
            if isinstance(value, bool):
                raise TypeError("boolean is not a number")
            return python_type(value)
        if python_type is str:
            return value if isinstance(value, str) else str(value)
    except (TypeError, ValueError) as e:
        raise ExecutionFailure(f"cannot compare {column.name}: {e}", kind="invalid_filter") from e
    return value


def compile_filter(node: FilterNode, table: Table) -> ColumnElement[bool]:
    if isinstance(node, AndFilter):
        if not node.children:
            return true()
        return and_(*(compile_filter(c, table) for c in node.children))
    if isinstance(node, OrFilter):
        if not node.children:
            return false()
        return or_(*(compile_filter(c, table) for c in node.children))
    return _compile_match(node, table)


def _compile_match(node: FieldMatch, table: Table) -> ColumnElement[bool]:
    column = table.c.get(node.field)
    if column is None:
        raise ExecutionFailure(f"{table.name} has no column {node.field}", kind="invalid_filter")
    if node.op == "regex":
        pattern = f"(?i){node.value}" if "i" in node.options else node.value
        return column.regexp_match(pattern)
    if node.op in ("in", "nin"):
        values = [_coerce(column, v) for v in node.value]
        return column.in_(values) if node.op == "in" else column.not_in(values)
    value = _coerce(column, node.value)
    if node.op == "eq":
        return column.is_(None) if value is None else column == value
    if node.op == "ne":
        return column.is_not(None) if value is None else column != value
    return _COMPARATORS[node.op](column, value)


def _to_record(row) -> dict[str, Any]:
    return {k: v.isoformat() if isinstance(v, (date, datetime)) else v for k, v in row.items()}


class SqlAlchemyStore:
    """ReadOnlyStore over SQLAlchemy tables. Issues SELECT only and never commits."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], metadata: MetaData = Base.metadata):
        self._session_factory = session_factory
        self._tables = metadata.tables

    async def find(
        self,
        store_id: str,
        where: FilterNode,
        columns: tuple[str, ...],
        limit: int,
    ) -> list[dict[str, Any]]:
        table = self._tables.get(store_id)
        if table is None:
            raise ExecutionFailure(f"no table {store_id}", kind=INVALID_RESOURCE)
        missing = [c for c in columns if c not in table.c]
        if missing:
            raise ExecutionFailure(f"{store_id} has no columns {missing}", kind="invalid_projection")
        stmt = (
            select(*(table.c[c] for c in columns))
            .where(compile_filter(where, table))
            .limit(limit)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            rows = result.mappings().all()
        return [_to_record(row) for row in rows]


class DatabaseIdentityResolver:
    """Completes token claims from the users table when role or tenant is missing."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def resolve(self, caller: AuthenticatedCaller) -> UserContext:
        if caller.role and caller.tenant_id:
            return build_user_context(caller)
        async with self._session_factory() as session:
            r = await session.execute(
                select(User.role, User.tenant_id, User.sites).where(User.id == caller.caller_id)
            )
            row = r.one_or_none()
        if row is None:
            return build_user_context(caller)
        return build_user_context(caller, role=row.role, tenant_id=row.tenant_id, scope_values=row.sites or ())
