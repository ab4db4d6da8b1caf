# QueryGate - policy-constrained natural-language query gateway
# Client: bearer JWT + question. Every read goes through the QueryGateway (no direct store access).
import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI

from auth import require_caller
from config import get_settings
from database.database import init_db
from querygate import AuthenticatedCaller, QueryExecutor, QueryGateway, load_catalog, load_role_policies
from querygate.audit import get_audit_sample, shutdown_audit_logger, start_audit_logger
from server.chat import get_gateway, resolve_context
from server.chat import router as chat_router
from server.data_access import DatabaseIdentityResolver, SqlAlchemyStore
from server.llm import build_translator

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    session_factory = await init_db(settings.database_url)
    # a broken catalog or role table stops startup here
    catalog = load_catalog(settings.catalog_path)
    policies = load_role_policies(settings.policy_path, known_keys=set(catalog))
    start_audit_logger(settings.audit_log_path)
    app.state.gateway = QueryGateway(
        catalog=catalog,
        policies=policies,
        translator=build_translator(settings),
        executor=QueryExecutor(SqlAlchemyStore(session_factory), catalog, timeout=settings.query_timeout_seconds),
        identity=DatabaseIdentityResolver(session_factory),
        default_limit=settings.default_query_limit,
        max_limit=settings.max_query_limit,
    )
    logger.info("QueryGate ready (catalog %s, policies %s)", catalog.version, policies.version)
    yield
    # shutdown
    shutdown_audit_logger()


app = FastAPI(
    title="QueryGate",
    description="Ask questions about your tenant's operational data - read-only, policy-gated",
    lifespan=lifespan,
)

app.include_router(chat_router)


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/api/audit/sample")
async def audit_sample(
    limit: int = 20,
    caller: AuthenticatedCaller = Depends(require_caller),
    gateway: QueryGateway = Depends(get_gateway),
):
    """Recent audit entries for the caller's tenant (fingerprints only, no questions or record contents)."""
    context = await resolve_context(gateway, caller)
    return {"entries": get_audit_sample(limit, tenant_id=context.tenant_id)}


if __name__ == "__main__":
    import os
    import uvicorn
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    host = os.environ.get("UVICORN_HOST", "127.0.0.1")
    port = int(os.environ.get("PORT", "8000"))
    uvicorn.run("main:app", host=host, port=port, reload=False)
