"""
QueryGateway: question -> UserContext -> GuardResult -> intent -> SanitizedQuery
-> ExecutionResult -> RenderedResponse.

One instance is built at startup around the immutable catalog and role table
and shared by every request; nothing here holds per-request state.
"""

import logging
import uuid

from .audit import log_audit
from .executor import QueryExecutor
from .identity import IdentityResolver
from .models import (
    AuditLogEntry,
    AuthenticatedCaller,
    Clarification,
    ExecutionResult,
    PolicyDecision,
    RenderedResponse,
    SanitizedQuery,
    UserContext,
)
from .policy import GuardResult, resolve_guard
from .renderer import render
from .resources import DEFAULT_QUERY_LIMIT, MAX_QUERY_LIMIT, ResourceCatalog
from .roles import RolePolicyTable
from .sanitizer import sanitize
from .translator import NOT_CONFIGURED_MESSAGE, TRANSLATOR_ERROR_MESSAGE, IntentTranslator

logger = logging.getLogger(__name__)

EMPTY_QUESTION_MESSAGE = "Please ask a question about the data."
NO_RESOURCES_MESSAGE = "You don't have access to any queryable data."


class QueryGateway:
    def __init__(
        self,
        catalog: ResourceCatalog,
        policies: RolePolicyTable,
        translator: IntentTranslator,
        executor: QueryExecutor,
        identity: IdentityResolver,
        default_limit: int = DEFAULT_QUERY_LIMIT,
        max_limit: int = MAX_QUERY_LIMIT,
    ):
        self.catalog = catalog
        self.policies = policies
        self._translator = translator
        self._executor = executor
        self._identity = identity
        self._default_limit = default_limit
        self._max_limit = max_limit

    def guard_for(self, context: UserContext) -> GuardResult:
        return resolve_guard(context.role, context, self.catalog, self.policies)

    async def resolve(self, caller: AuthenticatedCaller) -> UserContext:
        """Raises TenantRequiredError when no tenant can be resolved."""
        return await self._identity.resolve(caller)

    async def ask(self, question: str, caller: AuthenticatedCaller, trace_id: str | None = None) -> RenderedResponse:
        context = await self.resolve(caller)
        return await self.ask_as(question, context, trace_id)

    async def ask_as(self, question: str, context: UserContext, trace_id: str | None = None) -> RenderedResponse:
        trace_id = trace_id or f"tr-{uuid.uuid4().hex[:12]}"
        guard = self.guard_for(context)

        outcome = await self.build_query(question, guard)
        if isinstance(outcome, Clarification):
            decision = PolicyDecision.DENY if outcome.reason == "access_denied" else PolicyDecision.CLARIFY
            self._audit(trace_id, context, guard, decision, "clarification", error_kind=outcome.reason)
            return render(None, clarification=outcome.message)

        result = await self._executor.execute(outcome, guard.scope_filter(outcome.resource_key), context.tenant_id)
        response = render(result)
        self._audit(
            trace_id, context, guard, PolicyDecision.ALLOW,
            "data" if response.has_data else "no_data",
            query=outcome, result=result,
        )
        return response

    async def build_query(self, question: str, guard: GuardResult) -> SanitizedQuery | Clarification:
        if not isinstance(question, str) or not question.strip():
            return Clarification(message=EMPTY_QUESTION_MESSAGE, reason="empty_question")
        if not guard.allowed_resource_keys:
            return Clarification(message=NO_RESOURCES_MESSAGE, reason="no_resources")
        if not self._translator.configured:
            return Clarification(message=NOT_CONFIGURED_MESSAGE, reason="not_configured")
        try:
            intent = await self._translator.translate(question.strip(), guard.menu())
        except Exception:
            logger.exception("Intent translator failed")
            return Clarification(message=TRANSLATOR_ERROR_MESSAGE, reason="translator_error")
        return sanitize(intent, guard, self._default_limit, self._max_limit)

    def _audit(
        self,
        trace_id: str,
        context: UserContext,
        guard: GuardResult,
        decision: PolicyDecision,
        outcome: str,
        error_kind: str | None = None,
        query: SanitizedQuery | None = None,
        result: ExecutionResult | None = None,
    ) -> None:
        log_audit(AuditLogEntry(
            trace_id=trace_id,
            caller_id=context.caller_id,
            tenant_id=context.tenant_id,
            role=guard.role,
            resource_key=query.resource_key if query else None,
            query_fingerprint=query.fingerprint() if query else None,
            policy_decision=decision,
            outcome=outcome,
            error_kind=result.error if result else error_kind,
            total=result.total if result else 0,
            details={"catalog_version": self.catalog.version, "policy_version": self.policies.version},
        ))
