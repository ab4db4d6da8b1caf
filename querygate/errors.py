# QueryGate - error taxonomy
#
# Runtime errors are absorbed at the sanitizer/executor boundary into a generic
# clarification or the fixed no-data response; `kind` is for logs only.


class GatewayError(Exception):
    kind = "gateway_error"

    def __init__(self, message: str = "", kind: str | None = None):
        super().__init__(message or self.kind)
        if kind:
            self.kind = kind


class AccessDenied(GatewayError):
    """Resource, field or operator not permitted for the caller's role."""
    kind = "access_denied"


class MalformedIntent(GatewayError):
    """Translator output that cannot be interpreted as a query intent."""
    kind = "malformed_intent"


class ExecutionTimeout(GatewayError):
    kind = "timeout"


class ExecutionFailure(GatewayError):
    kind = "store_failure"


class ConfigurationGap(GatewayError):
    """Resource needs site scoping but has no known scope field."""
    kind = "configuration_gap"


class TenantRequiredError(GatewayError, ValueError):
    """Raised when tenant_id is None or empty."""
    kind = "missing_tenant"


class CatalogError(Exception):
    """Invalid catalog or role policy configuration. Fatal at startup."""
