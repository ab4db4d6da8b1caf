"""
Intent Sanitizer: the trust boundary between translator output and the store.

Every rule defaults to rejection: a resource key must be permitted for the
caller's role, every field must be allowlisted for that resource, every operator
must belong to a fixed safe set, and every value must have a bounded, scalar
shape. Anything else is dropped; an intent that cannot name a permitted
resource is turned into a generic clarification. The filter is only inspected,
never evaluated.
"""

import logging
import math
import re
from typing import Any, Optional

from .errors import AccessDenied, MalformedIntent
from .models import AndFilter, Clarification, FieldMatch, FilterNode, OrFilter, QueryIntent, SanitizedQuery
from .policy import GuardResult
from .resources import DEFAULT_QUERY_LIMIT, MAX_QUERY_LIMIT

logger = logging.getLogger(__name__)

OPERATOR_PREFIX = "$"
COMPARISON_OPS = frozenset({"eq", "ne", "gt", "gte", "lt", "lte", "in", "nin", "regex"})
LOGICAL_OPS = frozenset({"and", "or"})
REGEX_OPTIONS = "i"

MAX_FILTER_DEPTH = 5
MAX_IN_VALUES = 100
MAX_REGEX_LENGTH = 200
# unbounded quantifiers (*, +, {n,}) allowed in one pattern
MAX_REGEX_UNBOUNDED = 3
MAX_STRING_LENGTH = 500

ACCESS_DENIED_MESSAGE = "I can only answer from allowed data. Please ask about data you have access to."
MALFORMED_INTENT_MESSAGE = "I couldn't parse the query. Please rephrase your question."


def sanitize(
    intent: Any,
    guard: GuardResult,
    default_limit: int = DEFAULT_QUERY_LIMIT,
    max_limit: int = MAX_QUERY_LIMIT,
) -> SanitizedQuery | Clarification:
    """Validate and rewrite an untrusted intent. Never raises for bad input."""
    parsed = QueryIntent.from_raw(intent)
    if parsed is None:
        return Clarification(message=MALFORMED_INTENT_MESSAGE, reason=MalformedIntent.kind)

    if parsed.clarification is not None:
        if isinstance(parsed.clarification, str) and parsed.clarification.strip():
            return Clarification(message=parsed.clarification, reason="translator")
        return Clarification(message=MALFORMED_INTENT_MESSAGE, reason=MalformedIntent.kind)

    try:
        return _sanitize(parsed, guard, default_limit, min(max_limit, MAX_QUERY_LIMIT))
    except AccessDenied as e:
        logger.info("Intent rejected for role %s: %s", guard.role, e)
        return Clarification(message=ACCESS_DENIED_MESSAGE, reason=e.kind)
    except MalformedIntent as e:
        logger.info("Intent rejected as malformed: %s", e)
        return Clarification(message=MALFORMED_INTENT_MESSAGE, reason=e.kind)


def _sanitize(parsed: QueryIntent, guard: GuardResult, default_limit: int, max_limit: int) -> SanitizedQuery:
    if not parsed.model_fields_set:
        raise MalformedIntent("empty intent")
    resource_key = _resolve_resource(parsed.resource_key, guard)
    allowed = guard.allowed_fields_by_resource[resource_key]
    allowed_set = frozenset(allowed)

    if parsed.filter is None:
        flt = None
    elif isinstance(parsed.filter, dict):
        flt = _sanitize_filter(parsed.filter, allowed_set, depth=0)
        if flt is not None:
            flt = _bound_depth(flt, 1)
    else:
        raise MalformedIntent("filter is not an object")

    query = SanitizedQuery(
        resource_key=resource_key,
        filter=flt,
        projection=_sanitize_projection(parsed.projection, allowed),
        limit=clamp_limit(parsed.limit, default_limit, max_limit),
    )
    if not query.field_names() <= allowed_set:
        raise AccessDenied("sanitized query references a field outside the allowlist")
    return query


def _resolve_resource(raw: Any, guard: GuardResult) -> str:
    if not isinstance(raw, str) or not raw.strip():
        raise AccessDenied("no resource requested")
    key = raw.strip().lower()
    if key not in guard.allowed_resource_keys:
        raise AccessDenied(f"resource {key!r} not permitted")
    return key


def clamp_limit(raw: Any, default: int = DEFAULT_QUERY_LIMIT, maximum: int = MAX_QUERY_LIMIT) -> int:
    """Clamp to [1, maximum]; absent or non-numeric -> default. Oversized asks are truncated."""
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        value = default
    elif isinstance(raw, float) and not math.isfinite(raw):
        value = default
    else:
        value = int(raw)
    return max(1, min(maximum, value))


# --- filter walking ---

def _dropped(what: str, name: Any) -> None:
    logger.debug("Dropped %s %r from intent", what, name)


def _combine(cls: type[AndFilter] | type[OrFilter], nodes: list[FilterNode]) -> Optional[FilterNode]:
    if not nodes:
        return None
    if len(nodes) == 1:
        return nodes[0]
    return cls(children=tuple(nodes))


def _sanitize_filter(raw: dict, allowed: frozenset[str], depth: int) -> Optional[FilterNode]:
    """Object of operator keys and field paths -> filter tree; disallowed pairs are dropped."""
    nodes: list[FilterNode] = []
    for key, value in raw.items():
        if not isinstance(key, str):
            _dropped("key", key)
            continue
        if key.startswith(OPERATOR_PREFIX):
            node = _logical(key[1:].lower(), value, allowed, depth)
        else:
            node = _field_condition(key, value, allowed)
        if node is not None:
            nodes.append(node)
    return _combine(AndFilter, nodes)


def _logical(op: str, value: Any, allowed: frozenset[str], depth: int) -> Optional[FilterNode]:
    if op not in LOGICAL_OPS:
        _dropped("operator", op)
        return None
    if depth + 1 > MAX_FILTER_DEPTH:
        _dropped("nested operator beyond depth", op)
        return None
    if not isinstance(value, list):
        _dropped("operand of", op)
        return None
    children = []
    for branch in value:
        if not isinstance(branch, dict):
            _dropped("branch of", op)
            continue
        child = _sanitize_filter(branch, allowed, depth + 1)
        # a branch reduced to nothing is removed rather than turned into match-all
        if child is not None:
            children.append(child)
    return _combine(AndFilter if op == "and" else OrFilter, children)


def _bound_depth(node: FilterNode, depth: int) -> Optional[FilterNode]:
    """
    Drop logical nodes nested deeper than MAX_FILTER_DEPTH in the built tree.
    Implicit ANDs (several keys or operators in one object) count as a level,
    so the re-expressed query stays within bounds.
    """
    if isinstance(node, FieldMatch):
        return node
    if depth > MAX_FILTER_DEPTH:
        _dropped("nested operator beyond depth", node.kind)
        return None
    children = [c for c in (_bound_depth(c, depth + 1) for c in node.children) if c is not None]
    return _combine(type(node), children)


def _field_condition(path: str, value: Any, allowed: frozenset[str]) -> Optional[FilterNode]:
    field = path.split(".")[0]
    if field not in allowed:
        _dropped("field", path)
        return None
    if isinstance(value, dict):
        return _operator_conditions(field, value)
    if _is_scalar(value):
        return FieldMatch(field=field, op="eq", value=value)
    _dropped("value for field", field)
    return None


def _operator_conditions(field: str, cond: dict) -> Optional[FilterNode]:
    # embedded-document equality is not supported
    if not cond or not all(isinstance(k, str) and k.startswith(OPERATOR_PREFIX) for k in cond):
        _dropped("condition for field", field)
        return None
    options = cond.get("$options")
    nodes: list[FilterNode] = []
    for key, value in cond.items():
        op = key[1:].lower()
        if op == "options":
            continue
        if op not in COMPARISON_OPS:
            _dropped("operator", op)
            continue
        node = _comparison(field, op, value, options)
        if node is not None:
            nodes.append(node)
    return _combine(AndFilter, nodes)


def _comparison(field: str, op: str, value: Any, options: Any) -> Optional[FieldMatch]:
    if op in ("in", "nin"):
        if (
            not isinstance(value, (list, tuple))
            or len(value) > MAX_IN_VALUES
            or not all(v is not None and _is_scalar(v) for v in value)
        ):
            _dropped(f"${op} operand for", field)
            return None
        return FieldMatch(field=field, op=op, value=tuple(value))

    if op == "regex":
        if not isinstance(value, str) or not value or len(value) > MAX_REGEX_LENGTH:
            _dropped("$regex operand for", field)
            return None
        try:
            re.compile(value)
        except re.error:
            _dropped("invalid $regex for", field)
            return None
        if not _backtracking_bounded(value):
            _dropped("backtracking-prone $regex for", field)
            return None
        flags = REGEX_OPTIONS if isinstance(options, str) and REGEX_OPTIONS in options else ""
        return FieldMatch(field=field, op="regex", value=value, options=flags)

    if value is None and op not in ("eq", "ne"):
        _dropped(f"null ${op} operand for", field)
        return None
    if not _is_scalar(value):
        _dropped(f"${op} operand for", field)
        return None
    return FieldMatch(field=field, op=op, value=value)


_BRACE_QUANTIFIER = re.compile(r"\{\d*(,\d*)?\}")


def _skip_class(pattern: str, i: int) -> int:
    """Index just past the character class starting at pattern[i] == "["."""
    j = i + 1
    if j < len(pattern) and pattern[j] == "^":
        j += 1
    if j < len(pattern) and pattern[j] == "]":
        j += 1
    while j < len(pattern) and pattern[j] != "]":
        j += 2 if pattern[j] == "\\" else 1
    return j + 1


def _skip_group_prefix(pattern: str, i: int) -> int:
    """Index just past "(" and any "?:", "?=", "?<!", "?P<name>" style prefix."""
    j = i + 1
    if not pattern.startswith("?", j):
        return j
    j += 1
    if pattern.startswith("P<", j):
        return pattern.index(">", j) + 1
    if pattern.startswith(("<=", "<!"), j):
        return j + 2
    while j < len(pattern) and pattern[j] not in ":=!)":
        j += 1
    return j + 1 if j < len(pattern) and pattern[j] in ":=!" else j


def _backtracking_bounded(pattern: str) -> bool:
    """
    False for patterns whose matching time can blow up on a short value: a
    repeated group containing a quantifier or alternation (e.g. ^(a+)+$),
    backreferences, or more than MAX_REGEX_UNBOUNDED unbounded quantifiers.
    The store runs the pattern on its connection thread, out of reach of
    the fetch timeout.
    """
    if "(?P=" in pattern:
        return False
    frames = [{"quant": False, "alt": False}]
    closed = None
    unbounded = 0
    i, n = 0, len(pattern)
    while i < n:
        c = pattern[i]
        if c == "\\":
            if i + 1 < n and pattern[i + 1] in "123456789":
                return False
            i += 2
            closed = None
            continue
        if c == "[":
            i = _skip_class(pattern, i)
            closed = None
            continue
        if c == "(":
            frames.append({"quant": False, "alt": False})
            i = _skip_group_prefix(pattern, i)
            closed = None
            continue
        if c == ")":
            closed = frames.pop() if len(frames) > 1 else None
            if closed is not None:
                frames[-1]["quant"] |= closed["quant"]
                frames[-1]["alt"] |= closed["alt"]
            i += 1
            continue
        if c == "|":
            frames[-1]["alt"] = True
            i += 1
            closed = None
            continue

        width, repeats, open_ended = 0, False, False
        if c in "*+":
            width, repeats, open_ended = 1, True, True
        elif c == "?":
            width = 1
        elif c == "{":
            m = _BRACE_QUANTIFIER.match(pattern, i)
            if m:
                width, repeats, open_ended = m.end() - i, True, m.group().endswith(",}")
        if not width:
            i += 1
            closed = None
            continue
        if repeats and closed is not None and (closed["quant"] or closed["alt"]):
            return False
        frames[-1]["quant"] = True
        unbounded += open_ended
        i += width
        closed = None
    return unbounded <= MAX_REGEX_UNBOUNDED


def _is_scalar(value: Any) -> bool:
    if value is None or isinstance(value, bool):
        return True
    if isinstance(value, int):
        return True
    if isinstance(value, float):
        return math.isfinite(value)
    if isinstance(value, str):
        return len(value) <= MAX_STRING_LENGTH
    return False


def _sanitize_projection(raw: Any, allowed: tuple[str, ...]) -> tuple[str, ...]:
    """Included, allowlisted top-level fields in catalog order; empty means all allowed fields."""
    if not isinstance(raw, dict):
        return ()
    selected = set()
    for key, value in raw.items():
        if not isinstance(key, str) or not _is_include(value):
            continue
        field = key.split(".")[0]
        if field in allowed:
            selected.add(field)
        else:
            _dropped("projected field", key)
    return tuple(f for f in allowed if f in selected)


def _is_include(value: Any) -> bool:
    if value is True:
        return True
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value == 1
