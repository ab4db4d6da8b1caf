"""Intent sanitizer: allowlists, operator safety, bounds, fixed point."""

import math

import pytest

from querygate.models import AndFilter, Clarification, FieldMatch, OrFilter, SanitizedQuery
from querygate.sanitizer import (
    ACCESS_DENIED_MESSAGE,
    MALFORMED_INTENT_MESSAGE,
    MAX_FILTER_DEPTH,
    MAX_IN_VALUES,
    MAX_REGEX_LENGTH,
    clamp_limit,
    sanitize,
)

ROLES = ["superadmin", "project_director", "project_manager", "store_manager", "default", "Janitor"]

ADVERSARIAL_FILTERS = [
    {"tenant_id": "tenant-globex"},
    {"password": "hunter2", "bank_account": {"$ne": None}},
    {"$where": "this.password.length > 0"},
    {"$expr": {"$eq": ["$tenant_id", "tenant-globex"]}},
    {"$or": [{"tenant_id": "x"}, {"id": {"$in": ["a", "b"]}}, {"secret": 1}]},
    {"$and": "not-a-list"},
    {"$nor": [{"id": "a"}]},
    {"id": {"$not": {"$eq": "a"}}, "status": {"$function": "return true"}},
    {"id": {"nested": "document"}},
    {"id": {"$eq": {"$gt": ""}}},
    {"tenant_id.sub": "x", "id.deep.path": "y"},
    {"$or": [{"$and": [{"password": 1}, {"id": {"$gt": 1}}]}]},
]


def _depth(node) -> int:
    if node is None or isinstance(node, FieldMatch):
        return 0
    return 1 + max((_depth(c) for c in node.children), default=0)


# --- resource allowlist ---

@pytest.mark.parametrize("role", ROLES)
def test_never_returns_a_resource_outside_the_role(make_guard, catalog, role):
    guard = make_guard(role, scope_values=("site-north",))
    for key in list(catalog) + ["users", "payroll", "SITES ", ""]:
        for intent in ({"resource": key}, {"resourceKey": key, "filter": {"id": "x"}}, {"collectionKey": key}):
            out = sanitize(intent, guard)
            if isinstance(out, SanitizedQuery):
                assert out.resource_key in guard.allowed_resource_keys
            else:
                assert out.message == ACCESS_DENIED_MESSAGE


def test_not_permitted_resource_gives_generic_clarification(make_guard):
    out = sanitize({"resource": "purchase_orders"}, make_guard("Janitor"))
    assert isinstance(out, Clarification)
    assert out.message == ACCESS_DENIED_MESSAGE
    assert out.reason == "access_denied"
    assert "purchase_orders" not in out.message


def test_resource_key_is_case_insensitive(make_guard):
    out = sanitize({"resource": "  Sites "}, make_guard("default"))
    assert out.resource_key == "sites"


def test_missing_resource_is_denied(make_guard):
    out = sanitize({"filter": {"id": "x"}}, make_guard())
    assert out.message == ACCESS_DENIED_MESSAGE


# --- field allowlist ---

@pytest.mark.parametrize("role", ROLES)
def test_every_referenced_field_is_allowlisted(make_guard, role):
    guard = make_guard(role, scope_values=("site-north",))
    for key, allowed in guard.allowed_fields_by_resource.items():
        for flt in ADVERSARIAL_FILTERS:
            out = sanitize(
                {"resource": key, "filter": flt, "projection": {"tenant_id": 1, "password": 1, "id": 1}},
                guard,
            )
            assert isinstance(out, SanitizedQuery)
            assert out.field_names() <= set(allowed)
            assert "tenant_id" not in out.field_names()


def test_disallowed_field_is_dropped_and_query_proceeds(make_guard):
    out = sanitize(
        {
            "resource": "sites",
            "filter": {"password": "x", "site_name": "North Tower"},
            "projection": {"site_name": 1, "password": 1},
        },
        make_guard("store_manager"),
    )
    assert out.filter == FieldMatch(field="site_name", op="eq", value="North Tower")
    assert out.projection == ("site_name",)


def test_dotted_paths_collapse_to_top_level_field(make_guard):
    out = sanitize({"resource": "sites", "filter": {"site_name.first": "N"}}, make_guard())
    assert out.filter == FieldMatch(field="site_name", op="eq", value="N")


def test_tenant_field_cannot_be_named(make_guard):
    out = sanitize({"resource": "vendors", "filter": {"tenant_id": "tenant-globex"}}, make_guard())
    assert out.filter is None


# --- operators ---

def test_unknown_operators_are_dropped(make_guard):
    out = sanitize(
        {"resource": "sites", "filter": {"$where": "1", "code": {"$exists": True, "$eq": "NT"}}},
        make_guard(),
    )
    assert out.filter == FieldMatch(field="code", op="eq", value="NT")


def test_mixed_operator_and_plain_keys_drop_the_condition(make_guard):
    out = sanitize({"resource": "sites", "filter": {"code": {"$eq": "NT", "plain": 1}}}, make_guard())
    assert out.filter is None


def test_regex_options_only_keep_case_insensitive(make_guard):
    out = sanitize(
        {"resource": "sites", "filter": {"site_name": {"$regex": "^north", "$options": "imsx"}}},
        make_guard(),
    )
    assert out.filter == FieldMatch(field="site_name", op="regex", value="^north", options="i")


@pytest.mark.parametrize("pattern", ["(unclosed", "", "a" * (MAX_REGEX_LENGTH + 1), 42])
def test_bad_regex_is_dropped(make_guard, pattern):
    out = sanitize({"resource": "sites", "filter": {"site_name": {"$regex": pattern}}}, make_guard())
    assert out.filter is None


@pytest.mark.parametrize(
    "pattern",
    [
        "^(a+)+$",
        "(a|aa)*$",
        "(a*)*b",
        "(x+x+)+y",
        "^(\\w+\\s?)*$",
        "(?:a|b)+c",
        "(.*a){12}",
        "((ab)+c)+",
        "(a)\\1",
        "(?P<x>a)(?P=x)",
        "a*b*c*d*e",
    ],
)
def test_backtracking_prone_regex_is_dropped(make_guard, pattern):
    out = sanitize({"resource": "sites", "filter": {"site_name": {"$regex": pattern}}}, make_guard())
    assert out.filter is None


@pytest.mark.parametrize(
    "pattern",
    ["^north", ".*tower.*", "^(PO|PR)-\\d+$", "(?:ab)+", "colou?r", "^Site \\d{2,3}$", "[(+*]+x", "\\(a+\\)+"],
)
def test_linear_regex_is_kept(make_guard, pattern):
    out = sanitize({"resource": "sites", "filter": {"site_name": {"$regex": pattern}}}, make_guard())
    assert out.filter == FieldMatch(field="site_name", op="regex", value=pattern)


def test_in_list_bounds(make_guard):
    guard = make_guard()
    ok = sanitize({"resource": "sites", "filter": {"code": {"$in": ["A", "B"]}}}, guard)
    assert ok.filter == FieldMatch(field="code", op="in", value=("A", "B"))
    too_long = sanitize({"resource": "sites", "filter": {"code": {"$in": list(range(MAX_IN_VALUES + 1))}}}, guard)
    assert too_long.filter is None
    with_null = sanitize({"resource": "sites", "filter": {"code": {"$nin": ["A", None]}}}, guard)
    assert with_null.filter is None
    not_list = sanitize({"resource": "sites", "filter": {"code": {"$in": "A"}}}, guard)
    assert not_list.filter is None


def test_null_only_allowed_for_equality(make_guard):
    guard = make_guard()
    out = sanitize({"resource": "sites", "filter": {"address": {"$eq": None}, "code": {"$gt": None}}}, guard)
    assert out.filter == FieldMatch(field="address", op="eq", value=None)


def test_non_scalar_and_oversized_values_are_dropped(make_guard):
    out = sanitize(
        {
            "resource": "sites",
            "filter": {"code": ["a"], "location": "x" * 501, "site_name": {"$gt": math.inf}},
        },
        make_guard(),
    )
    assert out.filter is None


def test_several_fields_become_an_and(make_guard):
    out = sanitize({"resource": "sites", "filter": {"code": "NT", "location": "Pune"}}, make_guard())
    assert out.filter == AndFilter(children=(
        FieldMatch(field="code", op="eq", value="NT"),
        FieldMatch(field="location", op="eq", value="Pune"),
    ))


def test_or_branches_reduced_to_nothing_are_removed(make_guard):
    guard = make_guard()
    out = sanitize({"resource": "sites", "filter": {"$or": [{"password": 1}, {"code": "NT"}]}}, guard)
    assert out.filter == FieldMatch(field="code", op="eq", value="NT")
    empty = sanitize({"resource": "sites", "filter": {"$or": [{"password": 1}, "junk"]}}, guard)
    assert empty.filter is None


def test_nesting_is_bounded(make_guard):
    flt = {"site_name": "x"}
    for _ in range(MAX_FILTER_DEPTH + 3):
        flt = {"$and": [flt, {"code": "c"}], "location": {"$gte": "A", "$lt": "Z"}}
    out = sanitize({"resource": "sites", "filter": flt}, make_guard())
    assert isinstance(out, SanitizedQuery)
    assert 0 < _depth(out.filter) <= MAX_FILTER_DEPTH


# --- limit ---

def test_oversized_limit_is_clamped_not_rejected(make_guard):
    out = sanitize({"resource": "sites", "limit": 100000}, make_guard())
    assert out.limit == 500


def test_limit_defaults_when_absent(make_guard):
    assert sanitize({"resource": "sites"}, make_guard()).limit == 100


@pytest.mark.parametrize(
    "raw,expected",
    [(None, 100), ("50", 100), (True, 100), (0, 1), (-5, 1), (7.9, 7), (math.inf, 100), (math.nan, 100), (500, 500)],
)
def test_clamp_limit(raw, expected):
    assert clamp_limit(raw) == expected


def test_lower_configured_maximum_wins(make_guard):
    out = sanitize({"resource": "sites", "limit": 400}, make_guard(), default_limit=20, max_limit=50)
    assert out.limit == 50
    assert sanitize({"resource": "sites"}, make_guard(), default_limit=20, max_limit=50).limit == 20


# --- projection ---

def test_projection_keeps_catalog_order_and_includes_only(make_guard, catalog):
    out = sanitize(
        {"resource": "sites", "projection": {"code": 1, "site_name": True, "location": 0, "address": "yes"}},
        make_guard(),
    )
    assert out.projection == ("site_name", "code")


def test_non_object_projection_means_all_fields(make_guard):
    out = sanitize({"resource": "sites", "projection": ["site_name"]}, make_guard())
    assert out.projection == ()


# --- malformed and clarification ---

@pytest.mark.parametrize("intent", [None, "sites", ["resource", "sites"], 3, {}, {"unknown": 1}])
def test_malformed_intents(make_guard, intent):
    out = sanitize(intent, make_guard())
    assert isinstance(out, Clarification)
    assert out.message == MALFORMED_INTENT_MESSAGE


def test_non_object_filter_is_malformed(make_guard):
    out = sanitize({"resource": "sites", "filter": "site_name = 'x'"}, make_guard())
    assert out.message == MALFORMED_INTENT_MESSAGE


def test_translator_clarification_is_passed_through(make_guard):
    out = sanitize({"clarification": "Which site do you mean?"}, make_guard())
    assert out == Clarification(message="Which site do you mean?", reason="translator")


def test_blank_clarification_is_malformed(make_guard):
    out = sanitize({"clarification": "  ", "resource": "sites"}, make_guard())
    assert out.message == MALFORMED_INTENT_MESSAGE


# --- fixed point ---

FIXED_POINT_INTENTS = [
    {"resource": "sites"},
    {
        "resource": "sites",
        "filter": {"site_name": {"$regex": "north", "$options": "i"}},
        "projection": {"site_name": 1, "code": 1},
        "limit": 10,
    },
    {"resource": "sites", "filter": {"$or": [{"code": "NT"}, {"code": {"$in": ["SY", "EP"]}}], "location": {"$ne": None}}},
    {"resource": "sites", "filter": {"site_name": {"$gte": "A", "$lt": "N"}}},
    {"resource": "sites", "filter": {"$AND": [{"code": "NT"}, {"$or": [{"id": "a"}, {"id": "b"}]}]}},
]


@pytest.mark.parametrize("role", ROLES)
def test_sanitized_query_is_a_fixed_point(make_guard, role):
    guard = make_guard(role, scope_values=("site-north",))
    deep = {"site_name": "x"}
    for _ in range(MAX_FILTER_DEPTH + 2):
        deep = {"$or": [deep, {"code": "c"}], "location": {"$gte": "A", "$lt": "Z"}}
    for intent in FIXED_POINT_INTENTS + [{"resource": "sites", "filter": deep}]:
        first = sanitize(intent, guard)
        assert isinstance(first, SanitizedQuery)
        second = sanitize(first.as_intent(), guard)
        assert second == first
        assert second.fingerprint() == first.fingerprint()


def test_adversarial_output_is_a_fixed_point(make_guard):
    guard = make_guard("superadmin")
    for flt in ADVERSARIAL_FILTERS:
        first = sanitize({"resource": "sites", "filter": flt}, guard)
        assert sanitize(first.as_intent(), guard) == first


def test_cache_key_is_tenant_and_role_bound(make_guard):
    q = sanitize({"resource": "sites"}, make_guard())
    assert q.cache_key("tenant-acme", "superadmin") != q.cache_key("tenant-globex", "superadmin")
    assert q.cache_key("tenant-acme", "superadmin").startswith("querygate:tenant-acme:superadmin:")


def test_or_of_nothing_is_distinct_from_match_all():
    assert OrFilter().to_raw() == {"$or": []}
    assert AndFilter().to_raw() == {"$and": []}
