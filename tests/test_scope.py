"""Unit tests for access scoping, field coercion and token handling."""
from datetime import timedelta

import pytest
from sqlalchemy import select

from app.crm.errors import AuthenticationError, ValidationError
from app.crm.fields import Field, extract
from app.crm.models import User
from app.crm.modules.customers.models import Customer
from app.crm.modules.properties.service import can_transition
from app.crm.scope import Identity, OwnerScope
from app.crm.security import bearer_token, create_access_token, decode_access_token
from app.crm.utils import Page, page_args

ADMIN = Identity(id="u-admin", username="admin", role="admin")
AGENT = Identity(id="u-agent", username="ayse", role="agent")

CONFIG = {"JWT_SECRET": "unit-secret", "JWT_ALGORITHM": "HS256", "JWT_EXPIRES_MINUTES": 60}


class TestOwnerScope:
    scope = OwnerScope(Customer.assigned_agent_id)

    def test_admin_is_unrestricted(self):
        assert self.scope.predicate(ADMIN) is None
        stmt = select(Customer.id)
        assert self.scope.restrict(stmt, ADMIN) is stmt

    def test_agent_is_narrowed_to_own_rows(self):
        sql = str(self.scope.restrict(select(Customer.id), AGENT))
        assert "customers.assigned_agent_id = :assigned_agent_id_1" in sql
        compiled = self.scope.restrict(select(Customer.id), AGENT).compile()
        assert compiled.params["assigned_agent_id_1"] == "u-agent"


class TestStatusMachine:
    @pytest.mark.parametrize(
        "current,new",
        [("active", "sold"), ("active", "rented"), ("active", "inactive"), ("inactive", "active"), ("sold", "deleted"), ("rented", "rented")],
    )
    def test_allowed(self, current, new):
        assert can_transition(current, new)

    @pytest.mark.parametrize(
        "current,new",
        [("sold", "active"), ("rented", "sold"), ("inactive", "sold"), ("deleted", "active")],
    )
    def test_rejected(self, current, new):
        assert not can_transition(current, new)


class TestExtract:
    fields = (
        Field("name", "Name", required=True, max_length=5),
        Field("kind", "Kind", kind="choice", nullable=False, choices=("a", "b"), default="a"),
        Field("note", "Note"),
        Field("count", "Count", kind="int"),
    )

    def test_create_fills_defaults(self):
        assert extract({"name": " Bo "}, self.fields) == {"name": "Bo", "kind": "a", "note": None, "count": None}

    def test_create_reports_all_missing(self):
        with pytest.raises(ValidationError) as exc:
            extract({}, self.fields)
        assert exc.value.message == "Required fields missing: Name."

    def test_partial_only_returns_present_keys(self):
        assert extract({"note": None, "count": "3"}, self.fields, partial=True) == {"note": None, "count": 3}

    def test_partial_rejects_clearing_required(self):
        with pytest.raises(ValidationError):
            extract({"name": None}, self.fields, partial=True)
        with pytest.raises(ValidationError):
            extract({"kind": ""}, self.fields, partial=True)

    def test_coercion_errors(self):
        with pytest.raises(ValidationError):
            extract({"name": "toolong"}, self.fields)
        with pytest.raises(ValidationError):
            extract({"name": "x", "count": True}, self.fields)
        with pytest.raises(ValidationError):
            extract({"name": "x", "count": "many"}, self.fields)


def test_page_args_and_total_pages():
    assert page_args({}) == (1, 10)
    assert page_args({"page": "3", "limit": "25"}) == (3, 25)
    assert page_args({"page": "0", "limit": "500"}) == (1, 100)
    assert Page(items=[], page=1, limit=10, total=21).total_pages == 3
    assert Page(items=[], page=1, limit=10, total=0).total_pages == 0


def test_token_round_trip():
    user = User(id="u-agent", username="ayse", role="agent")
    identity = decode_access_token(create_access_token(user, CONFIG), CONFIG)
    assert identity == AGENT


def test_expired_token_is_rejected():
    user = User(id="u-agent", username="ayse", role="agent")
    token = create_access_token(user, CONFIG, expires_delta=timedelta(minutes=-1))
    with pytest.raises(AuthenticationError):
        decode_access_token(token, CONFIG)


def test_bearer_token_parsing():
    assert bearer_token("Bearer abc") == "abc"
    assert bearer_token("bearer  abc ") == "abc"
    assert bearer_token("Basic abc") is None
    assert bearer_token("Bearer ") is None
    assert bearer_token(None) is None
