"""Tests for the customers module (scoping, merge-update, soft delete)."""
import logging

import pytest
from werkzeug.security import generate_password_hash

from app.crm import create_app
from app.crm.db import session_scope
from app.crm.models import Base, User


def _user(username, role="agent", **kw):
    return User(
        username=username,
        email=f"{username}@agency.example",
        password_hash=generate_password_hash("pw-" + username),
        first_name=kw.get("first_name", username.title()),
        last_name=kw.get("last_name", "Agent"),
        role=role,
    )


@pytest.fixture()
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.delenv("JWT_SECRET", raising=False)

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        s.add_all([_user("admin", role="admin"), _user("ayse", first_name="Ayse"), _user("burak", first_name="Burak")])

    return app.test_client()


def _login(client, username):
    r = client.post("/api/auth/login", json={"username": username, "password": "pw-" + username})
    assert r.status_code == 200
    return {"Authorization": f"Bearer {r.json['data']['token']}"}


def _create(client, headers, **fields):
    body = {"first_name": "Mehmet", "last_name": "Kaya", "email": "mehmet@example.com"}
    body.update(fields)
    r = client.post("/api/customers", json=body, headers=headers)
    assert r.status_code == 201, r.json
    return r.json["data"]


def test_agent_sees_only_own_customers(client):
    ayse = _login(client, "ayse")
    burak = _login(client, "burak")
    c = _create(client, ayse, phone="555-0100")

    r = client.get("/api/customers", headers=ayse)
    assert r.status_code == 200
    assert [row["id"] for row in r.json["data"]] == [c["id"]]

    r = client.get("/api/customers", headers=burak)
    assert r.json["data"] == []
    assert r.json["pagination"]["total"] == 0

    # Out-of-scope rows are indistinguishable from missing ones.
    assert client.get(f"/api/customers/{c['id']}", headers=burak).status_code == 404
    assert client.put(f"/api/customers/{c['id']}", json={"phone": "1"}, headers=burak).status_code == 404
    assert client.delete(f"/api/customers/{c['id']}", headers=burak).status_code == 404
    assert client.get(f"/api/customers/{c['id']}", headers=ayse).json["data"]["phone"] == "555-0100"


def test_agent_cannot_assign_to_someone_else(client):
    ayse = _login(client, "ayse")
    burak_id = client.get("/api/auth/profile", headers=_login(client, "burak")).json["data"]["id"]

    c = _create(client, ayse, assigned_agent_id=burak_id)
    assert c["assigned_agent_id"] != burak_id
    assert c["agent_username"] == "ayse"


def test_admin_sees_everything_and_can_assign(client):
    admin = _login(client, "admin")
    ayse = _login(client, "ayse")
    burak_id = client.get("/api/auth/profile", headers=_login(client, "burak")).json["data"]["id"]

    _create(client, ayse)
    c = _create(client, admin, email="zeynep@example.com", assigned_agent_id=burak_id)
    assert c["assigned_agent_id"] == burak_id
    assert c["agent_username"] == "burak"

    r = client.get("/api/customers", headers=admin)
    assert r.json["pagination"]["total"] == 2
    assert {row["agent_username"] for row in r.json["data"]} == {"ayse", "burak"}

    r = client.post("/api/customers", json={"first_name": "A", "last_name": "B", "email": "a@b.co", "assigned_agent_id": "nobody"}, headers=admin)
    assert r.status_code == 400


def test_create_validation(client):
    ayse = _login(client, "ayse")

    r = client.post("/api/customers", json={"first_name": "Mehmet"}, headers=ayse)
    assert r.status_code == 400
    assert r.json["error"] == "Missing required fields"
    assert "Email" in r.json["message"]

    assert client.post("/api/customers", json={"first_name": "M", "last_name": "K", "email": "nope"}, headers=ayse).status_code == 400
    r = client.post(
        "/api/customers",
        json={"first_name": "M", "last_name": "K", "email": "m@k.co", "customer_type": "landlord"},
        headers=ayse,
    )
    assert r.status_code == 400
    r = client.post(
        "/api/customers",
        json={"first_name": "M", "last_name": "K", "email": "m@k.co", "budget_min": 500, "budget_max": 100},
        headers=ayse,
    )
    assert r.status_code == 400


def test_email_unique_per_agent(client):
    ayse = _login(client, "ayse")
    burak = _login(client, "burak")
    c = _create(client, ayse)
    assert c["customer_type"] == "buyer"

    r = client.post(
        "/api/customers",
        json={"first_name": "Other", "last_name": "Person", "email": "MEHMET@example.com"},
        headers=ayse,
    )
    assert r.status_code == 409
    assert r.json["error"] == "Email already exists"

    # Another agent may hold a customer with the same email.
    _create(client, burak)


def test_merge_update_and_explicit_null(client):
    ayse = _login(client, "ayse")
    c = _create(client, ayse, phone="555-0100", budget_min=100000, budget_max=250000, customer_type="both")

    r = client.put(f"/api/customers/{c['id']}", json={"phone": "555-0199"}, headers=ayse)
    assert r.status_code == 200
    data = r.json["data"]
    assert data["phone"] == "555-0199"
    assert data["first_name"] == "Mehmet"
    assert data["customer_type"] == "both"
    assert data["budget_max"] == 250000

    r = client.put(f"/api/customers/{c['id']}", json={"phone": None}, headers=ayse)
    assert r.status_code == 200
    assert r.json["data"]["phone"] is None
    assert r.json["data"]["email"] == "mehmet@example.com"

    assert client.put(f"/api/customers/{c['id']}", json={"first_name": None}, headers=ayse).status_code == 400
    assert client.put(f"/api/customers/{c['id']}", json={"customer_type": ""}, headers=ayse).status_code == 400
    assert client.put(f"/api/customers/{c['id']}", json={"budget_min": 300000}, headers=ayse).status_code == 400


def test_update_email_conflict(client):
    ayse = _login(client, "ayse")
    _create(client, ayse)
    other = _create(client, ayse, email="other@example.com")

    r = client.put(f"/api/customers/{other['id']}", json={"email": "mehmet@example.com"}, headers=ayse)
    assert r.status_code == 409

    # Re-saving its own email is not a conflict.
    r = client.put(f"/api/customers/{other['id']}", json={"email": "other@example.com"}, headers=ayse)
    assert r.status_code == 200


def test_soft_delete_hides_customer_and_frees_email(client):
    ayse = _login(client, "ayse")
    c = _create(client, ayse)

    r = client.delete(f"/api/customers/{c['id']}", headers=ayse)
    assert r.status_code == 200
    assert r.json["message"] == "Customer deleted."

    assert client.get(f"/api/customers/{c['id']}", headers=ayse).status_code == 404
    assert client.delete(f"/api/customers/{c['id']}", headers=ayse).status_code == 404
    assert client.get("/api/customers", headers=ayse).json["pagination"]["total"] == 0

    _create(client, ayse)


def test_list_search_filter_and_pagination(client):
    ayse = _login(client, "ayse")
    for i in range(12):
        _create(client, ayse, first_name=f"Client{i}", email=f"client{i}@example.com", customer_type="seller" if i % 3 == 0 else "buyer")
    _create(client, ayse, first_name="Mehmet", email="mehmet@example.com")

    r = client.get("/api/customers", headers=ayse)
    assert r.json["pagination"] == {"page": 1, "limit": 10, "total": 13, "totalPages": 2}
    assert len(r.json["data"]) == 10

    r = client.get("/api/customers?page=2", headers=ayse)
    assert len(r.json["data"]) == 3

    r = client.get("/api/customers?page=9", headers=ayse)
    assert r.status_code == 200
    assert r.json["data"] == []
    assert r.json["pagination"]["total"] == 13

    r = client.get("/api/customers?page=abc&limit=-4", headers=ayse)
    assert r.json["pagination"]["page"] == 1
    assert r.json["pagination"]["limit"] == 10

    assert client.get("/api/customers?limit=1000", headers=ayse).json["pagination"]["limit"] == 100

    r = client.get("/api/customers?search=mehm", headers=ayse)
    assert [row["first_name"] for row in r.json["data"]] == ["Mehmet"]

    r = client.get("/api/customers?customer_type=seller", headers=ayse)
    assert r.json["pagination"]["total"] == 4

    assert client.get("/api/customers?customer_type=landlord", headers=ayse).status_code == 400


def test_reactivate_is_admin_only(client):
    admin = _login(client, "admin")
    ayse = _login(client, "ayse")
    c = _create(client, ayse)
    assert client.delete(f"/api/customers/{c['id']}", headers=ayse).status_code == 200

    r = client.post(f"/api/customers/{c['id']}/reactivate", headers=ayse)
    assert r.status_code == 403
    assert r.json["success"] is False

    r = client.post(f"/api/customers/{c['id']}/reactivate", headers=admin)
    assert r.status_code == 200
    assert r.json["data"]["status"] == "active"
    assert client.get(f"/api/customers/{c['id']}", headers=ayse).status_code == 200

    # Only inactive customers can be reactivated.
    assert client.post(f"/api/customers/{c['id']}/reactivate", headers=admin).status_code == 404


def test_reactivate_refuses_email_clash(client):
    admin = _login(client, "admin")
    ayse = _login(client, "ayse")
    old = _create(client, ayse)
    client.delete(f"/api/customers/{old['id']}", headers=ayse)
    _create(client, ayse)

    r = client.post(f"/api/customers/{old['id']}/reactivate", headers=admin)
    assert r.status_code == 409


def test_non_object_body_is_rejected(client):
    ayse = _login(client, "ayse")
    r = client.post("/api/customers", json=["not", "an", "object"], headers=ayse)
    assert r.status_code == 400
    assert r.json["error"] == "Invalid body"


def test_email_is_stored_as_submitted(client):
    ayse = _login(client, "ayse")
    c = _create(client, ayse, email="Mehmet.Kaya@Example.com", phone="555-0100", customer_type="seller", budget_min=1000)

    got = client.get(f"/api/customers/{c['id']}", headers=ayse).json["data"]
    assert got["email"] == "Mehmet.Kaya@Example.com"
    assert got["phone"] == "555-0100"
    assert got["customer_type"] == "seller"
    assert got["budget_min"] == 1000
    assert got["first_name"] == "Mehmet"

    r = client.post(
        "/api/customers",
        json={"first_name": "X", "last_name": "Y", "email": "mehmet.kaya@example.com"},
        headers=ayse,
    )
    assert r.status_code == 409


def test_huge_page_number_returns_empty_page(client):
    ayse = _login(client, "ayse")
    _create(client, ayse)

    r = client.get("/api/customers?page=99999999999999999999", headers=ayse)
    assert r.status_code == 200
    assert r.json["data"] == []
    assert r.json["pagination"]["total"] == 1
    assert r.json["pagination"]["totalPages"] == 1


def test_budget_must_be_finite_and_in_range(client):
    ayse = _login(client, "ayse")
    base = {"first_name": "M", "last_name": "K", "email": "m@k.co"}

    for bad in ("nan", "inf", "-inf", 10**13, "1e400"):
        r = client.post("/api/customers", json={**base, "budget_max": bad}, headers=ayse)
        assert r.status_code == 400, bad
        assert r.json["error"] == "Validation failed"


def test_search_treats_wildcards_literally(client):
    ayse = _login(client, "ayse")
    _create(client, ayse)
    _create(client, ayse, first_name="Ali_Veli", email="ali@example.com")

    assert client.get("/api/customers?search=%25", headers=ayse).json["pagination"]["total"] == 0
    r = client.get("/api/customers?search=i_V", headers=ayse)
    assert [row["first_name"] for row in r.json["data"]] == ["Ali_Veli"]
    assert client.get("/api/customers?search=M_hmet", headers=ayse).json["pagination"]["total"] == 0


def test_forbidden_request_logs_required_role(client, caplog):
    ayse = _login(client, "ayse")
    c = _create(client, ayse)

    with caplog.at_level(logging.WARNING):
        r = client.post(f"/api/customers/{c['id']}/reactivate", headers=ayse)
    assert r.status_code == 403
    assert "user=ayse required_role=admin" in caplog.text
