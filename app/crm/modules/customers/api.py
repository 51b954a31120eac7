from __future__ import annotations

from flask import Blueprint, request

from app.crm.db import db_session
from app.crm.modules.customers.service import (
    create_customer,
    delete_customer,
    get_customer,
    list_customers,
    reactivate_customer,
    update_customer,
)
from app.crm.rbac import current_identity, require_admin, require_auth
from app.crm.utils import json_payload, ok, page_args, paginated, text_arg

bp = Blueprint("customers", __name__)


@bp.get("")
@require_auth
def customers_list():
    s = db_session()
    page, limit = page_args(request.args)
    result = list_customers(
        s,
        current_identity(),
        search=text_arg(request.args, "search"),
        customer_type=text_arg(request.args, "customer_type"),
        page=page,
        limit=limit,
    )
    return paginated("Customers retrieved.", result)


@bp.get("/<customer_id>")
@require_auth
def customer_detail(customer_id: str):
    s = db_session()
    c = get_customer(s, current_identity(), customer_id)
    return ok("Customer retrieved.", c.to_dict())


@bp.post("")
@require_auth
def customer_create():
    s = db_session()
    c = create_customer(s, current_identity(), json_payload())
    s.commit()
    return ok("Customer created.", c.to_dict(), 201)


@bp.put("/<customer_id>")
@require_auth
def customer_update(customer_id: str):
    s = db_session()
    c = update_customer(s, current_identity(), customer_id, json_payload())
    s.commit()
    return ok("Customer updated.", c.to_dict())


@bp.delete("/<customer_id>")
@require_auth
def customer_delete(customer_id: str):
    s = db_session()
    delete_customer(s, current_identity(), customer_id)
    s.commit()
    return ok("Customer deleted.")


@bp.post("/<customer_id>/reactivate")
@require_admin
def customer_reactivate(customer_id: str):
    s = db_session()
    c = reactivate_customer(s, current_identity(), customer_id)
    s.commit()
    return ok("Customer reactivated.", c.to_dict())
