from __future__ import annotations

from flask import Blueprint, request

from app.crm.db import db_session
from app.crm.modules.properties.service import (
    create_property,
    delete_property,
    get_property,
    list_properties,
    update_property,
)
from app.crm.rbac import current_identity, require_auth
from app.crm.utils import json_payload, ok, page_args, paginated, text_arg

bp = Blueprint("properties", __name__)


@bp.get("")
@require_auth
def properties_list():
    s = db_session()
    page, limit = page_args(request.args)
    result = list_properties(
        s,
        current_identity(),
        search=text_arg(request.args, "search"),
        property_type=text_arg(request.args, "property_type"),
        status=text_arg(request.args, "status"),
        city=text_arg(request.args, "city"),
        page=page,
        limit=limit,
    )
    return paginated("Properties retrieved.", result)


@bp.get("/<property_id>")
@require_auth
def property_detail(property_id: str):
    s = db_session()
    p = get_property(s, current_identity(), property_id)
    return ok("Property retrieved.", p.to_dict())


@bp.post("")
@require_auth
def property_create():
    s = db_session()
    p = create_property(s, current_identity(), json_payload())
    s.commit()
    return ok("Property created.", p.to_dict(), 201)


@bp.put("/<property_id>")
@require_auth
def property_update(property_id: str):
    s = db_session()
    p = update_property(s, current_identity(), property_id, json_payload())
    s.commit()
    return ok("Property updated.", p.to_dict())


@bp.delete("/<property_id>")
@require_auth
def property_delete(property_id: str):
    s = db_session()
    delete_property(s, current_identity(), property_id)
    s.commit()
    return ok("Property deleted.")
