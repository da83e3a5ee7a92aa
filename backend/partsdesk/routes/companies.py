# Overview: Flask API routes for company operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g

from ..services import store_service
from ..decorators import require_auth, require_roles
from partsdesk.permissions import Role
from .errors import json_error


companies_bp = Blueprint("companies", __name__, url_prefix="/api/companies")


@companies_bp.get("")
@require_auth
def list_companies_route():
    try:
        companies = store_service.list_companies(g.actor)
        return jsonify({"companies": [company.to_dict() for company in companies]}), 200
    except Exception as e:
        return json_error(e, action="list companies")


@companies_bp.post("")
@require_auth
@require_roles(Role.SUPER_ADMIN)
def create_company_route():
    try:
        data = request.get_json(silent=True) or {}
        company = store_service.create_company(g.actor, data, user_id=g.current_user.id)
        return jsonify({"company": company.to_dict()}), 201
    except Exception as e:
        return json_error(e, action="create company")


@companies_bp.get("/<company_id>")
@require_auth
def get_company_route(company_id: str):
    try:
        company = store_service.get_company(g.actor, company_id, user_id=g.current_user.id)
        return jsonify({"company": company.to_dict()}), 200
    except Exception as e:
        return json_error(e, action="load company")


@companies_bp.put("/<company_id>")
@require_auth
@require_roles(Role.SUPER_ADMIN)
def update_company_route(company_id: str):
    try:
        data = request.get_json(silent=True) or {}
        company = store_service.update_company(g.actor, company_id, data, user_id=g.current_user.id)
        return jsonify({"company": company.to_dict()}), 200
    except Exception as e:
        return json_error(e, action="update company")


@companies_bp.delete("/<company_id>")
@require_auth
@require_roles(Role.SUPER_ADMIN)
def delete_company_route(company_id: str):
    """Delete an empty company. 409 while it still has stores or users."""
    try:
        store_service.delete_company(g.actor, company_id, user_id=g.current_user.id)
        return jsonify({"message": "Company deleted"}), 200
    except Exception as e:
        return json_error(e, action="delete company")
