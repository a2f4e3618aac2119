"""
Maintenance control API routes.

Status and mode changes are open to admin sessions and to external tools
presenting the API key. Quick toggle, reset, preview and key management are
admin-session only.
"""

import logging

from flask import Blueprint, Response, jsonify, request
from pydantic import ValidationError as PydanticValidationError

from maintenance_gate.api.auth_middleware import get_current_actor, require_admin, require_api_access
from maintenance_gate.api.dependencies import get_services
from maintenance_gate.schemas.maintenance import (
    ActivateRequest,
    MaintenanceStatusResponse,
    TemplateUpdateRequest,
)
from maintenance_gate.utils.exceptions import ValidationError

bp = Blueprint("maintenance", __name__, url_prefix="/api/maintenance")

logger = logging.getLogger(__name__)


def _result_response(result):
    status_code = 200 if result.success else 400
    return jsonify(result.to_dict()), status_code


@bp.route("/status", methods=["GET"])
@require_api_access
def get_status():
    status = MaintenanceStatusResponse(**get_services().control.get_status())
    return jsonify(status.model_dump())


@bp.route("/activate", methods=["POST"])
@require_api_access
def activate():
    data = request.get_json(silent=True) or {}
    try:
        req = ActivateRequest.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError("Invalid activate request", details={"errors": exc.errors(include_url=False, include_context=False)})

    result = get_services().control.activate(
        mode=req.mode,
        template=req.template,
        message=req.message,
        actor=get_current_actor(),
    )
    return _result_response(result)


@bp.route("/deactivate", methods=["POST"])
@require_api_access
def deactivate():
    result = get_services().control.deactivate(actor=get_current_actor())
    return _result_response(result)


@bp.route("/template", methods=["POST"])
@require_api_access
def update_template():
    data = request.get_json(silent=True) or {}
    try:
        req = TemplateUpdateRequest.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError("Template is required", field="template", details={"errors": exc.errors(include_url=False, include_context=False)})

    result = get_services().control.update_template(req.template, actor=get_current_actor())
    return _result_response(result)


@bp.route("/settings", methods=["GET"])
@require_api_access
def get_settings():
    return jsonify(get_services().store.all_settings())


@bp.route("/settings", methods=["POST"])
@require_api_access
def update_settings():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")

    result = get_services().control.update_settings(data, actor=get_current_actor())
    return _result_response(result)


# ============ Admin-only Endpoints ============


@bp.route("/toggle", methods=["POST"])
@require_admin
def toggle():
    result = get_services().control.toggle(actor=get_current_actor())
    return _result_response(result)


@bp.route("/reset", methods=["POST"])
@require_admin
def reset_settings():
    result = get_services().control.reset_settings(actor=get_current_actor())
    return _result_response(result)


@bp.route("/templates", methods=["GET"])
@require_admin
def list_templates():
    return jsonify({"templates": get_services().templates.catalog()})


@bp.route("/preview", methods=["GET"])
@require_admin
def preview():
    page = get_services().control.preview(template=request.args.get("template"))
    # Admin preview is a normal page load, not an outage.
    return Response(page.body, status=200, headers=page.headers, mimetype="text/html")


@bp.route("/api-key", methods=["GET"])
@require_admin
def get_api_key():
    return jsonify({"api_key": get_services().control.get_api_key()})


@bp.route("/api-key", methods=["POST"])
@require_admin
def regenerate_api_key():
    result = get_services().control.regenerate_api_key(actor=get_current_actor())
    return _result_response(result)
