"""
License API routes (admin session only).
"""

from flask import Blueprint, jsonify, request
from pydantic import ValidationError as PydanticValidationError

from maintenance_gate.api.auth_middleware import get_current_actor, require_admin
from maintenance_gate.api.dependencies import get_services
from maintenance_gate.schemas.license import LicenseActivateRequest, LicenseInfoResponse
from maintenance_gate.utils.exceptions import ValidationError

bp = Blueprint("license", __name__, url_prefix="/api/license")


def _license_info() -> LicenseInfoResponse:
    manager = get_services().license_manager
    info = manager.get_license_info()
    return LicenseInfoResponse(
        **info.to_dict(redact=True),
        effective_plan=manager.get_plan(),
        active=manager.is_active(),
    )


@bp.route("", methods=["GET"])
@bp.route("/", methods=["GET"])
@require_admin
def get_license():
    return jsonify(_license_info().model_dump(mode="json"))


@bp.route("/activate", methods=["POST"])
@require_admin
def activate_license():
    data = request.get_json(silent=True) or {}
    try:
        req = LicenseActivateRequest.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(
            "Invalid license activation request",
            details={"errors": exc.errors(include_url=False, include_context=False)},
        )

    result = get_services().license_manager.activate(req.license_key, req.email or "", actor=get_current_actor())
    status_code = 200 if result.success else 400
    return jsonify(result.to_dict()), status_code


@bp.route("/deactivate", methods=["POST"])
@require_admin
def deactivate_license():
    result = get_services().license_manager.deactivate(actor=get_current_actor())
    status_code = 200 if result.success else 400
    return jsonify(result.to_dict()), status_code


@bp.route("/check", methods=["POST"])
@require_admin
def check_license():
    active = get_services().license_manager.check_license_status(force=True)
    return jsonify({"active": bool(active), "license": _license_info().model_dump(mode="json")})
