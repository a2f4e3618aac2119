"""
Service container.

Services are built once in ``create_app`` and kept in ``app.extensions`` so
routes and middleware share the same instances.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

import httpx
from flask import current_app
from sqlalchemy.orm import sessionmaker

from maintenance_gate.config import Settings
from maintenance_gate.services.audit_service import AuditService
from maintenance_gate.services.control_service import MaintenanceControlService
from maintenance_gate.services.gate_service import GateEngine
from maintenance_gate.services.license_client import LicenseApiClient
from maintenance_gate.services.license_service import LicenseManager
from maintenance_gate.services.settings_store import SettingsStore
from maintenance_gate.services.template_service import TemplateRegistry

EXTENSION_KEY = "maintenance_gate"


@dataclass
class Services:
    settings: Settings
    store: SettingsStore
    audit: AuditService
    license_manager: LicenseManager
    templates: TemplateRegistry
    gate: GateEngine
    control: MaintenanceControlService


def build_services(
    app_settings: Settings,
    session_factory: sessionmaker,
    license_transport: Optional[httpx.BaseTransport] = None,
) -> Services:
    store = SettingsStore(session_factory)
    audit = AuditService(session_factory)

    client = LicenseApiClient(
        base_url=app_settings.license_api_url,
        product_id=app_settings.license_product_id,
        site_identifier=app_settings.site_url,
        timeout=app_settings.license_api_timeout_seconds,
        transport=license_transport,
    )
    license_manager = LicenseManager(
        store,
        audit,
        client,
        grace_period=timedelta(days=max(0, app_settings.license_grace_period_days)),
        check_interval=timedelta(hours=max(1, app_settings.license_check_interval_hours)),
    )

    templates = TemplateRegistry()
    gate = GateEngine(
        store,
        templates,
        license_manager=license_manager,
        site_name=app_settings.site_name,
        admin_email=app_settings.admin_email,
    )
    control = MaintenanceControlService(
        store,
        audit,
        gate,
        api_key_override=app_settings.maintenance_api_key,
    )

    return Services(
        settings=app_settings,
        store=store,
        audit=audit,
        license_manager=license_manager,
        templates=templates,
        gate=gate,
        control=control,
    )


def get_services() -> Services:
    """Services for the current Flask app."""
    return current_app.extensions[EXTENSION_KEY]
