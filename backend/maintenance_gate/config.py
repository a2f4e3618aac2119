import json
from typing import Optional, Any

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Database
    database_url: str = "sqlite:///maintenance_gate.db"

    # Site identity
    site_url: str = "http://localhost:5000"
    site_name: str = "My Site"
    admin_email: str = ""  # Fallback contact email on the maintenance page

    # Auth
    secret_key: str = "change-me-in-production"
    session_cookie_name: str = "maintenance_gate_session"

    # Roles treated as administrators for the control API.
    # IMPORTANT: raw string (CSV or JSON list) to avoid pydantic-settings
    # "complex" env parsing which crashes on empty strings.
    admin_roles: Optional[str] = "administrator"

    # External control API key. When set it overrides the stored key.
    maintenance_api_key: Optional[str] = None

    # Use the first X-Forwarded-For entry as the client IP (behind a proxy only)
    trust_proxy_headers: bool = False

    # Licensing service
    license_api_url: str = "https://licensing.ez-it-solutions.com/api/v1"
    license_product_id: str = "ez-maintenance-pro"
    license_api_timeout_seconds: float = 15.0
    license_grace_period_days: int = 7

    # License verification jobs
    license_scheduler_enabled: bool = True
    license_check_interval_hours: int = 24
    license_check_on_admin_requests: bool = True
    license_check_min_interval_seconds: int = 60

    # Flask environment
    flask_env: str = "development"

    def is_dev(self) -> bool:
        """True when running in development mode."""
        return (self.flask_env or "").strip().lower() == "development"

    def get_admin_roles(self) -> list[str]:
        """Return normalized admin role identifiers.

        Parsing rules:
        - None/empty/whitespace -> []
        - JSON list string (starts with '[') -> parsed list
        - otherwise -> comma-separated list
        """
        return self._parse_list(self.admin_roles)

    @staticmethod
    def _parse_list(raw_value: Optional[str]) -> list[str]:
        if raw_value is None:
            return []

        raw = str(raw_value).strip()
        if not raw:
            return []

        items: list[Any]

        if raw.startswith("["):
            parsed: Any = None
            try:
                parsed = json.loads(raw)
            except json.JSONDecodeError:
                parsed = None

            if isinstance(parsed, list):
                items = parsed
            else:
                # Looks like JSON but isn't: split the bracket contents.
                stripped = raw
                if stripped.endswith("]"):
                    stripped = stripped[1:-1]
                items = stripped.split(",")
        else:
            items = raw.split(",")

        normalized: list[str] = []
        for item in items:
            if item is None:
                continue
            value = str(item).strip().lower()
            if not value:
                continue
            normalized.append(value)
        return normalized

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )


settings = Settings()
