import logging
import platform
from typing import Any, Dict, Optional

import httpx

from maintenance_gate import __version__
from maintenance_gate.utils.exceptions import LicenseTransportError

logger = logging.getLogger(__name__)


class LicenseApiClient:
    """Thin client for the remote licensing service.

    Every call carries a bounded timeout. Transport failures, 5xx answers and
    unreadable bodies raise LicenseTransportError; 4xx answers that still carry
    a JSON object are returned as data so the remote message can be surfaced.
    """

    def __init__(
        self,
        base_url: str,
        product_id: str,
        site_identifier: str,
        timeout: float = 15.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.product_id = product_id
        self.site_identifier = site_identifier
        self.timeout = timeout
        self._transport = transport
        self.headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": f"maintenance-gate/{__version__}",
        }

    @staticmethod
    def environment_versions() -> Dict[str, str]:
        return {
            "plugin_version": __version__,
            "python_version": platform.python_version(),
        }

    def activate(self, license_key: str, email: str) -> Dict[str, Any]:
        return self.post("/activate", {
            "license_key": license_key,
            "email": email,
            "site_identifier": self.site_identifier,
            "product_id": self.product_id,
            "versions": self.environment_versions(),
        })

    def deactivate(self, license_key: str) -> Dict[str, Any]:
        return self.post("/deactivate", {
            "license_key": license_key,
            "site_identifier": self.site_identifier,
            "product_id": self.product_id,
        })

    def verify(self, license_key: str) -> Dict[str, Any]:
        return self.post("/verify", {
            "license_key": license_key,
            "site_identifier": self.site_identifier,
            "product_id": self.product_id,
        })

    def post(self, endpoint: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST ``payload`` as JSON and return the decoded JSON object."""
        url = f"{self.base_url}{endpoint}"
        operation = endpoint.strip("/") or "request"

        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(url, json=payload, headers=self.headers)
        except httpx.HTTPError as e:
            logger.warning(f"License server {operation} failed: {type(e).__name__}: {e}")
            raise LicenseTransportError(operation, str(e) or type(e).__name__) from e

        if response.status_code >= 500:
            logger.warning(f"License server {operation} answered HTTP {response.status_code}")
            raise LicenseTransportError(operation, f"server error (HTTP {response.status_code})")

        try:
            data = response.json()
        except ValueError as e:
            logger.warning(f"License server {operation} returned non-JSON body (HTTP {response.status_code})")
            raise LicenseTransportError(operation, f"invalid response (HTTP {response.status_code})") from e

        if not isinstance(data, dict):
            raise LicenseTransportError(operation, f"unexpected response (HTTP {response.status_code})")

        if response.status_code >= 400:
            logger.info(f"License server {operation} answered HTTP {response.status_code}")
        return data
