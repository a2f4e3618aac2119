class MaintenanceGateError(Exception):
    """Base exception for maintenance gate errors"""
    def __init__(self, code: str, message: str, status_code: int = 400, field: str = None, details: dict = None):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.field = field
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(MaintenanceGateError):
    def __init__(self, message: str, field: str = None, details: dict = None):
        super().__init__("VALIDATION_ERROR", message, 400, field, details)


class UnknownSettingError(ValidationError):
    def __init__(self, name: str):
        super().__init__(f"Unknown setting: {name}", field=name)


class ExternalServiceError(MaintenanceGateError):
    def __init__(self, service_name: str, operation: str, reason: str = None):
        message = f"External service error: {service_name} {operation}"
        if reason:
            message += f": {reason}"
        self.reason = reason or ""
        super().__init__(
            "EXTERNAL_SERVICE_ERROR",
            message,
            502,
            details={"service": service_name, "operation": operation}
        )


class LicenseTransportError(ExternalServiceError):
    """License server unreachable, timed out, or returned an unreadable body"""
    def __init__(self, operation: str, reason: str = None):
        super().__init__("License server", operation, reason)
