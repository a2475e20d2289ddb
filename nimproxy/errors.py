"""Error taxonomy and the OpenAI-style error envelope."""

from typing import Any, Dict, Optional


class ProxyError(Exception):
    """Base for errors that are reported to the client as an error envelope."""

    status_code = 500
    error_type = "proxy_error"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        return error_body(self.message, self.error_type, self.status_code)


class InvalidRequestError(ProxyError):
    """Malformed client input."""

    status_code = 400
    error_type = "invalid_request_error"


class PayloadTooLargeError(InvalidRequestError):
    """Request body over the configured size limit."""

    status_code = 413


class ConfigError(ProxyError):
    """Server misconfiguration, e.g. missing upstream credential."""

    status_code = 500
    error_type = "config_error"


class UpstreamError(ProxyError):
    """NIM rejected or failed the request.

    4xx statuses are mirrored to the client; 5xx and transport failures
    are reported as 502.
    """

    status_code = 502
    error_type = "nim_error"


class ProxyInternalError(ProxyError):
    """Unexpected local failure, including malformed upstream success bodies."""

    status_code = 500
    error_type = "proxy_error"


def error_body(message: str, error_type: str, code: int) -> Dict[str, Any]:
    return {"error": {"message": message, "type": error_type, "code": code}}
