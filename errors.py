from typing import Any, Dict, Optional


class AppError(Exception):
    status_code = 500

    def __init__(
        self,
        message: str,
        extra: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.extra = extra or {}
        self.headers = headers

    def to_dict(self) -> Dict[str, Any]:
        body = {"error": self.message}
        body.update(self.extra)
        return body


class ValidationError(AppError):
    status_code = 400


class ImageRejectedError(ValidationError):
    """Uploaded photo failed the plant-presence check."""


class AuthenticationError(AppError):
    status_code = 401


class AuthorizationError(AppError):
    status_code = 403


class NotFoundError(AppError):
    status_code = 404


class UpstreamError(AppError):
    status_code = 502


class PersistenceError(AppError):
    status_code = 500


class ConfigurationError(AppError):
    status_code = 500


class ImageDecodeError(Exception):
    pass
