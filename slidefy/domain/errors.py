# slidefy/domain/errors.py
from typing import Any, Dict, Optional


class SlidefyError(Exception):
    """Base error for carousel instantiation."""

    def __init__(
        self,
        message: str,
        error_code: str = "GENERAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class TemplateNotFoundError(SlidefyError):
    def __init__(self, template_id: str):
        super().__init__(
            message=f'Template "{template_id}" not found',
            error_code="TEMPLATE_NOT_FOUND",
            details={"template_id": template_id},
        )


class Base64DecodeError(SlidefyError):
    def __init__(self, message: str, **kwargs):
        super().__init__(message=message, error_code="BASE64_DECODE_ERROR", **kwargs)


class ImageBindingError(SlidefyError):
    """Undecodable or oversized image payload."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message=message, error_code="IMAGE_BINDING_ERROR", **kwargs)


class FontUnavailableError(SlidefyError):
    def __init__(self, family: str, style: str):
        super().__init__(
            message=f"Font not available: {family} {style}",
            error_code="FONT_UNAVAILABLE",
            details={"family": family, "style": style},
        )


class MaterializationError(SlidefyError):
    def __init__(self, message: str = "Materialization produced no element", **kwargs):
        super().__init__(message=message, error_code="MATERIALIZATION_ERROR", **kwargs)


class CompositingError(SlidefyError):
    def __init__(self, message: str, **kwargs):
        super().__init__(message=message, error_code="COMPOSITING_ERROR", **kwargs)


class PartitioningError(SlidefyError):
    def __init__(self, message: str, **kwargs):
        super().__init__(message=message, error_code="PARTITIONING_ERROR", **kwargs)
