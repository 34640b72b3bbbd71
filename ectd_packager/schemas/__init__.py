"""Pydantic schemas for API request/response validation."""

from ectd_packager.schemas.common import CamelModel, ErrorResponse

__all__ = [
    "CamelModel",
    "ErrorResponse",
]
