"""Common schemas shared across modules."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    Base model serialized with camelCase keys.

    Field names stay snake_case in Python; `model_dump(by_alias=True)`
    produces the JSON shape the frontend and export sidecars expect.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ErrorResponse(BaseModel):
    """Error body returned by the global exception handlers."""

    detail: str
    error_type: str
    error_id: str
