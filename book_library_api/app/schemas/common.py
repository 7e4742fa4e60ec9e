"""
Shared building blocks for response schemas.

The public JSON contract uses camelCase keys (``createdAt``,
``totalPages``); Python code keeps snake_case attribute names.
``CamelModel`` bridges the two, and ``ApiResponse`` carries the
``success`` flag present in every response envelope.
"""

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "from_attributes": True,
    }


class ApiResponse(CamelModel):
    success: bool = True


class MessageResponse(ApiResponse):
    message: str
