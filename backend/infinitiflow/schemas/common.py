from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Any, Dict


class CamelModel(BaseModel):
    """camelCase on the wire, snake_case in Python"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class RequestModel(CamelModel):
    """Request bodies reject unknown fields"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )


class MessageResponse(CamelModel):
    status: str = "success"
    message: str
