"""Pydantic models describing the JSON bodies published on the message bus."""

# purpose: validate inbound event bodies before they are normalised into resources
# status: active

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SampleRef(BaseModel):
    model_config = ConfigDict(extra="ignore")
    uuid: str


class AliquotPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")
    sample: Optional[SampleRef] = None


class PlatePayload(BaseModel):
    model_config = ConfigDict(extra="ignore")
    uuid: str
    number_of_rows: int = Field(gt=0)
    number_of_columns: int = Field(gt=0)
    wells: Dict[str, Optional[List[AliquotPayload]]] = Field(default_factory=dict)


class TubePayload(BaseModel):
    model_config = ConfigDict(extra="ignore")
    aliquots: Optional[List[AliquotPayload]] = None


class TubeRackPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")
    uuid: str
    number_of_rows: int = Field(gt=0)
    number_of_columns: int = Field(gt=0)
    tubes: Dict[str, Optional[TubePayload]] = Field(default_factory=dict)


class OrderItemPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")
    uuid: str
    status: str


class OrderPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")
    uuid: Optional[str] = None
    items: Dict[str, List[OrderItemPayload]] = Field(default_factory=dict)

    @field_validator("items", mode="before")
    @classmethod
    def wrap_single_items(cls, value: Any) -> Any:
        # older producers published one item object per role
        if isinstance(value, dict):
            return {
                role: [entry] if isinstance(entry, dict) else entry
                for role, entry in value.items()
            }
        return value


class PlateTransferPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")
    result: Dict[str, Any]
