"""Request and response models for the generate-fill API."""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator


class FormField(BaseModel):
    """A single fillable slot on a page, as scraped by the client."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    label: str
    placeholder: Optional[str] = None
    type: str = Field(..., min_length=1)
    existing_value: Optional[str] = Field(default=None, alias="existingValue")


class GenerateFillRequest(BaseModel):
    """Request body for POST /api/v1/generate-fill.

    The field count bound comes from validation context (``max_fields``) so
    that it follows configuration rather than a hard-coded limit.
    """

    fields: list[FormField]

    @field_validator("fields")
    @classmethod
    def validate_field_count(cls, v: list[FormField], info: ValidationInfo) -> list[FormField]:
        max_fields = (info.context or {}).get("max_fields", 50)
        if len(v) < 1:
            raise ValueError("at least 1 field is required")
        if len(v) > max_fields:
            raise ValueError(f"at most {max_fields} fields are allowed, got {len(v)}")
        return v


class FillValue(BaseModel):
    """Generated value for one field plus the model's justification."""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    value: str
    reason: str = ""


ResultSet = dict[str, FillValue]


class GenerateFillResponse(BaseModel):
    """Envelope returned by the generate-fill endpoints."""

    success: bool
    data: Optional[ResultSet] = None
    error: Optional[str] = None


class DependencyCheck(BaseModel):
    status: Literal["ok", "error"]
    message: Optional[str] = None


class HealthCheckResponse(BaseModel):
    status: Literal["ok", "degraded", "error"]
    timestamp: str
    checks: dict[str, DependencyCheck] = Field(default_factory=dict)
    cache: Optional[dict] = None
