"""
Storefront Gateway — Pydantic Request/Response Schemas
========================================================

What:  Pydantic models for catalog payloads and query strings.
Why:   Handlers receive a RequestDescriptor whose body and query are plain
       structured values. Validating them through these models gives the
       client a field-level error list (400) instead of a 500 later on.
How:   `validate_model()` runs a model over a dict and converts pydantic's
       ValidationError into the gateway's ValidationError.
"""

from typing import Any, Dict, List, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from gateway.exceptions import ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


def pydantic_errors(exc: PydanticValidationError) -> List[Dict[str, str]]:
    """Flatten pydantic errors into `[{field, message}]`."""
    errors = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ())) or "body"
        errors.append({"field": field, "message": error.get("msg", "Invalid value")})
    return errors


def validate_model(model: Type[ModelT], data: Any, message: str = "Request body is invalid") -> ModelT:
    if data is None:
        data = {}
    if not isinstance(data, Mapping):
        raise ValidationError(message, errors=[{"field": "body", "message": "Expected a JSON object"}])
    try:
        return model.model_validate(dict(data))
    except PydanticValidationError as e:
        raise ValidationError(message, errors=pydantic_errors(e)) from e


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class ProductCreate(BaseModel):
    title: str = Field(min_length=3, max_length=100)
    price: float = Field(ge=0)
    previous_price: Optional[float] = Field(default=None, ge=0)
    description: str = Field(min_length=10, max_length=500)
    category: int = Field(ge=1)
    outstanding: bool = False

    model_config = {"extra": "forbid"}

    @field_validator("title", "description")
    @classmethod
    def strip_text(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("must not be blank")
        return stripped


class ProductUpdate(BaseModel):
    """Partial update: only the fields present are changed."""

    title: Optional[str] = Field(default=None, min_length=3, max_length=100)
    price: Optional[float] = Field(default=None, ge=0)
    previous_price: Optional[float] = Field(default=None, ge=0)
    description: Optional[str] = Field(default=None, min_length=10, max_length=500)
    category: Optional[int] = Field(default=None, ge=1)
    outstanding: Optional[bool] = None

    model_config = {"extra": "forbid"}


class ProductQuery(BaseModel):
    """
    Query string for the product listing.

    page/limit: offset pagination, limit capped at 50
    category:   exact category id
    search:     case-insensitive substring over title and description
    """

    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=50)
    category: Optional[int] = Field(default=None, ge=1)
    search: Optional[str] = Field(default=None, max_length=100)
