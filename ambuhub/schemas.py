from pydantic import BaseModel, Field, field_validator

from .models import Role
from .utils import normalize_email, sanitize_input


class UserCreate(BaseModel):
    email: str = Field(..., min_length=3, max_length=254)
    password: str = Field(..., min_length=1, max_length=1024)
    role: Role = Role.standard_user

    @field_validator("email", mode="before")
    def clean_email(cls, v):
        v = normalize_email(v)
        if "@" not in v or v.startswith("@") or v.endswith("@"):
            raise ValueError("invalid email address")
        return v


class ProductCreate(BaseModel):
    """Fields a vendor submits when creating or editing a product.

    Editing replaces every field, so the same schema serves both forms.
    """
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=5000)
    price: float = Field(..., ge=0, allow_inf_nan=False)
    stock: int = Field(..., ge=0)

    @field_validator("name", "description", mode="before")
    def strip_markup(cls, v):
        if isinstance(v, str):
            return sanitize_input(v)
        return v
