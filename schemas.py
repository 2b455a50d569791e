"""
Database Schemas

MongoDB collection schemas and request/response models for the catalog API.

Each stored entity has an explicit validation function (validate_user,
validate_product) that returns a list of FieldError. It is called before every
write; an empty list means the document may be saved.

Collections:
- User -> "user"
- Product -> "product"
"""
import math
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

ROLES = ("user", "admin")

CATEGORIES = (
    "electronics",
    "clothing",
    "books",
    "home",
    "sports",
    "toys",
    "beauty",
    "automotive",
)

DEFAULT_BRAND = "MadeInIndia"

IMAGE_URL_PATTERN = re.compile(r"^https?://.+\.(jpg|jpeg|png|gif|webp)(\?.*)?$", re.IGNORECASE)
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class FieldError(BaseModel):
    field: str
    message: str


# ------------------------- Requests -------------------------
# Every field is optional so that missing values reach the handlers and get
# the API's own messages instead of a framework 422.

class RegisterRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class ProfileUpdateRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None


class ProductIn(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(None, allow_inf_nan=False)
    image: Optional[str] = None
    category: Optional[str] = None
    stock: Optional[int] = None
    brand: Optional[str] = None
    rating: Optional[float] = Field(None, allow_inf_nan=False)
    isActive: Optional[bool] = None


class RatingRequest(BaseModel):
    rating: Optional[float] = Field(None, allow_inf_nan=False)


# ------------------------- Responses -------------------------

class UserOut(BaseModel):
    id: str
    name: str
    email: str
    role: str


class ProfileOut(UserOut):
    createdAt: Optional[datetime] = None


class UserEnvelope(BaseModel):
    message: str
    user: UserOut


class MessageOut(BaseModel):
    message: str


class ProductOut(BaseModel):
    """
    Products collection schema
    Collection name: "product"
    """
    id: str
    name: str = Field(..., description="Product name")
    description: str = Field(..., description="Product description")
    price: float = Field(..., gt=0, description="Price in currency units")
    image: str = Field(..., description="Image URL")
    category: str = Field(..., description="One of the catalog categories")
    brand: str = Field(DEFAULT_BRAND, description="Brand name")
    rating: float = Field(0, ge=0, le=5, description="Mean of submitted ratings")
    ratingCount: int = Field(0, ge=0, description="Number of submitted ratings")
    stock: int = Field(0, ge=0, description="Units in stock")
    isActive: bool = Field(True, description="Listed in category views")
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


# ------------------------- Validation -------------------------

def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _is_integer(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    return isinstance(value, int) or (isinstance(value, float) and value.is_integer())


def validate_user(doc: Dict[str, Any]) -> List[FieldError]:
    """Check a user document as it is about to be stored (password already hashed)."""
    errors: List[FieldError] = []

    if _blank(doc.get("name")):
        errors.append(FieldError(field="name", message="Name is required"))

    email = doc.get("email")
    if _blank(email):
        errors.append(FieldError(field="email", message="Email is required"))
    elif not isinstance(email, str) or not EMAIL_PATTERN.match(email):
        errors.append(FieldError(field="email", message="Please provide a valid email"))
    elif email != email.strip().lower():
        errors.append(FieldError(field="email", message="Email must be lowercase"))

    if _blank(doc.get("password")):
        errors.append(FieldError(field="password", message="Password is required"))

    if doc.get("role", "user") not in ROLES:
        errors.append(FieldError(field="role", message="Role must be one of: " + ", ".join(ROLES)))

    return errors


def validate_product(doc: Dict[str, Any]) -> List[FieldError]:
    errors: List[FieldError] = []

    def fail(field: str, message: str):
        errors.append(FieldError(field=field, message=message))

    name = doc.get("name")
    if _blank(name):
        fail("name", "Product name is required")
    elif not isinstance(name, str) or len(name) > 100:
        fail("name", "Product name cannot exceed 100 characters")

    description = doc.get("description")
    if _blank(description):
        fail("description", "Product description is required")
    elif not isinstance(description, str) or len(description) > 1000:
        fail("description", "Product description cannot exceed 1000 characters")

    price = doc.get("price")
    if price is None:
        fail("price", "Product price is required")
    elif not _is_number(price) or price < 0.01:
        fail("price", "Price must be greater than 0")

    image = doc.get("image")
    if _blank(image):
        fail("image", "Product image URL is required")
    elif not isinstance(image, str) or not IMAGE_URL_PATTERN.match(image):
        fail("image", "Please provide a valid image URL")

    category = doc.get("category")
    if _blank(category):
        fail("category", "Product category is required")
    elif category not in CATEGORIES:
        fail("category", "Category must be one of: " + ", ".join(CATEGORIES))

    brand = doc.get("brand", DEFAULT_BRAND)
    if brand is not None and (not isinstance(brand, str) or len(brand) > 50):
        fail("brand", "Brand name cannot exceed 50 characters")

    rating = doc.get("rating", 0)
    if not _is_number(rating) or not 0 <= rating <= 5:
        fail("rating", "Rating must be between 0 and 5")

    rating_count = doc.get("ratingCount", 0)
    if not _is_integer(rating_count) or rating_count < 0:
        fail("ratingCount", "Rating count must be a non-negative integer")

    stock = doc.get("stock")
    if stock is None:
        fail("stock", "Stock quantity is required")
    elif not _is_integer(stock):
        fail("stock", "Stock must be a whole number")
    elif stock < 0:
        fail("stock", "Stock cannot be negative")

    if not isinstance(doc.get("isActive", True), bool):
        fail("isActive", "isActive must be true or false")

    return errors


def error_messages(errors: List[FieldError]) -> List[str]:
    return [e.message for e in errors]
