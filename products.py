import logging
import math
import re
from typing import List

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.database import Database

from database import create_document, now, parse_object_id
from errors import ConflictError, NotFoundError, ValidationError
from schemas import DEFAULT_BRAND, ProductIn, ProductOut, error_messages, validate_product

logger = logging.getLogger(__name__)

NEWEST_FIRST = [("createdAt", -1), ("_id", -1)]
RATING_ATTEMPTS = 5


def serialize_product(doc: dict) -> ProductOut:
    return ProductOut(
        id=str(doc.get("_id")),
        name=doc.get("name"),
        description=doc.get("description"),
        price=float(doc.get("price", 0)),
        image=doc.get("image"),
        category=doc.get("category"),
        brand=doc.get("brand") or DEFAULT_BRAND,
        rating=float(doc.get("rating") or 0),
        ratingCount=int(doc.get("ratingCount") or 0),
        stock=int(doc.get("stock") or 0),
        isActive=doc.get("isActive", True),
        createdAt=doc.get("createdAt"),
        updatedAt=doc.get("updatedAt"),
    )


def _find(db: Database, filt: dict) -> List[ProductOut]:
    cursor = db["product"].find(filt).sort(NEWEST_FIRST)
    return [serialize_product(doc) for doc in cursor]


def _product_oid(product_id: str) -> ObjectId:
    oid = parse_object_id(product_id)
    if oid is None:
        raise NotFoundError("Product not found")
    return oid


def _check_price_and_stock(payload: ProductIn):
    if payload.price is not None and payload.price <= 0:
        raise ValidationError("Price must be greater than 0")
    if payload.stock is not None and payload.stock < 0:
        raise ValidationError("Stock cannot be negative")


def _raise_if_invalid(doc: dict):
    errors = validate_product(doc)
    if errors:
        raise ValidationError("Validation error", error_messages(errors))


# ------------------------- Queries -------------------------

def list_all(db: Database) -> List[ProductOut]:
    return _find(db, {})


def get_by_id(db: Database, product_id: str) -> ProductOut:
    doc = db["product"].find_one({"_id": _product_oid(product_id)})
    if not doc:
        raise NotFoundError("Product not found")
    return serialize_product(doc)


def by_category(db: Database, category: str) -> List[ProductOut]:
    return _find(db, {"category": category, "isActive": True})


def search(db: Database, q: str) -> List[ProductOut]:
    """Case-insensitive substring match on name, description and category."""
    if not q or not q.strip():
        raise ValidationError("Search query is required")
    pattern = {"$regex": re.escape(q), "$options": "i"}
    return _find(db, {
        "$or": [
            {"name": pattern},
            {"description": pattern},
            {"category": pattern},
        ]
    })


# ------------------------- Admin writes -------------------------

def create(db: Database, payload: ProductIn) -> ProductOut:
    required = (payload.name, payload.description, payload.price, payload.image, payload.category)
    if any(v is None or v == "" for v in required) or payload.stock is None:
        raise ValidationError("All fields are required: name, description, price, image, category, stock")
    _check_price_and_stock(payload)

    doc = {
        "name": payload.name.strip(),
        "description": payload.description.strip(),
        "price": float(payload.price),
        "image": payload.image,
        "category": payload.category,
        "stock": int(payload.stock),
        "brand": payload.brand.strip() if payload.brand else DEFAULT_BRAND,
        "rating": float(payload.rating) if payload.rating is not None else 0.0,
        "ratingCount": 0,
        "isActive": payload.isActive if payload.isActive is not None else True,
    }
    _raise_if_invalid(doc)

    saved = create_document(db, "product", doc)
    logger.info("Created product %s", saved["_id"])
    return serialize_product(saved)


def update(db: Database, product_id: str, payload: ProductIn) -> ProductOut:
    _check_price_and_stock(payload)
    oid = _product_oid(product_id)

    update_data = {}
    if payload.name:
        update_data["name"] = payload.name.strip()
    if payload.description:
        update_data["description"] = payload.description.strip()
    if payload.price is not None:
        update_data["price"] = float(payload.price)
    if payload.image:
        update_data["image"] = payload.image
    if payload.category:
        update_data["category"] = payload.category
    if payload.stock is not None:
        update_data["stock"] = int(payload.stock)
    if payload.brand:
        update_data["brand"] = payload.brand.strip()
    if payload.isActive is not None:
        update_data["isActive"] = payload.isActive

    existing = db["product"].find_one({"_id": oid})
    if not existing:
        raise NotFoundError("Product not found")
    _raise_if_invalid({**existing, **update_data})

    update_data["updatedAt"] = now()
    doc = db["product"].find_one_and_update(
        {"_id": oid}, {"$set": update_data}, return_document=ReturnDocument.AFTER
    )
    if not doc:
        raise NotFoundError("Product not found")
    logger.info("Updated product %s", oid)
    return serialize_product(doc)


def delete(db: Database, product_id: str) -> dict:
    res = db["product"].delete_one({"_id": _product_oid(product_id)})
    if res.deleted_count == 0:
        raise NotFoundError("Product not found")
    logger.info("Deleted product %s", product_id)
    return {"message": "Product deleted successfully"}


# ------------------------- Ratings -------------------------

def rate(db: Database, product_id: str, value: float) -> ProductOut:
    """Fold one rating into the running mean.

    The write only applies if rating/ratingCount are still what was read, so
    concurrent submissions retry instead of overwriting each other.
    """
    # A rating of exactly 0 is rejected along with missing values.
    if not value or not math.isfinite(value) or value < 0 or value > 5:
        raise ValidationError("Invalid rating value. Must be between 0 and 5.")
    oid = _product_oid(product_id)

    for attempt in range(RATING_ATTEMPTS):
        product = db["product"].find_one({"_id": oid})
        if not product:
            raise NotFoundError("Product not found")

        old_rating, old_count = product.get("rating"), product.get("ratingCount")
        if old_count:
            new_count = old_count + 1
            new_rating = ((old_rating or 0) * old_count + value) / new_count
        else:
            new_count, new_rating = 1, float(value)

        doc = db["product"].find_one_and_update(
            {"_id": oid, "rating": old_rating, "ratingCount": old_count},
            {"$set": {"rating": new_rating, "ratingCount": new_count, "updatedAt": now()}},
            return_document=ReturnDocument.AFTER,
        )
        if doc:
            return serialize_product(doc)
        logger.warning("Rating update for product %s lost a race (attempt %d)", oid, attempt + 1)

    raise ConflictError("Product rating is being updated, please retry")
