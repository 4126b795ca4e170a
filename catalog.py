"""
Product catalog queries and admin maintenance.
"""
import logging
import math
import re
from typing import List, Optional

from bson import ObjectId
from pydantic import ValidationError

from config import DEFAULT_PAGE_SIZE, FEATURED_LIMIT
from database import create_document, get_documents, to_object_id, utcnow
from errors import InvalidArgument, NotFound
from schemas import CATEGORIES, MATERIALS, Dimensions, Product

logger = logging.getLogger(__name__)

SORT_OPTIONS = {
    "price-asc": [("price", 1)],
    "price-desc": [("price", -1)],
    "newest": [("created_at", -1)],
    "oldest": [("created_at", 1)],
    "name": [("name", 1)],
}
DEFAULT_SORT = "newest"

# Updated only when a truthy value is supplied.
TEXT_FIELDS = ("name", "description", "brand", "category", "material", "color")
# Updated whenever supplied, zero and False included.
VALUE_FIELDS = ("price", "stock", "is_featured")


def build_filter(
    search: Optional[str] = None,
    category: Optional[str] = None,
    brand: Optional[str] = None,
    material: Optional[str] = None,
    color: Optional[str] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
) -> dict:
    query = {}
    if search:
        query["$text"] = {"$search": search}
    if category:
        query["category"] = category
    if brand:
        query["brand"] = brand
    if material:
        query["material"] = material
    if color:
        query["color"] = {"$regex": re.escape(color), "$options": "i"}
    if min_price is not None or max_price is not None:
        query["price"] = {}
        if min_price is not None:
            query["price"]["$gte"] = min_price
        if max_price is not None:
            query["price"]["$lte"] = max_price
    return query


def list_products(
    db,
    search: Optional[str] = None,
    category: Optional[str] = None,
    brand: Optional[str] = None,
    material: Optional[str] = None,
    color: Optional[str] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    sort: Optional[str] = None,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
) -> dict:
    """Return one page of matching products with the total count for the same filter."""
    if page < 1 or limit < 1:
        raise InvalidArgument("page and limit must be positive")
    query = build_filter(search, category, brand, material, color, min_price, max_price)
    sort_spec = SORT_OPTIONS.get(sort or DEFAULT_SORT, SORT_OPTIONS[DEFAULT_SORT])

    products = list(db["product"].find(query).sort(sort_spec).skip((page - 1) * limit).limit(limit))
    total = db["product"].count_documents(query)
    return {
        "count": len(products),
        "total": total,
        "total_pages": math.ceil(total / limit),
        "current_page": page,
        "products": products,
    }


def get_product(db, product_id) -> dict:
    product = db["product"].find_one({"_id": to_object_id(product_id, "Product")})
    if not product:
        raise NotFound("Product not found")
    return product


def get_featured_products(db) -> list:
    return get_documents(db, "product", {"is_featured": True}, limit=FEATURED_LIMIT)


def create_product(db, data: dict, images: Optional[List[dict]] = None) -> dict:
    try:
        product = Product(**dict(data, images=images or []))
    except ValidationError as e:
        raise InvalidArgument(_first_error(e))
    product_id = create_document(db, "product", product)
    logger.info("Product %s created: %s", product_id, product.name)
    return db["product"].find_one({"_id": ObjectId(product_id)})


def update_product(db, product_id, changes: dict, images: Optional[List[dict]] = None) -> dict:
    product = get_product(db, product_id)

    updates = {}
    for field in TEXT_FIELDS:
        if changes.get(field):
            updates[field] = changes[field]
    for field in VALUE_FIELDS:
        if changes.get(field) is not None:
            updates[field] = changes[field]
    if changes.get("dimensions"):
        dims = changes["dimensions"]
        updates["dimensions"] = dims.model_dump() if isinstance(dims, Dimensions) else dims

    if "category" in updates and updates["category"] not in CATEGORIES:
        raise InvalidArgument(f"Invalid category: {updates['category']}")
    if "material" in updates and updates["material"] not in MATERIALS:
        raise InvalidArgument(f"Invalid material: {updates['material']}")
    if updates.get("price", 0) < 0:
        raise InvalidArgument("Price cannot be negative")
    if updates.get("stock", 0) < 0:
        raise InvalidArgument("Stock cannot be negative")

    if images:
        updates["images"] = list(product.get("images") or []) + list(images)
    updates["updated_at"] = utcnow()

    db["product"].update_one({"_id": product["_id"]}, {"$set": updates})
    product.update(updates)
    return product


def delete_product(db, product_id, storage) -> None:
    product = get_product(db, product_id)
    for image in product.get("images") or []:
        storage.delete(image.get("public_id"))
    db["product"].delete_one({"_id": product["_id"]})
    logger.info("Product %s deleted", product["_id"])


def _first_error(e: ValidationError) -> str:
    err = e.errors()[0]
    field = ".".join(str(p) for p in err.get("loc", ()))
    return f"{field}: {err.get('msg')}" if field else err.get("msg", "Invalid product")
