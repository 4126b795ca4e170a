"""
Shopping cart operations.

One cart per user. Line items keep the unit price captured when the product
was first added; totals are recomputed from the line items on every change.
"""
import logging
from typing import List, Optional

from bson import ObjectId

from database import create_document, to_object_id, utcnow
from errors import InsufficientStock, InvalidArgument, NotFound

logger = logging.getLogger(__name__)

PRODUCT_FIELDS = {"name": 1, "price": 1, "images": 1, "brand": 1, "stock": 1}


def calculate_totals(items: List[dict]) -> dict:
    return {
        "total_price": sum(item["price"] * item["quantity"] for item in items),
        "total_items": sum(item["quantity"] for item in items),
    }


def _find_cart(db, user_id) -> Optional[dict]:
    return db["cart"].find_one({"user": to_object_id(user_id, "User")})


def _require_cart(db, user_id) -> dict:
    cart = _find_cart(db, user_id)
    if not cart:
        raise NotFound("Cart not found")
    return cart


def _find_item(cart: dict, item_id) -> dict:
    for item in cart["items"]:
        if str(item["_id"]) == str(item_id):
            return item
    raise NotFound("Item not found in cart")


def _save(db, cart: dict) -> dict:
    cart.update(calculate_totals(cart["items"]))
    cart["updated_at"] = utcnow()
    db["cart"].update_one(
        {"_id": cart["_id"]},
        {"$set": {
            "items": cart["items"],
            "total_price": cart["total_price"],
            "total_items": cart["total_items"],
            "updated_at": cart["updated_at"],
        }},
    )
    return cart


def populate(db, cart: dict) -> dict:
    """Join display fields of each referenced product into the line items."""
    ids = [item["product"] for item in cart["items"]]
    products = {p["_id"]: p for p in db["product"].find({"_id": {"$in": ids}}, PRODUCT_FIELDS)} if ids else {}
    joined = dict(cart)
    joined["items"] = [dict(item, product=products.get(item["product"])) for item in cart["items"]]
    return joined


def get_or_create_cart(db, user_id) -> dict:
    cart = _find_cart(db, user_id)
    if cart is None:
        create_document(db, "cart", {
            "user": to_object_id(user_id, "User"),
            "items": [],
            "total_price": 0,
            "total_items": 0,
        })
        cart = _find_cart(db, user_id)
        logger.debug("Created empty cart for user %s", user_id)
    return populate(db, cart)


def add_item(db, user_id, product_id, quantity: int = 1) -> dict:
    if quantity < 1:
        raise InvalidArgument("Quantity must be at least 1")
    product = db["product"].find_one({"_id": to_object_id(product_id, "Product")})
    if not product:
        raise NotFound("Product not found")
    if product["stock"] < quantity:
        raise InsufficientStock(
            f"Only {product['stock']} items available in stock", product["stock"], str(product["_id"])
        )

    get_or_create_cart(db, user_id)
    cart = _find_cart(db, user_id)

    existing = next((i for i in cart["items"] if i["product"] == product["_id"]), None)
    if existing is not None:
        new_quantity = existing["quantity"] + quantity
        if new_quantity > product["stock"]:
            raise InsufficientStock(
                f"Cannot add more. Only {product['stock']} items available", product["stock"], str(product["_id"])
            )
        existing["quantity"] = new_quantity
    else:
        cart["items"].append({
            "_id": ObjectId(),
            "product": product["_id"],
            "quantity": quantity,
            "price": product["price"],
        })

    _save(db, cart)
    logger.debug("User %s added %d x %s to cart", user_id, quantity, product["_id"])
    return populate(db, cart)


def update_item(db, user_id, item_id, quantity: int) -> dict:
    if quantity < 1:
        raise InvalidArgument("Quantity must be at least 1")
    cart = _require_cart(db, user_id)
    item = _find_item(cart, item_id)

    product = db["product"].find_one({"_id": item["product"]}, {"stock": 1})
    if not product:
        raise NotFound("Product not found")
    if quantity > product["stock"]:
        raise InsufficientStock(f"Only {product['stock']} items available", product["stock"], str(product["_id"]))

    item["quantity"] = quantity
    _save(db, cart)
    return populate(db, cart)


def remove_item(db, user_id, item_id) -> dict:
    cart = _require_cart(db, user_id)
    item = _find_item(cart, item_id)
    cart["items"] = [i for i in cart["items"] if i["_id"] != item["_id"]]
    _save(db, cart)
    return populate(db, cart)


def clear_cart(db, user_id) -> dict:
    cart = _require_cart(db, user_id)
    cart.update(items=[], total_price=0, total_items=0, updated_at=utcnow())
    db["cart"].update_one(
        {"_id": cart["_id"]},
        {"$set": {"items": [], "total_price": 0, "total_items": 0, "updated_at": cart["updated_at"]}},
    )
    return cart
