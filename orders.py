"""
Checkout and order management.

Checkout turns the user's cart into an immutable order: items are
snapshotted with the price captured in the cart, stock is decremented and the
cart is emptied. Only the status fields of an order change afterwards.
"""
import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional, Tuple, Union

from bson import ObjectId

from config import FREE_SHIPPING_THRESHOLD, SHIPPING_PRICE, TAX_RATE
from database import create_document, get_documents, to_object_id, utcnow
from errors import Forbidden, InsufficientStock, InvalidArgument, InvalidState, NotFound
from schemas import DEFERRED_PAYMENT_METHODS, ORDER_STATUSES, Address, Order, PaymentResult

logger = logging.getLogger(__name__)

USER_FIELDS = {"name": 1, "email": 1}
PRODUCT_FIELDS = {"name": 1, "brand": 1}


def price_breakdown(items_price) -> dict:
    """Shipping is free strictly above the threshold; tax rounds half up to whole units."""
    shipping_price = 0 if items_price > FREE_SHIPPING_THRESHOLD else SHIPPING_PRICE
    tax = (Decimal(str(items_price)) * Decimal(TAX_RATE)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    tax_price = int(tax)
    return {
        "items_price": items_price,
        "shipping_price": shipping_price,
        "tax_price": tax_price,
        "total_price": items_price + shipping_price + tax_price,
    }


def payment_status_for(payment_method: str, payment_result: Optional[PaymentResult]) -> str:
    if payment_method in DEFERRED_PAYMENT_METHODS:
        return "Pending"
    if payment_result is not None and payment_result.id and (payment_result.status or "").lower() in ("paid", "captured", "succeeded", "completed"):
        return "Paid"
    return "Pending"


def _reserve_stock(db, lines: List[Tuple[ObjectId, int]]) -> None:
    """Decrement stock for every line, only where enough remains.

    If any line cannot be covered the decrements already applied are
    restored and InsufficientStock is raised.
    """
    applied = []
    for product_id, quantity in lines:
        result = db["product"].update_one(
            {"_id": product_id, "stock": {"$gte": quantity}},
            {"$inc": {"stock": -quantity}, "$set": {"updated_at": utcnow()}},
        )
        if result.modified_count == 0:
            _release_stock(db, applied)
            product = db["product"].find_one({"_id": product_id}, {"name": 1, "stock": 1})
            if not product:
                raise NotFound(f"Product {product_id} not found")
            raise InsufficientStock(
                f"Insufficient stock for {product['name']}. Only {product['stock']} available",
                product["stock"],
                str(product_id),
            )
        applied.append((product_id, quantity))


def _release_stock(db, applied: List[Tuple[ObjectId, int]]) -> None:
    for product_id, quantity in applied:
        db["product"].update_one({"_id": product_id}, {"$inc": {"stock": quantity}})
        logger.warning("Restored %d units of stock to product %s", quantity, product_id)


def _join_user(db, order: dict) -> dict:
    joined = dict(order)
    joined["user"] = db["user"].find_one({"_id": order["user"]}, USER_FIELDS) or order["user"]
    return joined


def create_order(
    db,
    user_id,
    shipping_address: Union[Address, dict, None],
    payment_method: str = "Cash on Delivery",
    payment_result: Optional[PaymentResult] = None,
) -> dict:
    if isinstance(shipping_address, dict):
        shipping_address = Address(**shipping_address)
    if shipping_address is None or not shipping_address.street or not shipping_address.city:
        raise InvalidArgument("Please provide complete shipping address")

    user_oid = to_object_id(user_id, "User")
    cart = db["cart"].find_one({"user": user_oid})
    if not cart or not cart["items"]:
        raise InvalidState("Your cart is empty.")

    order_items = []
    for item in cart["items"]:
        product = db["product"].find_one({"_id": item["product"]})
        if not product:
            raise NotFound(f"Product {item['product']} not found")
        if product["stock"] < item["quantity"]:
            raise InsufficientStock(
                f"Insufficient stock for {product['name']}. Only {product['stock']} available",
                product["stock"],
                str(product["_id"]),
            )
        images = product.get("images") or []
        order_items.append({
            "product": str(product["_id"]),
            "name": product["name"],
            "quantity": item["quantity"],
            "price": item["price"],
            "image": images[0].get("url", "") if images else "",
        })

    order = Order(
        user=str(user_oid),
        order_items=order_items,
        shipping_address=shipping_address,
        payment_method=payment_method,
        payment_result=payment_result,
        payment_status=payment_status_for(payment_method, payment_result),
        **price_breakdown(cart["total_price"]),
    )
    doc = order.model_dump()
    doc["user"] = user_oid
    for snapshot in doc["order_items"]:
        snapshot["product"] = ObjectId(snapshot["product"])

    lines = [(item["product"], item["quantity"]) for item in cart["items"]]
    _reserve_stock(db, lines)
    try:
        order_id = create_document(db, "order", doc)
    except Exception:
        _release_stock(db, lines)
        raise

    db["cart"].update_one(
        {"_id": cart["_id"]},
        {"$set": {"items": [], "total_price": 0, "total_items": 0, "updated_at": utcnow()}},
    )
    logger.info("Order %s placed by user %s for %s", order_id, user_id, doc["total_price"])
    return db["order"].find_one({"_id": ObjectId(order_id)})


def _join_products(db, order: dict) -> dict:
    """Replace each line's product id with its current name and brand; deleted products keep the bare id."""
    joined = dict(order)
    joined["order_items"] = [
        dict(item, product=db["product"].find_one({"_id": item["product"]}, PRODUCT_FIELDS) or item["product"])
        for item in order.get("order_items") or []
    ]
    return joined


def list_user_orders(db, user_id) -> list:
    orders = get_documents(db, "order", {"user": to_object_id(user_id, "User")}, sort=[("created_at", -1)])
    return [_join_products(db, o) for o in orders]


def list_orders(db) -> list:
    orders = get_documents(db, "order", sort=[("created_at", -1)])
    return [_join_products(db, _join_user(db, o)) for o in orders]


def get_order(db, order_id, user: dict) -> dict:
    order = db["order"].find_one({"_id": to_object_id(order_id, "Order")})
    if not order:
        raise NotFound("Order not found")
    if order["user"] != user["_id"] and user.get("role") != "admin":
        raise Forbidden("Not authorized to view this order")
    return _join_products(db, _join_user(db, order))


def update_order_status(db, order_id, status: str) -> dict:
    # Any listed status may follow any other.
    if status not in ORDER_STATUSES:
        raise InvalidArgument("Invalid order status")
    oid = to_object_id(order_id, "Order")
    order = db["order"].find_one({"_id": oid})
    if not order:
        raise NotFound("Order not found")

    changes = {"order_status": status, "updated_at": utcnow()}
    if status == "Delivered":
        changes["delivered_at"] = changes["updated_at"]
        changes["payment_status"] = "Paid"
    db["order"].update_one({"_id": oid}, {"$set": changes})
    order.update(changes)
    logger.info("Order %s moved to %s", order_id, status)
    return order
