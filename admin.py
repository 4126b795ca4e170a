"""
Admin dashboard aggregates and user management.
"""
import logging

from config import LOW_STOCK_THRESHOLD
from database import get_documents, to_object_id, utcnow
from errors import InvalidArgument, InvalidState, NotFound
from schemas import ROLES

logger = logging.getLogger(__name__)


def dashboard_stats(db) -> dict:
    # Independent reads; no snapshot across them.
    revenue = list(db["order"].aggregate([
        {"$match": {"order_status": "Delivered"}},
        {"$group": {"_id": None, "total": {"$sum": "$total_price"}}},
    ]))

    recent_orders = []
    for order in db["order"].find({}).sort("created_at", -1).limit(5):
        order["user"] = db["user"].find_one({"_id": order["user"]}, {"name": 1, "email": 1}) or order["user"]
        recent_orders.append(order)

    orders_by_status = [
        {"status": row["_id"], "count": row["count"]}
        for row in db["order"].aggregate([{"$group": {"_id": "$order_status", "count": {"$sum": 1}}}])
    ]

    low_stock = list(
        db["product"].find({"stock": {"$lt": LOW_STOCK_THRESHOLD}}, {"name": 1, "brand": 1, "stock": 1}).limit(10)
    )

    return {
        "total_users": db["user"].count_documents({"role": "user"}),
        "total_products": db["product"].count_documents({}),
        "total_orders": db["order"].count_documents({}),
        "total_revenue": revenue[0]["total"] if revenue else 0,
        "recent_orders": recent_orders,
        "orders_by_status": orders_by_status,
        "low_stock_products": low_stock,
    }


def list_users(db) -> list:
    return get_documents(db, "user", sort=[("created_at", -1)], projection={"password": 0})


def delete_user(db, user_id) -> None:
    oid = to_object_id(user_id, "User")
    user = db["user"].find_one({"_id": oid})
    if not user:
        raise NotFound("User not found")
    if user.get("role") == "admin":
        raise InvalidState("Cannot delete admin user")
    db["user"].delete_one({"_id": oid})
    logger.info("User %s deleted", user_id)


def update_user_role(db, user_id, role: str) -> dict:
    if role not in ROLES:
        raise InvalidArgument("Invalid role")
    oid = to_object_id(user_id, "User")
    user = db["user"].find_one({"_id": oid}, {"password": 0})
    if not user:
        raise NotFound("User not found")
    db["user"].update_one({"_id": oid}, {"$set": {"role": role, "updated_at": utcnow()}})
    user["role"] = role
    logger.info("User %s role set to %s", user_id, role)
    return {"_id": user["_id"], "name": user["name"], "email": user["email"], "role": role}
