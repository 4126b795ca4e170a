"""
Registration, login and profile maintenance.
"""
import logging
from typing import List, Optional

from bson import ObjectId
from pydantic import EmailStr, TypeAdapter, ValidationError
from pymongo.errors import DuplicateKeyError

from database import create_document, utcnow
from errors import InvalidArgument, NotFound
from schemas import Address, User
from security import create_token, hash_password, verify_password

logger = logging.getLogger(__name__)

_email = TypeAdapter(EmailStr)


def public_user(user: dict, with_addresses: bool = False) -> dict:
    data = {
        "_id": user["_id"],
        "name": user["name"],
        "email": user["email"],
        "role": user.get("role", "user"),
    }
    if with_addresses:
        data["addresses"] = user.get("addresses", [])
        data["created_at"] = user.get("created_at")
    return data


def register(db, name: str, email: str, password: str) -> dict:
    if not name or not email or not password:
        raise InvalidArgument("Please provide all required fields")
    if db["user"].find_one({"email": email}):
        raise InvalidArgument("User already exists with this email")
    try:
        user = User(name=name, email=email, password=hash_password(password))
    except ValidationError:
        raise InvalidArgument("Please provide a valid email address")
    try:
        user_id = create_document(db, "user", user)
    except DuplicateKeyError:
        raise InvalidArgument("User already exists with this email")
    logger.info("Registered user %s", user_id)
    stored = db["user"].find_one({"_id": ObjectId(user_id)})
    return {"user": public_user(stored), "token": create_token(user_id)}


def login(db, email: str, password: str) -> dict:
    if not email or not password:
        raise InvalidArgument("Please provide email and password")
    user = db["user"].find_one({"email": email})
    if not user or not verify_password(password, user["password"]):
        raise InvalidArgument("Invalid email or password")
    return {"user": public_user(user), "token": create_token(user["_id"])}


def get_profile(db, user_id) -> dict:
    user = db["user"].find_one({"_id": user_id})
    if not user:
        raise NotFound("User not found")
    return public_user(user, with_addresses=True)


def update_profile(
    db,
    user_id,
    name: Optional[str] = None,
    email: Optional[str] = None,
    password: Optional[str] = None,
    addresses: Optional[List[Address]] = None,
) -> dict:
    user = db["user"].find_one({"_id": user_id})
    if not user:
        raise NotFound("User not found")

    updates = {}
    if name:
        updates["name"] = name
    if email and email != user["email"]:
        try:
            email = _email.validate_python(email)
        except ValidationError:
            raise InvalidArgument("Please provide a valid email address")
        if db["user"].find_one({"email": email}):
            raise InvalidArgument("User already exists with this email")
        updates["email"] = email
    if password:
        updates["password"] = hash_password(password)
    if addresses:
        updates["addresses"] = [a.model_dump() if isinstance(a, Address) else a for a in addresses]
    updates["updated_at"] = utcnow()

    db["user"].update_one({"_id": user_id}, {"$set": updates})
    user.update(updates)
    return public_user(user, with_addresses=True)
