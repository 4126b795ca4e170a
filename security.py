"""
Password hashing, bearer tokens and the FastAPI auth dependencies.
"""
import logging
from datetime import timedelta
from typing import Optional

import bcrypt
import jwt
from fastapi import Depends, Header

from config import JWT_ALGORITHM, JWT_EXPIRY_DAYS, JWT_SECRET
from database import get_db, to_object_id, utcnow
from errors import Forbidden, NotFound, Unauthorized

logger = logging.getLogger(__name__)


def hash_password(plain: str) -> str:
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


def create_token(user_id) -> str:
    payload = {
        "id": str(user_id),
        "exp": utcnow() + timedelta(days=JWT_EXPIRY_DAYS),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.PyJWTError as e:
        logger.info("Token verification failed: %s", e)
        raise Unauthorized("Not authorized, token failed")


def get_current_user(authorization: Optional[str] = Header(default=None), db=Depends(get_db)) -> dict:
    """Resolve the Bearer token to the stored user (password excluded)."""
    if not authorization or not authorization.startswith("Bearer "):
        raise Unauthorized("Not authorized, no token")
    token = authorization.split(" ", 1)[1].strip()
    data = decode_token(token)
    try:
        user_id = to_object_id(data.get("id"), "User")
    except NotFound:
        raise Unauthorized("Not authorized, token failed")
    user = db["user"].find_one({"_id": user_id}, {"password": 0})
    if not user:
        raise Unauthorized("User not found")
    return user


def require_admin(user: dict = Depends(get_current_user)) -> dict:
    if user.get("role") != "admin":
        raise Forbidden("Not authorized as admin")
    return user
