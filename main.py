import json
import logging
import sys
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, File, Form, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel
from starlette.exceptions import HTTPException as StarletteHTTPException

import accounts
import admin
import cart
import catalog
import database
import orders
from config import DEBUG, LOG_LEVEL, PORT, UPLOAD_DIR
from database import get_db, to_dict
from errors import InvalidArgument, StoreError
from schemas import Address, Dimensions, PaymentResult
from security import get_current_user, require_admin
from storage import get_storage

logger = logging.getLogger("luxury_bags")


def setup_logging():
    root = logging.getLogger()
    if root.handlers:
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
    root.addHandler(handler)
    root.setLevel(LOG_LEVEL)


setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    if database.db is not None:
        database.ensure_indexes(database.db)
    yield


app = FastAPI(title="Luxury Bag Store API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.mount("/uploads", StaticFiles(directory=UPLOAD_DIR, check_dir=False), name="uploads")


# ----- Error envelope -----

@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    body = {"message": exc.message}
    if hasattr(exc, "available"):
        body["available"] = exc.available
    return JSONResponse(status_code=exc.status_code, content=body)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    return JSONResponse(
        status_code=400,
        content={"message": "Invalid request", "error": f"{field}: {first.get('msg', '')}".strip(": ")},
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail
    if exc.status_code == 404 and message == "Not Found":
        message = f"Route {request.url.path} not found"
    return JSONResponse(status_code=exc.status_code, content={"message": message})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    body = {"message": "Server error"}
    if DEBUG:
        body["error"] = str(exc)
    return JSONResponse(status_code=500, content=body)


# ----- Request models -----

class CamelModel(BaseModel):
    """Request bodies use the client's camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RegisterRequest(CamelModel):
    name: str = ""
    email: str = ""
    password: str = ""


class LoginRequest(CamelModel):
    email: str = ""
    password: str = ""


class ProfileUpdate(CamelModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    addresses: Optional[List[Address]] = None


class AddToCartRequest(CamelModel):
    product_id: str
    quantity: int = 1


class UpdateCartRequest(CamelModel):
    quantity: int


class CreateOrderRequest(CamelModel):
    shipping_address: Optional[Address] = None
    payment_method: str = "Cash on Delivery"
    payment_result: Optional[PaymentResult] = None


class OrderStatusRequest(CamelModel):
    order_status: str


class RoleRequest(CamelModel):
    role: str


def parse_dimensions(raw: Optional[str]) -> Optional[dict]:
    """Dimensions arrive in multipart forms as a JSON object string."""
    if not raw:
        return None
    try:
        return Dimensions(**json.loads(raw)).model_dump()
    except (ValueError, TypeError, ValidationError):
        raise InvalidArgument("dimensions must be a JSON object with length, width and height")


# ----- Health -----

@app.get("/")
def root():
    return {
        "message": "Luxury Bag Store API is running",
        "version": "1.0.0",
        "endpoints": {
            "auth": "/api/auth",
            "products": "/api/products",
            "cart": "/api/cart",
            "orders": "/api/orders",
            "admin": "/api/admin",
        },
    }


# ----- Auth -----

@app.post("/api/auth/register", status_code=201)
def register(req: RegisterRequest, db=Depends(get_db)):
    result = accounts.register(db, req.name, req.email, req.password)
    return {"success": True, "message": "User registered successfully", **to_dict(result)}


@app.post("/api/auth/login")
def login(req: LoginRequest, db=Depends(get_db)):
    result = accounts.login(db, req.email, req.password)
    return {"success": True, "message": "Login successful", **to_dict(result)}


@app.get("/api/auth/profile")
def get_profile(user=Depends(get_current_user), db=Depends(get_db)):
    return {"success": True, "user": to_dict(accounts.get_profile(db, user["_id"]))}


@app.put("/api/auth/profile")
def update_profile(req: ProfileUpdate, user=Depends(get_current_user), db=Depends(get_db)):
    updated = accounts.update_profile(db, user["_id"], req.name, req.email, req.password, req.addresses)
    return {"success": True, "message": "Profile updated successfully", "user": to_dict(updated)}


# ----- Products -----

@app.get("/api/products")
def list_products(
    search: Optional[str] = None,
    category: Optional[str] = None,
    brand: Optional[str] = None,
    material: Optional[str] = None,
    color: Optional[str] = None,
    min_price: Optional[float] = Query(None, alias="minPrice"),
    max_price: Optional[float] = Query(None, alias="maxPrice"),
    sort: Optional[str] = None,
    page: int = 1,
    limit: int = catalog.DEFAULT_PAGE_SIZE,
    db=Depends(get_db),
):
    result = catalog.list_products(
        db, search, category, brand, material, color, min_price, max_price, sort, page, limit
    )
    return {"success": True, **to_dict(result)}


@app.get("/api/products/featured")
def featured_products(db=Depends(get_db)):
    products = catalog.get_featured_products(db)
    return {"success": True, "count": len(products), "products": to_dict(products)}


@app.get("/api/products/{product_id}")
def get_product(product_id: str, db=Depends(get_db)):
    return {"success": True, "product": to_dict(catalog.get_product(db, product_id))}


@app.post("/api/products", status_code=201)
def create_product(
    name: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    price: Optional[float] = Form(None),
    brand: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    material: Optional[str] = Form(None),
    color: Optional[str] = Form(None),
    stock: Optional[int] = Form(None),
    is_featured: Optional[bool] = Form(None, alias="isFeatured"),
    dimensions: Optional[str] = Form(None),
    images: Optional[List[UploadFile]] = File(None),
    _=Depends(require_admin),
    db=Depends(get_db),
    storage=Depends(get_storage),
):
    data = {
        "name": name,
        "description": description,
        "price": price,
        "brand": brand,
        "category": category,
        "material": material,
        "color": color,
        "stock": stock,
        "is_featured": is_featured,
        "dimensions": parse_dimensions(dimensions),
    }
    data = {k: v for k, v in data.items() if v is not None}
    saved = storage.save_all(images)
    try:
        product = catalog.create_product(db, data, saved)
    except StoreError:
        for image in saved:
            storage.delete(image["public_id"])
        raise
    return {"success": True, "message": "Product created successfully", "product": to_dict(product)}


@app.put("/api/products/{product_id}")
def update_product(
    product_id: str,
    name: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    price: Optional[float] = Form(None),
    brand: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    material: Optional[str] = Form(None),
    color: Optional[str] = Form(None),
    stock: Optional[int] = Form(None),
    is_featured: Optional[bool] = Form(None, alias="isFeatured"),
    dimensions: Optional[str] = Form(None),
    images: Optional[List[UploadFile]] = File(None),
    _=Depends(require_admin),
    db=Depends(get_db),
    storage=Depends(get_storage),
):
    changes = {
        "name": name,
        "description": description,
        "price": price,
        "brand": brand,
        "category": category,
        "material": material,
        "color": color,
        "stock": stock,
        "is_featured": is_featured,
        "dimensions": parse_dimensions(dimensions),
    }
    catalog.get_product(db, product_id)
    saved = storage.save_all(images)
    try:
        product = catalog.update_product(db, product_id, changes, saved)
    except StoreError:
        for image in saved:
            storage.delete(image["public_id"])
        raise
    return {"success": True, "message": "Product updated successfully", "product": to_dict(product)}


@app.delete("/api/products/{product_id}")
def delete_product(product_id: str, _=Depends(require_admin), db=Depends(get_db), storage=Depends(get_storage)):
    catalog.delete_product(db, product_id, storage)
    return {"success": True, "message": "Product deleted successfully"}


# ----- Cart -----

@app.get("/api/cart")
def get_cart(user=Depends(get_current_user), db=Depends(get_db)):
    return {"success": True, "cart": to_dict(cart.get_or_create_cart(db, user["_id"]))}


@app.post("/api/cart")
def add_to_cart(req: AddToCartRequest, user=Depends(get_current_user), db=Depends(get_db)):
    updated = cart.add_item(db, user["_id"], req.product_id, req.quantity)
    return {"success": True, "message": "Item added to cart", "cart": to_dict(updated)}


@app.delete("/api/cart/clear")
def clear_cart(user=Depends(get_current_user), db=Depends(get_db)):
    cleared = cart.clear_cart(db, user["_id"])
    return {"success": True, "message": "Cart cleared", "cart": to_dict(cleared)}


@app.put("/api/cart/{item_id}")
def update_cart_item(item_id: str, req: UpdateCartRequest, user=Depends(get_current_user), db=Depends(get_db)):
    updated = cart.update_item(db, user["_id"], item_id, req.quantity)
    return {"success": True, "message": "Cart updated", "cart": to_dict(updated)}


@app.delete("/api/cart/{item_id}")
def remove_cart_item(item_id: str, user=Depends(get_current_user), db=Depends(get_db)):
    updated = cart.remove_item(db, user["_id"], item_id)
    return {"success": True, "message": "Item removed from cart", "cart": to_dict(updated)}


# ----- Orders -----

@app.post("/api/orders", status_code=201)
def create_order(req: CreateOrderRequest, user=Depends(get_current_user), db=Depends(get_db)):
    order = orders.create_order(db, user["_id"], req.shipping_address, req.payment_method, req.payment_result)
    return {"success": True, "message": "Order placed successfully", "order": to_dict(order)}


@app.get("/api/orders/myorders")
@app.get("/api/orders/myOrders")
def my_orders(user=Depends(get_current_user), db=Depends(get_db)):
    docs = orders.list_user_orders(db, user["_id"])
    return {"success": True, "count": len(docs), "orders": to_dict(docs)}


@app.get("/api/orders/{order_id}")
def get_order(order_id: str, user=Depends(get_current_user), db=Depends(get_db)):
    return {"success": True, "order": to_dict(orders.get_order(db, order_id, user))}


@app.get("/api/orders")
def list_orders(_=Depends(require_admin), db=Depends(get_db)):
    docs = orders.list_orders(db)
    return {"success": True, "count": len(docs), "orders": to_dict(docs)}


@app.put("/api/orders/{order_id}/status")
def update_order_status(order_id: str, req: OrderStatusRequest, _=Depends(require_admin), db=Depends(get_db)):
    order = orders.update_order_status(db, order_id, req.order_status)
    return {"success": True, "message": "Order status updated", "order": to_dict(order)}


# ----- Admin -----

@app.get("/api/admin/stats")
def dashboard_stats(_=Depends(require_admin), db=Depends(get_db)):
    return {"success": True, "stats": to_dict(admin.dashboard_stats(db))}


@app.get("/api/admin/users")
def list_users(_=Depends(require_admin), db=Depends(get_db)):
    users = admin.list_users(db)
    return {"success": True, "count": len(users), "users": to_dict(users)}


@app.delete("/api/admin/users/{user_id}")
def delete_user(user_id: str, _=Depends(require_admin), db=Depends(get_db)):
    admin.delete_user(db, user_id)
    return {"success": True, "message": "User deleted successfully"}


@app.put("/api/admin/users/{user_id}/role")
def update_user_role(user_id: str, req: RoleRequest, _=Depends(require_admin), db=Depends(get_db)):
    user = admin.update_user_role(db, user_id, req.role)
    return {"success": True, "message": "User role updated", "user": to_dict(user)}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=PORT)
