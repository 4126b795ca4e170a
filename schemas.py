"""
Database Schemas for the Luxury Bag Store

Each Pydantic model represents a collection in MongoDB.
Collection name is the lowercase class name.
"""

from datetime import datetime
from typing import List, Literal, Optional, get_args

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

Category = Literal["Handbag", "Shoulder Bag", "Crossbody", "Tote", "Clutch", "Other"]
Material = Literal["Leather", "Vegan Leather", "Canvas", "Suede", "Nylon", "Exotic Leather", "Other"]
Role = Literal["user", "admin"]
OrderStatus = Literal["Processing", "Confirmed", "Shipped", "Delivered", "Cancelled"]
PaymentStatus = Literal["Pending", "Paid"]

CATEGORIES = get_args(Category)
MATERIALS = get_args(Material)
ROLES = get_args(Role)
ORDER_STATUSES = get_args(OrderStatus)

# Payment collected on delivery; the order starts unpaid.
DEFERRED_PAYMENT_METHODS = ("Cash on Delivery",)


class Address(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    street: str = Field("", description="Street and house number")
    city: str = Field("", description="City")
    state: Optional[str] = Field(None, description="State or province")
    zip_code: Optional[str] = Field(None, description="Postal code")
    country: Optional[str] = Field("India", description="Country")


class User(BaseModel):
    name: str = Field(..., min_length=1, description="Full name")
    email: EmailStr = Field(..., description="Email address, unique")
    password: str = Field(..., description="bcrypt hash, never returned")
    role: Role = Field("user", description="user or admin")
    addresses: List[Address] = Field(default_factory=list)


class ProductImage(BaseModel):
    url: str = Field(..., description="Public image URL")
    public_id: str = Field(..., description="Identifier in image storage")


class Dimensions(BaseModel):
    length: Optional[float] = Field(None, ge=0)
    width: Optional[float] = Field(None, ge=0)
    height: Optional[float] = Field(None, ge=0)


class Product(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description="Product name")
    description: str = Field(..., min_length=1, max_length=2000, description="Product description")
    price: float = Field(..., ge=0, description="Price in INR")
    brand: str = Field(..., min_length=1, description="Brand name")
    category: Category
    material: Material
    color: str = Field(..., min_length=1)
    stock: int = Field(0, ge=0, description="Units in stock")
    images: List[ProductImage] = Field(default_factory=list)
    rating: float = Field(0, ge=0, le=5, description="Average rating 0-5")
    num_reviews: int = Field(0, ge=0)
    is_featured: bool = Field(False, description="Showcase on home page")
    dimensions: Optional[Dimensions] = None


class CartItem(BaseModel):
    product: str = Field(..., description="Referenced product _id")
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0, description="Unit price captured when added")


class Cart(BaseModel):
    user: str = Field(..., description="Owning user _id, one cart per user")
    items: List[CartItem] = Field(default_factory=list)
    total_price: float = 0
    total_items: int = 0


class OrderItem(BaseModel):
    product: str = Field(..., description="Referenced product _id")
    name: str = Field(..., description="Snapshot of product name at purchase time")
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0, description="Unit price captured in the cart")
    image: str = Field("", description="First product image URL")


class PaymentResult(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: Optional[str] = Field(None, description="Payment gateway reference")
    status: Optional[str] = None


class Order(BaseModel):
    user: str
    order_items: List[OrderItem]
    shipping_address: Address
    payment_method: str = Field("Cash on Delivery")
    payment_result: Optional[PaymentResult] = None
    items_price: float = Field(..., ge=0)
    shipping_price: float = Field(..., ge=0)
    tax_price: float = Field(..., ge=0)
    total_price: float = Field(..., ge=0)
    order_status: OrderStatus = "Processing"
    payment_status: PaymentStatus = "Pending"
    delivered_at: Optional[datetime] = None
