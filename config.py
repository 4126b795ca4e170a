"""
Application configuration, read once from the environment at import time.
"""

import os

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "luxury_bags")

JWT_SECRET = os.getenv("JWT_SECRET", "change-me-in-production")
JWT_ALGORITHM = "HS256"
JWT_EXPIRY_DAYS = int(os.getenv("JWT_EXPIRY_DAYS", "30"))

UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")
MAX_PRODUCT_IMAGES = 5

DEBUG = os.getenv("DEBUG", "0") == "1"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
PORT = int(os.getenv("PORT", "8000"))

# Pricing policy
FREE_SHIPPING_THRESHOLD = 5000
SHIPPING_PRICE = 100
TAX_RATE = "0.18"

LOW_STOCK_THRESHOLD = 5
DEFAULT_PAGE_SIZE = 12
FEATURED_LIMIT = 8
