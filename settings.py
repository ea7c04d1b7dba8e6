import os
from decimal import Decimal

# Auth settings
SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key-change-me")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24))
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", 12))

# Pricing
TAX_RATE = Decimal(os.getenv("TAX_RATE", "0.08"))
FREE_SHIPPING_THRESHOLD = Decimal(os.getenv("FREE_SHIPPING_THRESHOLD", "50.00"))
SHIPPING_FEE = Decimal(os.getenv("SHIPPING_FEE", "9.99"))

# Listing
DEFAULT_PAGE_SIZE = int(os.getenv("DEFAULT_PAGE_SIZE", 12))
MAX_PAGE_SIZE = int(os.getenv("MAX_PAGE_SIZE", 100))

# Runtime
SEED_DATA = os.getenv("SEED_DATA", "true").lower() in ("1", "true", "yes")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
PORT = int(os.getenv("PORT", 8000))
