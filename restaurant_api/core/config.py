import os

from dotenv import load_dotenv

# .env at the project root, if present
load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./restaurant.db")
ENV = os.getenv("ENV", "dev")
ENV_NORMALIZED = ENV.strip().lower()
IS_DEV = ENV_NORMALIZED in {"dev", "development", "local"}
IS_TEST = ENV_NORMALIZED == "test"
IS_PROD = ENV_NORMALIZED in {"prod", "production"}
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# CORS
_cors_env = os.getenv("CORS_ORIGINS", "")
CORS_ORIGINS = [origin.strip() for origin in _cors_env.split(",") if origin.strip() and origin.strip() != "*"]

if not CORS_ORIGINS and IS_DEV:
    CORS_ORIGINS = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

# Orders
ORDER_TOTAL_POLICY = os.getenv("ORDER_TOTAL_POLICY", "clamp").strip().lower()
if ORDER_TOTAL_POLICY not in {"clamp", "allow_negative"}:
    ORDER_TOTAL_POLICY = "clamp"

ORDER_NUMBER_MAX_ATTEMPTS = int(os.getenv("ORDER_NUMBER_MAX_ATTEMPTS", "20"))

# Coupons
ANONYMOUS_REDEEMER_ID = os.getenv("ANONYMOUS_REDEEMER_ID", "ANONYMOUS").strip() or "ANONYMOUS"
