"""Runtime configuration read from the environment."""
import os

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./settleup.db")
DB_TIMEOUT_SECONDS = float(os.getenv("DB_TIMEOUT_SECONDS", "15"))

SECRET_KEY = os.getenv("SECRET_KEY", "your-secret-key-change-in-production")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24 * 7)))  # 7 days

_origins_env = os.getenv("ALLOWED_ORIGINS", "")
ALLOWED_ORIGINS = [o.strip() for o in _origins_env.split(",") if o.strip()] if _origins_env else ["*"]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# End-of-day FX rates (open.er-api.com free tier, no key required)
FX_API_BASE = os.getenv("FX_API_BASE", "https://open.er-api.com/v6/latest")
FX_FETCH_TIMEOUT_SECONDS = float(os.getenv("FX_FETCH_TIMEOUT_SECONDS", "10"))

# Payment provider routing: one designated provider for one currency, a default otherwise.
PAYMENT_PROVIDER_CURRENCY = os.getenv("PAYMENT_PROVIDER_CURRENCY", "INR")
PAYMENT_PROVIDER_DESIGNATED = os.getenv("PAYMENT_PROVIDER_DESIGNATED", "razorpay")
PAYMENT_PROVIDER_DEFAULT = os.getenv("PAYMENT_PROVIDER_DEFAULT", "stripe")
