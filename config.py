import os

DATABASE_URL = os.getenv("DATABASE_URL") or os.getenv("MONGODB_URI")
DATABASE_NAME = os.getenv("DATABASE_NAME", "LocalChefBazaar")

# base64-encoded Firebase service account JSON; when unset, tokens are verified as HS256 JWTs
FB_SERVICE_KEY = os.getenv("FB_SERVICE_KEY")
JWT_SECRET = os.getenv("JWT_SECRET", "dev_secret_change_me")
JWT_ALG = os.getenv("JWT_ALG", "HS256")
TOKEN_EXPIRE_MIN = 60 * 24 * 14  # 14 days

STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
PAYMENT_CURRENCY = os.getenv("PAYMENT_CURRENCY", "usd")

PORT = int(os.getenv("PORT", 8000))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

DEFAULT_CORS_ORIGINS = [
    "http://localhost:5173",
    "https://localchefbazaar-c2f05.web.app",
    "https://localchefbazaar-frontend.vercel.app",
]
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "").split(",") if o.strip()] or DEFAULT_CORS_ORIGINS
