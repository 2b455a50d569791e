import os

from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# Environment
DATABASE_URL = os.getenv("DATABASE_URL", "mongodb://127.0.0.1:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "ecommerce")
APP_ENV = os.getenv("APP_ENV", "development")
PORT = int(os.getenv("PORT", "8082"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Session tokens
JWT_SECRET = os.getenv("JWT_SECRET", "dev_secret_change_me")
JWT_ALGORITHM = "HS256"
JWT_EXPIRES_DAYS = int(os.getenv("JWT_EXPIRES_DAYS", "7"))
COOKIE_NAME = "token"
COOKIE_SECURE = _flag("COOKIE_SECURE", "true")

# Password hashing
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "10"))

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:4200").split(",") if o.strip()]

# Registration may request role=admin only when this is enabled
ALLOW_ROLE_SELF_ASSIGN = _flag("ALLOW_ROLE_SELF_ASSIGN", "false")

# Seed admin account, created at startup when both are set
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD")
ADMIN_NAME = os.getenv("ADMIN_NAME", "Admin")
