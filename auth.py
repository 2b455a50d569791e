import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from fastapi import Depends, Header, Request, Response
from jose import JWTError, jwt
from passlib.context import CryptContext
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

import config
from database import create_document, get_db, parse_object_id
from errors import AuthError, ConflictError, ForbiddenError, NotFoundError, ValidationError
from schemas import (
    LoginRequest,
    ProfileOut,
    ProfileUpdateRequest,
    RegisterRequest,
    UserOut,
    error_messages,
    validate_user,
)

logger = logging.getLogger(__name__)

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=config.BCRYPT_ROUNDS)

INVALID_CREDENTIALS = "Invalid email or password"
MIN_PASSWORD_LENGTH = 6


# ------------------------- Tokens -------------------------

def create_jwt(user_id: str, expires_days: int = config.JWT_EXPIRES_DAYS) -> str:
    expire = datetime.now(timezone.utc) + timedelta(days=expires_days)
    return jwt.encode({"userId": user_id, "exp": expire}, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def verify_jwt(token: str) -> dict:
    try:
        decoded = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except JWTError:
        raise AuthError("Invalid or expired token")
    if not decoded.get("userId"):
        raise AuthError("Invalid or expired token")
    return decoded


def set_session_cookie(response: Response, token: str):
    response.set_cookie(
        key=config.COOKIE_NAME,
        value=token,
        max_age=config.JWT_EXPIRES_DAYS * 24 * 60 * 60,
        httponly=True,
        secure=config.COOKIE_SECURE,
        samesite="none",
    )


def clear_session_cookie(response: Response):
    response.delete_cookie(
        key=config.COOKIE_NAME,
        httponly=True,
        secure=config.COOKIE_SECURE,
        samesite="none",
    )


# ------------------------- Helpers -------------------------

def public_user(doc: dict) -> UserOut:
    return UserOut(
        id=str(doc["_id"]),
        name=doc.get("name"),
        email=doc.get("email"),
        role=doc.get("role", "user"),
    )


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def _raise_if_invalid(doc: dict):
    errors = validate_user(doc)
    if errors:
        raise ValidationError("Validation error", error_messages(errors))


# ------------------------- Operations -------------------------

def register(db: Database, payload: RegisterRequest) -> Tuple[UserOut, str]:
    if not payload.name or not payload.email or not payload.password:
        raise ValidationError("Please provide name, email, and password")
    if len(payload.password) < MIN_PASSWORD_LENGTH:
        raise ValidationError("Password must be at least 6 characters long")

    email = _normalize_email(payload.email)
    if db["user"].find_one({"email": email}):
        raise ConflictError("User with this email already exists")

    role = "user"
    if payload.role and payload.role != "user":
        if config.ALLOW_ROLE_SELF_ASSIGN:
            role = payload.role
        else:
            logger.warning("Ignoring requested role %r at registration for %s", payload.role, email)

    doc = {
        "name": payload.name.strip(),
        "email": email,
        "password": pwd_context.hash(payload.password),
        "role": role,
    }
    _raise_if_invalid(doc)

    try:
        user = create_document(db, "user", doc)
    except DuplicateKeyError:
        raise ConflictError("User with this email already exists")

    logger.info("Registered user %s", user["_id"])
    return public_user(user), create_jwt(str(user["_id"]))


def login(db: Database, payload: LoginRequest) -> Tuple[UserOut, str]:
    if not payload.email or not payload.password:
        raise ValidationError("Please provide email and password")

    user = db["user"].find_one({"email": _normalize_email(payload.email)})
    if not user or not pwd_context.verify(payload.password, user.get("password", "")):
        logger.warning("Failed login attempt")
        raise AuthError(INVALID_CREDENTIALS)

    logger.info("User %s logged in", user["_id"])
    return public_user(user), create_jwt(str(user["_id"]))


def _find_user(db: Database, user_id: str) -> Optional[dict]:
    oid = parse_object_id(user_id)
    if oid is None:
        return None
    return db["user"].find_one({"_id": oid})


def get_profile(db: Database, actor_id: str) -> ProfileOut:
    user = _find_user(db, actor_id)
    if not user:
        raise NotFoundError("User not found")
    return ProfileOut(**public_user(user).model_dump(), createdAt=user.get("createdAt"))


def update_profile(db: Database, actor_id: str, payload: ProfileUpdateRequest) -> UserOut:
    update_data = {}
    if payload.name:
        update_data["name"] = payload.name.strip()
    if payload.email:
        update_data["email"] = _normalize_email(payload.email)

    user = _find_user(db, actor_id)
    if not user:
        raise NotFoundError("User not found")

    if "email" in update_data:
        taken = db["user"].find_one({"email": update_data["email"], "_id": {"$ne": user["_id"]}})
        if taken:
            raise ConflictError("Email is already taken by another user")

    _raise_if_invalid({**user, **update_data})

    if update_data:
        try:
            db["user"].update_one({"_id": user["_id"]}, {"$set": update_data})
        except DuplicateKeyError:
            raise ConflictError("Email is already taken by another user")
        user.update(update_data)

    return public_user(user)


def seed_admin_if_needed(db: Database):
    if not config.ADMIN_EMAIL or not config.ADMIN_PASSWORD:
        return
    email = _normalize_email(config.ADMIN_EMAIL)
    if db["user"].find_one({"email": email}):
        return
    create_document(db, "user", {
        "name": config.ADMIN_NAME,
        "email": email,
        "password": pwd_context.hash(config.ADMIN_PASSWORD),
        "role": "admin",
    })
    logger.info("Seeded admin account %s", email)


# ------------------------- Dependencies -------------------------

def get_session_token(request: Request, authorization: Optional[str] = Header(None)) -> Optional[str]:
    if authorization:
        parts = authorization.split()
        if len(parts) == 2 and parts[0].lower() == "bearer":
            return parts[1]
    return request.cookies.get(config.COOKIE_NAME)


def require_auth(token: Optional[str] = Depends(get_session_token), db: Database = Depends(get_db)) -> dict:
    if not token:
        raise AuthError("Authentication required")
    payload = verify_jwt(token)
    user = _find_user(db, payload["userId"])
    return {"userId": payload["userId"], "role": user.get("role") if user else None}


def require_admin(actor: dict = Depends(require_auth)) -> dict:
    # role is None when the token outlived its user record
    if actor.get("role") is None:
        raise AuthError("Authentication required")
    if actor.get("role") != "admin":
        raise ForbiddenError("Access denied. Admin privileges required.")
    return actor
