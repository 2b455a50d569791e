import logging
import traceback
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import Depends, FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.database import Database
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

import auth
import config
import products
from database import connect, ensure_indexes, get_db, ping
from errors import AppError
from schemas import (
    LoginRequest,
    MessageOut,
    ProductIn,
    ProductOut,
    ProfileOut,
    ProfileUpdateRequest,
    RatingRequest,
    RegisterRequest,
    UserEnvelope,
)

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="Catalog API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ------------------------- Error handlers -------------------------

@app.exception_handler(AppError)
def handle_app_error(request: Request, exc: AppError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
def handle_request_validation(request: Request, exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err.get("loc", ())[1:])
        errors.append(f"{field}: {err.get('msg')}" if field else err.get("msg"))
    return JSONResponse(status_code=400, content={"message": "Validation error", "errors": errors})


@app.exception_handler(StarletteHTTPException)
def handle_http_error(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        return JSONResponse(status_code=404, content={"message": "Route not found", "path": request.url.path})
    return JSONResponse(status_code=exc.status_code, content={"message": str(exc.detail)})


@app.exception_handler(Exception)
def handle_unexpected(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    content = {"message": "Internal Server Error"}
    if config.APP_ENV == "development":
        content["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return JSONResponse(status_code=500, content=content)


# ------------------------- Lifecycle -------------------------

@app.on_event("startup")
def on_startup():
    if getattr(app.state, "db", None) is None:
        app.state.db = connect()
    try:
        ensure_indexes(app.state.db)
        auth.seed_admin_if_needed(app.state.db)
    except PyMongoError:
        logger.exception("Database not reachable at startup")


@app.on_event("shutdown")
def on_shutdown():
    db = getattr(app.state, "db", None)
    if db is not None:
        db.client.close()
        logger.info("MongoDB connection closed")


@app.get("/")
def root(db: Database = Depends(get_db)):
    return {
        "message": "Catalog API running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": config.APP_ENV,
        "database": "Connected" if ping(db) else "Disconnected",
    }


# ------------------------- Auth -------------------------

@app.post("/api/auth/register", response_model=UserEnvelope, status_code=201)
def register_user(payload: RegisterRequest, response: Response, db: Database = Depends(get_db)):
    user, token = auth.register(db, payload)
    auth.set_session_cookie(response, token)
    return UserEnvelope(message="User registered successfully", user=user)


@app.post("/api/auth/login", response_model=UserEnvelope)
def login_user(payload: LoginRequest, response: Response, db: Database = Depends(get_db)):
    user, token = auth.login(db, payload)
    auth.set_session_cookie(response, token)
    return UserEnvelope(message="Login successful", user=user)


@app.post("/api/auth/logout", response_model=MessageOut)
def logout_user(response: Response):
    auth.clear_session_cookie(response)
    return MessageOut(message="Logged out successfully")


@app.get("/api/auth/profile", response_model=ProfileOut)
def get_user_profile(actor: dict = Depends(auth.require_auth), db: Database = Depends(get_db)):
    return auth.get_profile(db, actor["userId"])


@app.put("/api/auth/profile", response_model=UserEnvelope)
def update_user_profile(
    payload: ProfileUpdateRequest,
    actor: dict = Depends(auth.require_auth),
    db: Database = Depends(get_db),
):
    user = auth.update_profile(db, actor["userId"], payload)
    return UserEnvelope(message="Profile updated successfully", user=user)


# ------------------------- Products -------------------------

@app.get("/api/products", response_model=List[ProductOut])
def get_all_products(db: Database = Depends(get_db)):
    return products.list_all(db)


@app.get("/api/products/search", response_model=List[ProductOut])
def search_products(q: Optional[str] = None, db: Database = Depends(get_db)):
    return products.search(db, q)


@app.get("/api/products/category/{category}", response_model=List[ProductOut])
def get_products_by_category(category: str, db: Database = Depends(get_db)):
    return products.by_category(db, category)


@app.get("/api/products/{product_id}", response_model=ProductOut)
def get_product(product_id: str, db: Database = Depends(get_db)):
    return products.get_by_id(db, product_id)


@app.post("/api/products", response_model=ProductOut, status_code=201, dependencies=[Depends(auth.require_admin)])
def create_product(payload: ProductIn, db: Database = Depends(get_db)):
    return products.create(db, payload)


@app.put("/api/products/{product_id}", response_model=ProductOut, dependencies=[Depends(auth.require_admin)])
def update_product(product_id: str, payload: ProductIn, db: Database = Depends(get_db)):
    return products.update(db, product_id, payload)


@app.delete("/api/products/{product_id}", response_model=MessageOut, dependencies=[Depends(auth.require_admin)])
def delete_product(product_id: str, db: Database = Depends(get_db)):
    return products.delete(db, product_id)


@app.patch("/api/products/{product_id}/rating", response_model=ProductOut, dependencies=[Depends(auth.require_auth)])
def update_product_rating(product_id: str, payload: RatingRequest, db: Database = Depends(get_db)):
    return products.rate(db, product_id, payload.rating)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
