"""
FastAPI Application Entry Point

Food Ordering Service: catalog, guest checkout, order tracking and
account authentication.

Endpoints:
    - GET/POST /food-items, DELETE /food-items/{id}: Catalog
    - POST /signup, /adminsignup, /signin, /adminsignin: Accounts
    - GET /profile, /protected: Bearer-token routes
    - POST /orders, GET /orders, GET /allorders: Orders
    - GET/PUT/DELETE /orders/{id}: Single order and status changes
    - GET /health: System health check
"""

import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

import redis
from fastapi import Depends, FastAPI, File, Form, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from food_ordering.core.config import get_settings, setup_logging
from food_ordering.core.errors import FoodOrderingError, NotFound, ValidationError
from food_ordering.database import engine, get_db, init_db
from food_ordering.models import Identity
from food_ordering.schemas import (
    AuthResponse,
    ErrorResponse,
    FoodItemDeleteResponse,
    FoodItemResponse,
    HealthResponse,
    IdentityResponse,
    OrderCreate,
    OrderCreateResponse,
    OrderDeleteResponse,
    OrderResponse,
    OrderStatusUpdate,
    SignInRequest,
    UploadResponse,
)
from food_ordering.services.catalog import CatalogService
from food_ordering.services.credentials import CredentialStore
from food_ordering.services.guard import require_admin_when_configured, require_identity
from food_ordering.services.ledger import OrderLedger
from food_ordering.services.queries import OrderQueryService
from food_ordering.services.storage import get_upload_storage
from food_ordering.services.tokens import TokenClaim, get_token_service

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    # Startup
    logger.info("=" * 60)
    logger.info(f"🚀 Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    await init_db()
    logger.info("✅ Database initialized")

    get_upload_storage().ensure_directory()
    tokens = get_token_service()
    logger.info(f"✅ Token expiry policy: {tokens.expiry_mode.value}")
    logger.info(f"✅ Order total policy: {settings.order_total_policy.value}")

    missing = settings.validate_production_config()
    if missing:
        logger.warning(f"⚠️ Unsafe production config: {missing}")

    logger.info("✅ Application ready!")

    yield  # Application runs

    # Shutdown
    logger.info("Shutting down...")
    await engine.dispose()
    logger.info("✅ Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description="Catalog browsing, order placement/tracking and account authentication.",
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.mount(
    "/uploads",
    StaticFiles(directory=settings.upload_directory, check_dir=False),
    name="uploads",
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.info(
        f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f}ms)"
    )
    return response


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def parse_order_id(raw: str) -> int:
    """Order ids are integers; anything else cannot name an order."""
    try:
        return int(raw)
    except ValueError:
        raise NotFound(f"Order with ID {raw} not found")


def auth_response(identity: Identity) -> AuthResponse:
    token = get_token_service().issue(TokenClaim.from_identity(identity))
    return AuthResponse(token=token, name=identity.name, email=identity.email)


async def _register(
    db: AsyncSession,
    name: Optional[str],
    mobile: Optional[str],
    email: Optional[str],
    password: Optional[str],
    profile_image: Optional[UploadFile],
    is_admin: bool,
) -> AuthResponse:
    identity = await CredentialStore(db).register(
        name=name,
        secret=password,
        mobile=mobile,
        email=email,
        profile_image=profile_image,
        is_admin=is_admin,
    )
    return auth_response(identity)


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "health": "/health",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(
    db: AsyncSession = Depends(get_db)
) -> HealthResponse:
    """Verify database and broker connectivity."""

    db_status = "healthy"
    try:
        await db.execute(select(func.count()).select_from(Identity))
    except Exception as e:
        db_status = f"unhealthy: {str(e)}"
        logger.error(f"Database health check failed: {e}")

    redis_status = "healthy"
    try:
        r = redis.Redis.from_url(settings.redis_url, socket_timeout=2)
        r.ping()
        r.close()
    except Exception as e:
        redis_status = f"unhealthy: {str(e)}"
        logger.error(f"Redis health check failed: {e}")

    overall = "operational" if db_status == redis_status == "healthy" else "degraded"

    return HealthResponse(
        status=overall,
        database=db_status,
        redis=redis_status,
        timestamp=datetime.now(),
    )


# =============================================================================
# CATALOG ENDPOINTS
# =============================================================================

@app.get("/food-items", response_model=list[FoodItemResponse], tags=["Catalog"])
async def list_food_items(db: AsyncSession = Depends(get_db)) -> list[FoodItemResponse]:
    items = await CatalogService(db).list_items()
    return [FoodItemResponse.model_validate(item) for item in items]


@app.post(
    "/food-items",
    response_model=FoodItemResponse,
    status_code=201,
    responses={400: {"model": ErrorResponse}},
    tags=["Catalog"],
)
async def create_food_item(
    name: Optional[str] = Form(None),
    price: Optional[float] = Form(None),
    description: Optional[str] = Form(None),
    type: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    db: AsyncSession = Depends(get_db),
) -> FoodItemResponse:
    item = await CatalogService(db).add_item(name, price, description, type, image)
    return FoodItemResponse.model_validate(item)


@app.delete(
    "/food-items/{item_id}",
    response_model=FoodItemDeleteResponse,
    responses={404: {"model": ErrorResponse}},
    tags=["Catalog"],
)
async def delete_food_item(
    item_id: str,
    db: AsyncSession = Depends(get_db),
) -> FoodItemDeleteResponse:
    item = await CatalogService(db).remove_item(item_id)
    return FoodItemDeleteResponse(
        message="Food item deleted",
        deleted_food_item=FoodItemResponse.model_validate(item),
    )


@app.post(
    "/upload-image",
    response_model=UploadResponse,
    status_code=201,
    responses={400: {"model": ErrorResponse}},
    tags=["Catalog"],
)
async def upload_image(file: Optional[UploadFile] = File(None)) -> UploadResponse:
    if file is None or not file.filename:
        raise ValidationError("No file uploaded")
    path = await get_upload_storage().save(file)
    return UploadResponse(message=f"File uploaded: {path}", path=path)


# =============================================================================
# ACCOUNT ENDPOINTS
# =============================================================================

@app.post(
    "/signup",
    response_model=AuthResponse,
    status_code=201,
    responses={400: {"model": ErrorResponse}},
    tags=["Accounts"],
)
async def signup(
    name: Optional[str] = Form(None),
    mobile: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    password: Optional[str] = Form(None),
    profile_image: Optional[UploadFile] = File(None, alias="profileImage"),
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    return await _register(db, name, mobile, email, password, profile_image, is_admin=False)


@app.post(
    "/adminsignup",
    response_model=AuthResponse,
    status_code=201,
    responses={400: {"model": ErrorResponse}},
    tags=["Accounts"],
)
async def admin_signup(
    name: Optional[str] = Form(None),
    mobile: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    password: Optional[str] = Form(None),
    profile_image: Optional[UploadFile] = File(None, alias="profileImage"),
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    return await _register(db, name, mobile, email, password, profile_image, is_admin=True)


@app.post(
    "/signin",
    response_model=AuthResponse,
    responses={401: {"model": ErrorResponse}},
    tags=["Accounts"],
)
async def signin(
    credentials: SignInRequest,
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    identity = await CredentialStore(db).authenticate(credentials.identifier, credentials.secret)
    return auth_response(identity)


@app.post(
    "/adminsignin",
    response_model=AuthResponse,
    responses={401: {"model": ErrorResponse}},
    tags=["Accounts"],
)
async def admin_signin(
    credentials: SignInRequest,
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    identity = await CredentialStore(db).authenticate(
        credentials.identifier, credentials.secret, admin=True
    )
    return auth_response(identity)


@app.get(
    "/profile",
    response_model=IdentityResponse,
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    tags=["Accounts"],
)
async def profile(
    claim: TokenClaim = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
) -> IdentityResponse:
    identity = None
    if claim.subject and claim.subject.isdigit():
        identity = await db.get(Identity, int(claim.subject))
    if identity is None and claim.email:
        identity = await CredentialStore(db).find_by_email(claim.email)

    if identity is None:
        raise NotFound("User not found")
    return IdentityResponse.model_validate(identity)


@app.get("/protected", tags=["Accounts"])
async def protected(claim: TokenClaim = Depends(require_identity)) -> dict[str, str]:
    return {"message": "This is a protected route"}


# =============================================================================
# ORDER ENDPOINTS
# =============================================================================

@app.post(
    "/orders",
    response_model=OrderCreateResponse,
    status_code=201,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    tags=["Orders"],
)
async def place_order(
    order_data: OrderCreate,
    db: AsyncSession = Depends(get_db),
) -> OrderCreateResponse:
    """Guest checkout: no token needed."""
    purchaser = order_data.user_details.to_snapshot() if order_data.user_details else None
    order = await OrderLedger(db).place(
        purchaser=purchaser,
        lines=[line.to_line() for line in order_data.order_details],
        total_amount=order_data.total_amount,
        payment_method=order_data.payment_method,
    )
    return OrderCreateResponse(
        message="Order submitted successfully",
        order=OrderResponse.from_order(order),
    )


@app.get(
    "/orders",
    response_model=list[OrderResponse],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    tags=["Orders"],
)
async def my_orders(
    claim: TokenClaim = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
) -> list[OrderResponse]:
    """Orders placed with the caller's email, newest first."""
    listing = await OrderQueryService(db).list_for_identity(claim.email)
    if listing.none_found:
        raise NotFound("No orders found for this user")
    return [OrderResponse.from_order(order) for order in listing.orders]


@app.get(
    "/allorders",
    response_model=list[OrderResponse],
    responses={404: {"model": ErrorResponse}},
    tags=["Orders"],
)
async def all_orders(
    status: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: Optional[int] = Query(None, ge=1, le=500),
    _admin: Optional[TokenClaim] = Depends(require_admin_when_configured),
    db: AsyncSession = Depends(get_db),
) -> list[OrderResponse]:
    """Every order, newest first."""
    listing = await OrderQueryService(db).list_all(status=status, skip=skip, limit=limit)
    if listing.none_found:
        raise NotFound("No orders found")
    return [OrderResponse.from_order(order) for order in listing.orders]


@app.get(
    "/orders/{order_id}",
    response_model=OrderResponse,
    responses={404: {"model": ErrorResponse}},
    tags=["Orders"],
)
async def get_order(
    order_id: str,
    db: AsyncSession = Depends(get_db),
) -> OrderResponse:
    order = await OrderLedger(db).get(parse_order_id(order_id))
    return OrderResponse.from_order(order)


@app.put(
    "/orders/{order_id}",
    response_model=OrderResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
    tags=["Orders"],
)
async def update_order_status(
    order_id: str,
    update: OrderStatusUpdate,
    db: AsyncSession = Depends(get_db),
) -> OrderResponse:
    order = await OrderLedger(db).set_status(parse_order_id(order_id), update.status)
    return OrderResponse.from_order(order)


@app.delete(
    "/orders/{order_id}",
    response_model=OrderDeleteResponse,
    responses={404: {"model": ErrorResponse}},
    tags=["Orders"],
)
async def delete_order(
    order_id: str,
    db: AsyncSession = Depends(get_db),
) -> OrderDeleteResponse:
    order = await OrderLedger(db).remove(parse_order_id(order_id))
    return OrderDeleteResponse(
        message="Order deleted",
        deleted_order=OrderResponse.from_order(order),
    )


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(FoodOrderingError)
async def service_error_handler(request: Request, exc: FoodOrderingError) -> JSONResponse:
    """Render service errors with their mapped status."""
    headers = None
    if exc.status_code == 401:
        headers = {"WWW-Authenticate": "Bearer"}

    body = exc.to_dict()
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.detail}")
        if not settings.debug:
            body["detail"] = "An unexpected error occurred"

    return JSONResponse(status_code=exc.status_code, content=body, headers=headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies are client errors like any other ValidationError."""
    problems = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    )
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": "ValidationError", "detail": problems},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal Server Error",
            "detail": str(exc) if settings.debug else "An unexpected error occurred",
        },
    )


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    uvicorn.run("food_ordering.main:app", host=settings.api_host, port=settings.api_port)
