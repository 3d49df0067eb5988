from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from slowapi.middleware import SlowAPIMiddleware

from analytics import router as analytics_router
from auth import router as auth_router
from auth import service as auth_service
from content import router as content_router
from core import db, ratelimit, settings
from core.errors import register_exception_handlers
from core.log import configure_logging, log_requests
from discounts import router as discounts_router
from members import router as members_router
from otp import router as otp_router
from shops import router as shops_router
from transactions import router as transactions_router
from users import router as users_router

configure_logging()


@asynccontextmanager
async def lifespan(_: FastAPI):
    # Initialize the DB pool once per process.
    await db.init_pool()
    await auth_service.ensure_default_admin()
    try:
        yield
    finally:
        await db.close_pool()


app = FastAPI(title=settings.app_name(), lifespan=lifespan)

app.state.limiter = ratelimit.limiter
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.frontend_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.middleware("http")(log_requests)

register_exception_handlers(app)

upload_root = Path(settings.upload_dir())
upload_root.mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=upload_root), name="uploads")

app.include_router(auth_router.router, tags=["admin-auth"])
app.include_router(members_router.router, tags=["members"])
app.include_router(users_router.router, tags=["users"])
app.include_router(shops_router.router, tags=["shops"])
app.include_router(shops_router.public_router, tags=["shops"])
app.include_router(discounts_router.router, tags=["discounts"])
app.include_router(transactions_router.router, tags=["transactions"])
app.include_router(otp_router.router, tags=["otp"])
app.include_router(content_router.router, tags=["content"])
app.include_router(content_router.public_router, tags=["content"])
app.include_router(analytics_router.router, tags=["analytics"])


@app.get("/health")
def health() -> dict:
    return {
        "success": True,
        "message": "Server is running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": settings.environment(),
    }


@app.get("/")
def root() -> dict:
    return {"success": True, "message": f"{settings.app_name()} API"}
