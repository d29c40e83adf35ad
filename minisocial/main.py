from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.exc import SQLAlchemyError
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
import logging

from minisocial.config import settings
from minisocial.api import auth, posts
from minisocial.api.deps import DATABASE_BACKEND, MEMORY_BACKEND
from minisocial.core.exceptions import PostStoreError, ValidationError, format_errors
from minisocial.db.session import init_db, close_db
from minisocial.schemas.user_schema import UserCreate
from minisocial.services.auth_service import AuthService
from minisocial.services.memory_store import InMemoryPostStore, InMemoryUserStore

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

async def select_store_backend() -> str:
    """Use the database when it answers, otherwise fall back to demo mode if allowed"""
    if settings.STORE_BACKEND == MEMORY_BACKEND:
        return MEMORY_BACKEND

    try:
        await init_db()
        return DATABASE_BACKEND
    except (SQLAlchemyError, OSError) as e:
        if settings.STORE_BACKEND == DATABASE_BACKEND:
            logger.error(f"Database connection failed: {e}")
            raise
        logger.warning(f"Database connection failed ({e}); running in demo mode with in-memory storage")
        return MEMORY_BACKEND

async def seed_demo_data(app: FastAPI) -> None:
    """Demo account and a welcome post so an empty demo instance is usable"""
    auth_service = AuthService(app.state.memory_users)
    demo_user = await auth_service.register(
        UserCreate(username="demo", email="demo@example.com", password="demo123")
    )
    await app.state.memory_posts.create_post(
        demo_user.id,
        demo_user.username,
        text="Welcome to Mini Social! This is a live demo post.",
    )
    logger.info("Seeded demo user 'demo@example.com' and a welcome post")

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events"""
    # Startup
    logger.info("Starting up...")
    Path(settings.UPLOAD_DIR).mkdir(parents=True, exist_ok=True)

    app.state.store_backend = await select_store_backend()
    logger.info(f"Post store backend: {app.state.store_backend}")

    if app.state.store_backend == MEMORY_BACKEND and settings.DEMO_SEED:
        await seed_demo_data(app)

    yield

    # Shutdown
    logger.info("Shutting down...")
    await close_db()

# Create FastAPI app
app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    description="A minimal social post API: posts, likes and comments",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan
)

# Replaced by the lifespan once the backend is known
app.state.store_backend = DATABASE_BACKEND
app.state.memory_posts = InMemoryPostStore()
app.state.memory_users = InMemoryUserStore()

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Uploaded images
app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False), name="uploads")

@app.exception_handler(PostStoreError)
async def post_store_error_handler(request: Request, exc: PostStoreError):
    content = {"success": False, "message": exc.message}
    if isinstance(exc, ValidationError):
        content["errors"] = exc.errors
    return JSONResponse(status_code=exc.status_code, content=content)

@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.detail},
        headers=getattr(exc, "headers", None),
    )

@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": "Validation error", "errors": format_errors(exc.errors())},
    )

@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    content = {"success": False, "message": "Server error"}
    if settings.DEBUG:
        content["error"] = str(exc)
    return JSONResponse(status_code=500, content=content)

# Include routers
app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(posts.router, prefix="/api/posts", tags=["Posts"])

@app.get("/")
async def root(request: Request):
    """Root endpoint with API information"""
    return {
        "message": "Mini Social API",
        "version": settings.VERSION,
        "status": "running",
        "mode": request.app.state.store_backend,
        "environment": settings.ENVIRONMENT,
        "docs": "/api/docs",
    }

@app.get("/api/health")
async def health_check(request: Request):
    """Health check endpoint"""
    return {
        "success": True,
        "mode": request.app.state.store_backend,
        "environment": settings.ENVIRONMENT,
        "timestamp": datetime.utcnow().isoformat(),
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "minisocial.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="info"
    )
