from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging
import uuid

from config import settings
from database import init_db, async_session_maker
from document_store import DocumentStore, DocumentNotFound, COLLECTION_USERS
from models import AuthAccount, AuthProvider, UserRole
from auth import get_account_by_email
from platform_admin import router as platform_admin_router

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)

# Setup logging
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.APP_NAME, version="1.0.0")

CORS_ORIGINS = settings.cors_origins_list

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],  # Expose all headers to the browser
    max_age=3600,  # Cache preflight responses for 1 hour
)

# ==================== CUSTOM EXCEPTION HANDLERS ====================


def _add_cors_headers(request: Request, response):
    origin = request.headers.get('origin')
    if origin and origin in CORS_ORIGINS:
        response.headers['Access-Control-Allow-Origin'] = origin
        response.headers['Access-Control-Allow-Credentials'] = 'true'
    return response


@app.exception_handler(StarletteHTTPException)
async def custom_http_exception_handler(request: Request, exc: StarletteHTTPException):
    """
    Custom exception handler that ensures CORS headers are included in error responses.

    HTTPExceptions raised in dependencies (like the super admin guard) would
    otherwise reach the browser without CORS headers and be blocked.
    """
    response = await http_exception_handler(request, exc)
    return _add_cors_headers(request, response)


@app.exception_handler(DocumentNotFound)
async def document_not_found_handler(request: Request, exc: DocumentNotFound):
    """Updates against a missing document surface as 404"""
    response = JSONResponse(
        status_code=404,
        content={"detail": str(exc)}
    )
    return _add_cors_headers(request, response)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """
    Catch-all exception handler for unexpected errors.
    Ensures CORS headers are present even on 500 errors.
    """
    logger.error(f"Unexpected error: {exc}", exc_info=True)

    response = JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )
    return _add_cors_headers(request, response)

# ==================== END EXCEPTION HANDLERS ====================

# Include platform super admin routes
app.include_router(platform_admin_router)


async def bootstrap_super_admin():
    """
    Create or refresh the environment-based super admin (disaster recovery).
    The account gets a `super_admin` profile document so the route guard admits it.
    """
    if not (settings.BOOTSTRAP_SUPER_ADMIN_EMAIL and settings.BOOTSTRAP_SUPER_ADMIN_PASSWORD_HASH):
        return

    logger.info("=" * 60)
    logger.info("Bootstrapping environment-based super admin...")

    async with async_session_maker() as db:
        bootstrap_admin = await get_account_by_email(db, settings.BOOTSTRAP_SUPER_ADMIN_EMAIL)

        if bootstrap_admin:
            bootstrap_admin.hashed_password = settings.BOOTSTRAP_SUPER_ADMIN_PASSWORD_HASH
            bootstrap_admin.env_based = True
            bootstrap_admin.is_active = True
            logger.info(f"✅ Updated bootstrap admin: {settings.BOOTSTRAP_SUPER_ADMIN_EMAIL}")
        else:
            bootstrap_admin = AuthAccount(
                uid=uuid.uuid4().hex,
                email=settings.BOOTSTRAP_SUPER_ADMIN_EMAIL.lower(),
                hashed_password=settings.BOOTSTRAP_SUPER_ADMIN_PASSWORD_HASH,
                provider=AuthProvider.PASSWORD.value,
                env_based=True,
                is_active=True
            )
            db.add(bootstrap_admin)
            logger.info(f"✅ Created bootstrap admin: {settings.BOOTSTRAP_SUPER_ADMIN_EMAIL}")

        await db.commit()

        store = DocumentStore(db)
        profile = await store.get(COLLECTION_USERS, bootstrap_admin.uid)
        if profile is None:
            await store.set(COLLECTION_USERS, bootstrap_admin.uid, {
                "email": bootstrap_admin.email,
                "fullName": settings.BOOTSTRAP_SUPER_ADMIN_FULL_NAME,
                "role": UserRole.SUPER_ADMIN.value,
                "isActive": True,
            })
        else:
            await store.update(COLLECTION_USERS, bootstrap_admin.uid, {
                "role": UserRole.SUPER_ADMIN.value,
                "isActive": True,
            })

    logger.info("Bootstrap super admin ready!")
    logger.info("=" * 60)


@app.on_event("startup")
async def startup():
    """Initialize database and bootstrap data"""
    await init_db()
    await bootstrap_super_admin()

    # Auto-seed demo data if the store is empty
    from seed_demo_data import seed_demo_data_on_startup
    async with async_session_maker() as db:
        await seed_demo_data_on_startup(db)

    logger.info(f"{settings.APP_NAME} started (timezone: {settings.TIMEZONE})")


@app.get("/health")
async def health_check():
    return {"status": "healthy", "app": settings.APP_NAME}


@app.get("/")
async def root():
    """The dashboard UI lives on the frontend; send browsers to its login page"""
    return RedirectResponse(url=f"{settings.FRONTEND_URL.rstrip('/')}/login")


@app.get("/{full_path:path}", include_in_schema=False)
async def unknown_route(full_path: str):
    """Unknown API paths are 404s; any other path is a browser route"""
    if full_path == "api" or full_path.startswith("api/"):
        raise HTTPException(status_code=404, detail="Not Found")
    return RedirectResponse(url=f"{settings.FRONTEND_URL.rstrip('/')}/login")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
