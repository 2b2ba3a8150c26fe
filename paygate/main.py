"""
Payment Gateway - Main FastAPI Application
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from paygate.core.config import settings
from paygate.core.logging import setup_logging, get_logger
from paygate.core.middleware import setup_middleware, setup_exception_handlers
from paygate.api.responses import success_response
from paygate.api.routes import router as api_router

# Setup logging before anything else
setup_logging(
    level="DEBUG" if settings.DEBUG else "INFO",
    json_format=not settings.DEBUG,
    app_name=settings.APP_NAME
)

logger = get_logger(__name__)


def _parse_allowed_origins(raw: str) -> list[str]:
    """Parse comma-separated CORS origins string into a clean list."""
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


_OPENAPI_TAGS = [
    {"name": "Checkout", "description": "יצירת checkout session אצל Paddle / PayPal."},
    {"name": "Receipts", "description": "קבלה: ה-session השמור + המצב העדכני אצל הספק."},
    {"name": "Subscriptions", "description": "יצירה וביטול של מנויים."},
    {"name": "Webhooks", "description": "Webhook-ים מספקי התשלום - אימות, סינון כפילויות והעברה ל-backend."},
    {"name": "Health", "description": "Liveness / readiness."},
]


app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    description=(
        "שער תשלומים מעל מספר ספקים: checkout, מנויים, קבלות "
        "ו-webhooks מאומתים עם העברה ל-backend הפנימי."
    ),
    openapi_tags=_OPENAPI_TAGS,
    openapi_url="/openapi.json",
)

# Setup middleware (correlation ID, request logging, rate limit, security headers)
setup_middleware(app)
setup_exception_handlers(app)

allowed_origins = _parse_allowed_origins(settings.ALLOWED_ORIGINS)

if not allowed_origins and settings.DEBUG:
    allowed_origins = [
        "http://localhost",
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

if allowed_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Correlation-ID"],
    )

app.include_router(api_router, prefix="/api")


@app.on_event("startup")
async def startup() -> None:
    logger.info("Starting application", extra_data={"app_name": settings.APP_NAME})


@app.on_event("shutdown")
async def shutdown() -> None:
    """Cleanup on shutdown"""
    logger.info("Shutting down application")
    from paygate.core.redis_client import close_redis
    await close_redis()


@app.get(
    "/health",
    summary="בדיקת חיוּת (Liveness Probe)",
    description="בדיקה קלה שהתהליך חי ומגיב. לא בודק תלויות חיצוניות.",
    tags=["Health"],
)
async def health_check():
    """Liveness probe - התהליך חי ומגיב."""
    return success_response({"status": "healthy"}, "Service is running")


@app.get(
    "/health/ready",
    summary="בדיקת מוכנות (Readiness Probe)",
    description="בודק שה-Redis זמין. מחזיר 503 עם status=degraded אם לא.",
    tags=["Health"],
)
async def readiness_check():
    """Readiness probe - בדיקת התלויות החיצוניות."""
    from paygate.domain.services.health_service import check_readiness

    result = await check_readiness()
    if result["status"] == "healthy":
        return success_response(result, "Service is ready")
    return JSONResponse(
        status_code=503,
        content={"success": False, "error": "Service is degraded", "details": result},
    )
