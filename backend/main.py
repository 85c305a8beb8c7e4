import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.endpoints import account, categories, cron, notifications, reports, subscriptions
from app.core.auth import enforce_basic_auth_for_request
from app.core.database import Base, engine
from app.core.settings import settings
from app.services.errors import ConcurrentUpdate, InvalidInput, NotFound, RenewalFailed

# Register every table on Base.metadata before create_all.
from app.models import activity_log, category, email_log, notification, profile, reminder, subscription, subscription_history  # noqa: F401


logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")

app = FastAPI(title="Subscription Reminder API")

# Configure CORS
origins = settings.resolved_cors_origins()
if origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.on_event("startup")
def startup() -> None:
    if settings.basic_auth_enabled and (settings.basic_auth_username is None or settings.basic_auth_password is None):
        raise RuntimeError("Basic Auth is enabled but BASIC_AUTH_USERNAME/BASIC_AUTH_PASSWORD are not set")
    if settings.db_auto_create:
        Base.metadata.create_all(bind=engine)


@app.middleware("http")
async def basic_auth_middleware(request: Request, call_next):
    if request.url.path == "/health" or request.url.path.startswith("/api/cron/"):
        return await call_next(request)

    if request.method == "OPTIONS":
        return await call_next(request)

    try:
        enforce_basic_auth_for_request(request)
    except HTTPException as exc:
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=exc.headers,
        )

    return await call_next(request)


@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound):
    return JSONResponse(status_code=404, content={"detail": f"{exc.entity.capitalize()} not found"})


@app.exception_handler(InvalidInput)
async def invalid_input_handler(request: Request, exc: InvalidInput):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(RenewalFailed)
async def renewal_failed_handler(request: Request, exc: RenewalFailed):
    return JSONResponse(status_code=409, content={"detail": "Renewal could not be completed; nothing was changed. Please retry."})


@app.exception_handler(ConcurrentUpdate)
async def concurrent_update_handler(request: Request, exc: ConcurrentUpdate):
    return JSONResponse(status_code=409, content={"detail": "Subscription was changed by another request; nothing was saved. Please retry."})


# API Routes
app.include_router(subscriptions.router, prefix="/api", tags=["subscriptions"])
app.include_router(categories.router, prefix="/api", tags=["categories"])
app.include_router(notifications.router, prefix="/api", tags=["notifications"])
app.include_router(reports.router, prefix="/api", tags=["reports"])
app.include_router(account.router, prefix="/api", tags=["account"])
app.include_router(cron.router, prefix="/api", tags=["cron"])


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
