# shopauth/main.py
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from shopauth.core.config import get_settings
from shopauth.core.deps import get_http_session
from shopauth.database import Base, engine
from shopauth.logging import configure_logging, get_logger
from shopauth.models import shopify_session as _shopify_session_model, user as _user_model  # noqa: F401
from shopauth.routes import auth, shopify, users
from shopauth.schemas.response import ServiceResponse

settings = get_settings()
configure_logging(settings.LOG_LEVEL, settings.LOG_JSON)
log = get_logger(__name__)

app = FastAPI(title=settings.APP_NAME)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.CORS_ORIGIN],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(users.router)
app.include_router(shopify.router)
app.include_router(shopify.sessions_router)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        f"{'.'.join(str(p) for p in err['loc']) or 'root'}: {err['msg']}" for err in exc.errors()
    ]
    if len(errors) == 1:
        message = f"Invalid input: {errors[0]}"
    else:
        message = f"Invalid input ({len(errors)} errors): {'; '.join(errors)}"
    return ServiceResponse.failure(message, status_code=status.HTTP_400_BAD_REQUEST).to_response()


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    response = ServiceResponse.failure(str(exc.detail), status_code=exc.status_code).to_response()
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    log.exception("unhandled_error", path=request.url.path)
    return ServiceResponse.failure(
        "An internal error occurred", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
    ).to_response()


@app.on_event("startup")
async def startup_event():
    # create tables if they don't exist
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    log.info("startup_complete", app=settings.APP_NAME, env=settings.APP_ENV)


@app.on_event("shutdown")
async def shutdown_event():
    get_http_session().close()
    get_http_session.cache_clear()

@app.get("/health")
async def health():
    return {"status": "ok", "app": settings.APP_NAME}
