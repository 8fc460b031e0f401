from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import Body, Depends, FastAPI, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy.orm import Session

from registration import auth_service
from registration.config import get_settings
from registration.database import Base, engine, get_db
from registration.errors import add_error_handlers
from registration.logging_middleware import add_audit_middleware
from registration.rate_limit import EMAIL_LIMIT, LOGIN_LIMIT, apply_rate_limiter, limiter
from registration.result import unwrap
from registration.schemas import (
    AccessToken,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    RefreshRequest,
    RegisterResponse,
    ResetPasswordRequest,
    TokenPair,
)

settings = get_settings()


@asynccontextmanager
async def lifespan(_: FastAPI):
    if settings.run_db_migrations:
        Base.metadata.create_all(bind=engine)
    yield


def create_app() -> FastAPI:
    fastapi_app = FastAPI(title="Auth Service", version="1.0.0", lifespan=lifespan)
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    add_error_handlers(fastapi_app)
    apply_rate_limiter(fastapi_app)
    add_audit_middleware(fastapi_app, "auth")
    if settings.metrics_enabled:
        Instrumentator().instrument(fastapi_app).expose(fastapi_app)
    return fastapi_app


app = create_app()


@app.get("/health", tags=["health"])
def health() -> dict[str, str]:
    return {"status": "ok", "service": "auth"}


@app.post("/auth/login", response_model=TokenPair, tags=["auth"])
@limiter.limit(LOGIN_LIMIT)
def login(request: Request, body: LoginRequest, db: Session = Depends(get_db)) -> TokenPair:
    return unwrap(auth_service.login(db, body.email, body.password))


@app.post("/auth/login/mobile", response_model=TokenPair, tags=["auth"])
@limiter.limit(LOGIN_LIMIT)
def login_mobile(request: Request, body: LoginRequest, db: Session = Depends(get_db)) -> TokenPair:
    return unwrap(auth_service.login_mobile(db, body.email, body.password))


@app.post("/auth/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED, tags=["auth"])
@limiter.limit(EMAIL_LIMIT)
def register(request: Request, payload: Dict[str, Any] = Body(...), db: Session = Depends(get_db)) -> RegisterResponse:
    return unwrap(auth_service.register(db, payload))


@app.post("/auth/refresh", response_model=AccessToken, tags=["auth"])
def refresh(body: RefreshRequest, db: Session = Depends(get_db)) -> AccessToken:
    return unwrap(auth_service.refresh(db, body.refresh_token))


@app.get("/auth/verify", response_model=MessageResponse, tags=["auth"])
def verify(
    token: Optional[str] = Query(None),
    id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
) -> MessageResponse:
    return unwrap(auth_service.verify_email(db, id, token))


@app.post("/auth/forgot-password", response_model=MessageResponse, tags=["auth"])
@limiter.limit(EMAIL_LIMIT)
def forgot_password(request: Request, body: ForgotPasswordRequest, db: Session = Depends(get_db)) -> MessageResponse:
    return unwrap(auth_service.forgot_password(db, body.email))


@app.post("/auth/reset-password", response_model=MessageResponse, tags=["auth"])
@limiter.limit(EMAIL_LIMIT)
def reset_password(request: Request, body: ResetPasswordRequest, db: Session = Depends(get_db)) -> MessageResponse:
    return unwrap(auth_service.reset_password(db, body.id, body.token, body.new_password))
