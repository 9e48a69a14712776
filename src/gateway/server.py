"""
TOKEN RAIL - HTTP Gateway

FastAPI binding over the JWT engine.

Endpoints:
- GET /health - Liveness and enabled algorithms
- POST /tokens/sign - Sign claims into a compact JWT
- POST /tokens/validate - Verify a token and return its claims
- POST /tokens/inspect - Decode the header without verification
"""

import hmac
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

import structlog
from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from signing.errors import TokenRailError, VerificationFailed
from tokens.config import EngineConfig
from tokens.engine import TokenEngine
from tokens.log import configure_logging

logger = structlog.get_logger()

VERSION = "1.0.0"

KeyPayload = Union[str, Dict[str, Any]]


# ============================================================================
# Pydantic Models
# ============================================================================

class SignRequest(BaseModel):
    """Request to sign a claim set."""
    algorithm: str = Field(..., description="JWS algorithm, e.g. HS256, RS256, ES256K, EdDSA")
    claims: Dict[str, Any] = Field(default_factory=dict)
    key: KeyPayload = Field(..., description="Secret/PEM text, {pem, passphrase}, {raw}, RSA components or JWK")
    key_id: Optional[str] = Field(None, description="kid header value; defaults to the key fingerprint")


class SignResponse(BaseModel):
    """Signed token."""
    token: str
    algorithm: str
    key_id: Optional[str]


class ValidateRequest(BaseModel):
    """Request to validate a token."""
    token: str
    key: KeyPayload
    algorithms: Optional[List[str]] = Field(None, description="Expected algorithms")


class ValidateResponse(BaseModel):
    """Verified token contents."""
    valid: bool
    header: Dict[str, Any]
    claims: Dict[str, Any]


class InspectRequest(BaseModel):
    """Request to decode a token header."""
    token: str


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    algorithms: List[str]
    uptime_seconds: float


# ============================================================================
# Application State
# ============================================================================

class AppState:
    """Application state container."""

    def __init__(self, config: EngineConfig):
        self.config = config
        self.engine = TokenEngine(config)
        self.start_time = datetime.now(timezone.utc)


app_state: Optional[AppState] = None


# ============================================================================
# Application Factory
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    global app_state
    config = EngineConfig.from_env()
    configure_logging(config.log_level, config.log_json)
    logger.info("token_rail_starting", version=VERSION)
    app_state = AppState(config)
    yield
    logger.info("token_rail_stopping")
    app_state = None


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="Token Rail",
        description="JWT signing and verification across the JOSE algorithm set.",
        version=VERSION,
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=os.environ.get("CORS_ORIGINS", "*").split(","),
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @application.exception_handler(TokenRailError)
    async def token_error_handler(request: Request, exc: TokenRailError):
        status_code = 401 if isinstance(exc, VerificationFailed) else 400
        return JSONResponse(
            status_code=status_code,
            content={"error": type(exc).__name__, "detail": str(exc)},
        )

    return application


app = create_app()


# ============================================================================
# Dependencies
# ============================================================================

def get_state() -> AppState:
    """Get application state."""
    if app_state is None:
        raise HTTPException(status_code=503, detail="Application not initialized")
    return app_state


def verify_api_key(x_api_key: str = Header(..., alias="X-API-Key")) -> str:
    """Verify API key."""
    expected = os.environ.get("API_KEY", "dev-key-change-in-production")
    if not hmac.compare_digest(x_api_key.encode("utf-8"), expected.encode("utf-8")):
        raise HTTPException(status_code=401, detail="Invalid API key")
    return x_api_key


# ============================================================================
# Endpoints
# ============================================================================

@app.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check(state: AppState = Depends(get_state)):
    """Health check endpoint."""
    uptime = (datetime.now(timezone.utc) - state.start_time).total_seconds()
    return HealthResponse(
        status="healthy",
        version=VERSION,
        algorithms=[a.value for a in state.config.allowed_algorithms],
        uptime_seconds=uptime,
    )


@app.post("/tokens/sign", response_model=SignResponse, tags=["Tokens"])
async def sign_token(
    request: SignRequest,
    state: AppState = Depends(get_state),
    api_key: str = Depends(verify_api_key),
):
    """Sign ``claims`` with ``key`` under ``algorithm``."""
    token = state.engine.issue(request.claims, request.key, request.algorithm, key_id=request.key_id)
    header = state.engine.inspect(token)
    return SignResponse(token=token, algorithm=header["alg"], key_id=header.get("kid"))


@app.post("/tokens/validate", response_model=ValidateResponse, tags=["Tokens"])
async def validate_token(
    request: ValidateRequest,
    state: AppState = Depends(get_state),
    api_key: str = Depends(verify_api_key),
):
    """
    Verify a token.

    Failed verification is a 401; malformed tokens, unknown algorithms and
    key/algorithm mismatches are a 400.
    """
    jwt = state.engine.decode_token(request.token, request.key, request.algorithms)
    return ValidateResponse(valid=True, header=jwt.header.to_dict(), claims=jwt.payload.to_dict())


@app.post("/tokens/inspect", tags=["Tokens"])
async def inspect_token(
    request: InspectRequest,
    api_key: str = Depends(verify_api_key),
):
    """Return the unverified header. Never use it to choose a verification algorithm."""
    return {"header": TokenEngine.inspect(request.token), "verified": False}
