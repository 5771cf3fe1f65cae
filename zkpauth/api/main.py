import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from zkpauth.api.models import (
    ChallengeRequest,
    ChallengeResponse,
    ErrorResponse,
    ParamsRequest,
    ParamsResponse,
    RegisterRequest,
    RegisterResponse,
    SecretRequest,
    SecretResponse,
)
from zkpauth.auth.auth_manager import AuthManager
from zkpauth.auth.errors import ZKPAuthError
from zkpauth.config import Settings, get_settings
from zkpauth.crypto.zkp import hex_to_int, int_to_hex

logger = logging.getLogger(__name__)

NOT_INITIALIZED = {503: {"model": ErrorResponse}}
MALFORMED = {400: {"model": ErrorResponse}}
NOT_FOUND = {404: {"model": ErrorResponse}}
STALE = {409: {"model": ErrorResponse}}


def create_app(manager: Optional[AuthManager] = None, settings: Optional[Settings] = None) -> FastAPI:
    """Build the ZKP auth API around one AuthManager.

    Group parameters are generated once at startup unless the manager
    already carries a group.
    """
    settings = settings or get_settings()
    manager = manager or AuthManager(
        bit_length=settings.bit_length,
        max_attempts=settings.max_attempts,
        max_pending_challenges=settings.max_pending_challenges,
        max_sessions=settings.max_sessions
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if manager.parameters is None:
            await manager.init()
        logger.info("ZKP auth server ready")
        yield

    app = FastAPI(title="ZKP Auth API", lifespan=lifespan)
    app.state.manager = manager

    @app.exception_handler(ZKPAuthError)
    async def zkp_error_handler(request: Request, exc: ZKPAuthError):
        logger.warning(f"{request.url.path} failed: {exc.kind}: {exc}")
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(error=exc.kind, detail=str(exc)).model_dump()
        )

    @app.post("/init-communication", response_model=ParamsResponse, responses=NOT_INITIALIZED)
    async def init_communication(request: ParamsRequest):
        """Return the group parameters (p, q, g, h)"""
        params = manager.require_snapshot().parameters
        return ParamsResponse(
            p=int_to_hex(params.p),
            q=int_to_hex(params.q),
            g=int_to_hex(params.g),
            h=int_to_hex(params.h)
        )

    @app.post("/register", response_model=RegisterResponse, responses={**NOT_INITIALIZED, **MALFORMED})
    async def register(request: RegisterRequest):
        """Register a user's public commitments y1, y2"""
        await manager.register(request.username, hex_to_int(request.y1), hex_to_int(request.y2))
        return RegisterResponse()

    @app.post("/challenge", response_model=ChallengeResponse, responses={**NOT_INITIALIZED, **MALFORMED})
    async def challenge(request: ChallengeRequest):
        """Accept commitments r1, r2 and issue a challenge"""
        auth_id, c = await manager.create_challenge(
            request.username,
            hex_to_int(request.r1),
            hex_to_int(request.r2)
        )
        return ChallengeResponse(auth_id=auth_id, c=int_to_hex(c))

    @app.post(
        "/verify",
        response_model=SecretResponse,
        responses={**NOT_INITIALIZED, **MALFORMED, **NOT_FOUND, **STALE}
    )
    async def verify(request: SecretRequest):
        """Verify the response s; an empty session means the proof was rejected"""
        session = await manager.verify(request.username, hex_to_int(request.s), request.auth_id)
        return SecretResponse(session=session)

    @app.get("/status")
    async def get_status():
        """Get current server status"""
        return manager.status()

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    logging.basicConfig(level=settings.log_level)
    uvicorn.run(app, host=settings.host, port=settings.port)
