"""Administrative HTTP server exposing the token exchange operations."""

import secrets

import structlog
from fastapi import Depends, FastAPI, Header, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, SecretStr

from token_exchange.config.settings import ExchangeSettings
from token_exchange.creator import PersonalAccessTokenCreator
from token_exchange.exceptions import PermissionDeniedError, TokenExchangeError
from token_exchange.models.domain import FormValidation
from token_exchange.security import ANONYMOUS, AccessControl, Authentication

log = structlog.get_logger(__name__)


class TokenByCredentialsRequest(BaseModel):
    """Body of ``POST /tokens/by-credentials``."""

    server_url: str = Field(default="", description="GitLab server URL (blank for the default)")
    credentials_id: str = Field(default="", description="Id of the stored login")


class TokenByPasswordRequest(BaseModel):
    """Body of ``POST /tokens/by-password``."""

    server_url: str = Field(default="", description="GitLab server URL (blank for the default)")
    username: str = Field(default="", description="GitLab login")
    password: SecretStr = Field(default=SecretStr(""), description="GitLab password")


def _validation_response(result: FormValidation) -> JSONResponse:
    return JSONResponse(status_code=200 if result.is_ok else 422, content=result.to_dict())


def create_app(settings: ExchangeSettings, creator: PersonalAccessTokenCreator) -> FastAPI:
    """Build the FastAPI application.

    Callers authenticate with ``Authorization: Bearer <api key>``; keys map to
    the principals in ``settings.server.principals``. Anyone else is
    anonymous. Token creation is POST only.
    """
    app = FastAPI(title="GitLab Token Exchange")
    principals = [
        (
            principal.api_key.get_secret_value(),
            Authentication.administrator(principal.name)
            if principal.administrator
            else Authentication.user(principal.name),
        )
        for principal in settings.server.principals
    ]

    def access_control(authorization: str | None = Header(default=None)) -> AccessControl:
        if authorization and authorization.startswith("Bearer "):
            presented = authorization[len("Bearer ") :].strip()
            for api_key, authentication in principals:
                if secrets.compare_digest(presented.encode(), api_key.encode()):
                    return AccessControl(authentication)
            log.warning("unknown_api_key")
        return AccessControl(ANONYMOUS)

    @app.exception_handler(PermissionDeniedError)
    async def permission_denied(request: Request, exc: PermissionDeniedError) -> JSONResponse:
        return JSONResponse(status_code=403, content={"kind": "error", "message": exc.message})

    @app.exception_handler(TokenExchangeError)
    async def exchange_error(request: Request, exc: TokenExchangeError) -> JSONResponse:
        log.error("request_failed", path=request.url.path, error=exc.message)
        return JSONResponse(status_code=500, content={"kind": "error", "message": exc.message})

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "healthy", "service": "token-exchange", "store": creator.store.name}

    @app.get("/credentials/items")
    def credentials_items(
        server_url: str = "",
        credentials_id: str = "",
        acl: AccessControl = Depends(access_control),
    ) -> list[dict]:
        options = creator.fill_credentials_id_items(acl, server_url, credentials_id)
        return [option.to_dict() for option in options]

    @app.post("/tokens/by-credentials")
    async def token_by_credentials(
        body: TokenByCredentialsRequest,
        acl: AccessControl = Depends(access_control),
    ) -> JSONResponse:
        log.info("token_by_credentials_requested", principal=acl.caller.name, credentials_id=body.credentials_id)
        result = await creator.create_token_by_credentials(acl, body.server_url, body.credentials_id)
        return _validation_response(result)

    @app.post("/tokens/by-password")
    async def token_by_password(
        body: TokenByPasswordRequest,
        acl: AccessControl = Depends(access_control),
    ) -> JSONResponse:
        log.info("token_by_password_requested", principal=acl.caller.name, username=body.username)
        result = await creator.create_token_by_password(acl, body.server_url, body.username, body.password)
        return _validation_response(result)

    return app
